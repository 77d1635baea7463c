"""
EPW exception store.

User-maintained overrides for codes the automatic parser gets wrong.
The table is persisted as one snapshot document; every mutation rewrites
the whole snapshot and refreshes a single auto backup.

Storage keys:
    epw-code-exceptions            primary snapshot
    epw-code-exceptions-backup     last known good backup envelope
    epw-code-exceptions-emergency  written only when the primary write fails
"""

from datetime import datetime, timezone
import json
from typing import Optional, Any
import structlog
from pydantic import ValidationError as PydanticValidationError

from models.epw import (
    AttributeClass,
    AttributeEntry,
    BackupEnvelope,
    DecodedProduct,
    ExceptionRecord,
    ExceptionStoreSnapshot,
    IntegrityReport,
    ManualMapping,
)
from exceptions import ValidationError
from services.kv_store import KeyValueStore
from utils.text_utils import normalize_code

logger = structlog.get_logger(__name__)

PRIMARY_KEY = "epw-code-exceptions"
BACKUP_KEY = "epw-code-exceptions-backup"
EMERGENCY_KEY = "epw-code-exceptions-emergency"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def seed_snapshot() -> ExceptionStoreSnapshot:
    """Default table: the known non-standard OSACAN001 code."""
    now = _now()
    return ExceptionStoreSnapshot(
        exceptions=[
            ExceptionRecord(
                code="OSACAN001",
                reason="Special case - non-standard format",
                manual_mapping=ManualMapping(
                    tipo="X",
                    certif="S",
                    modelo="--",
                    comprim="",
                    cor="",
                    acabamento="",
                ),
                created_at=now,
                updated_at=now,
            )
        ],
        version=1,
        last_updated=now,
    )


class ExceptionStore:
    """
    Exception table with backup, restore, export and import.

    Persistence failures are logged and never raised to callers.
    """

    def __init__(self, store: KeyValueStore, resolver=None):
        self.store = store
        self.resolver = resolver

    # ===================
    # READ OPERATIONS
    # ===================

    def load(self) -> ExceptionStoreSnapshot:
        """
        Load the current snapshot.

        Records are validated one by one: invalid ones are skipped and
        duplicates collapse to the last one per code. Only an unreadable
        document falls back to the emergency copy, then to the seed.
        Never raises.
        """
        for key in (PRIMARY_KEY, EMERGENCY_KEY):
            raw = self._read(key)
            if raw is None:
                continue
            snapshot = self._parse_snapshot(key, raw)
            if snapshot is None:
                continue
            logger.debug("exceptions_loaded", key=key, count=len(snapshot.exceptions))
            return snapshot

        logger.info("exceptions_using_seed")
        return seed_snapshot()

    def list_exceptions(self) -> list[ExceptionRecord]:
        return self.load().exceptions

    def get(self, code: str) -> Optional[ExceptionRecord]:
        return self.load().find(normalize_code(code))

    def has(self, code: str) -> bool:
        return self.get(code) is not None

    # ===================
    # WRITE OPERATIONS
    # ===================

    def upsert(
        self,
        code: str,
        reason: str,
        manual_mapping: Optional[ManualMapping] = None
    ) -> ExceptionRecord:
        """
        Create or replace the exception for a code.

        Replacing keeps the original createdAt.

        Args:
            code: Article code (normalized to uppercase)
            reason: Free-text reason
            manual_mapping: Raw codes overriding the automatic decode

        Returns:
            The stored record

        Raises:
            ValidationError: If the code is empty after trimming
        """
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError(
                "Exception code must not be empty",
                code="INVALID_EXCEPTION_CODE",
                details={"provided": code}
            )

        snapshot = self.load()
        now = _now()

        existing = snapshot.find(normalized)
        record = ExceptionRecord(
            code=normalized,
            reason=reason,
            manual_mapping=manual_mapping,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )

        if existing is not None:
            snapshot.exceptions = [
                record if r.code == normalized else r
                for r in snapshot.exceptions
            ]
            logger.info("exception_updated", code=normalized)
        else:
            snapshot.exceptions = [*snapshot.exceptions, record]
            logger.info("exception_added", code=normalized)

        snapshot.version += 1
        self._persist(snapshot)
        self.create_backup(source="auto", snapshot=snapshot)
        return record

    def remove(self, code: str) -> bool:
        """
        Remove the exception for a code.

        Returns:
            True if a record was removed, False for an unknown code
        """
        normalized = normalize_code(code)
        snapshot = self.load()
        remaining = [r for r in snapshot.exceptions if r.code != normalized]

        if len(remaining) == len(snapshot.exceptions):
            logger.warning("exception_not_found", code=normalized)
            return False

        snapshot.exceptions = remaining
        snapshot.version += 1
        self._persist(snapshot)
        self.create_backup(source="auto", snapshot=snapshot)
        logger.info("exception_removed", code=normalized)
        return True

    # ===================
    # OVERRIDES
    # ===================

    def apply_override(self, code: str, decoded_default: DecodedProduct) -> DecodedProduct:
        """
        Overlay a stored manual mapping on an automatic decode.

        Per field: manual value if set, else the automatic value, else empty.
        Codes without a manual mapping return decoded_default unchanged.
        """
        record = self.get(code)
        if record is None or record.manual_mapping is None:
            return decoded_default

        mapping = record.manual_mapping
        fields: dict[str, AttributeEntry] = {}
        for attribute_class in AttributeClass:
            manual = mapping.get(attribute_class)
            if manual:
                fields[attribute_class.value] = AttributeEntry(
                    code=manual,
                    description=self._describe(attribute_class, manual),
                )
            else:
                fields[attribute_class.value] = decoded_default.get(attribute_class)

        logger.debug("exception_override_applied", code=record.code)
        return DecodedProduct(**fields)

    def _describe(self, attribute_class: AttributeClass, code: str) -> str:
        if self.resolver is None:
            return code
        return self.resolver.resolve_sync(attribute_class, code)

    # ===================
    # BACKUP / RESTORE
    # ===================

    def create_backup(
        self,
        source: str = "manual",
        snapshot: Optional[ExceptionStoreSnapshot] = None
    ) -> bool:
        """Overwrite the single backup with the current (or given) snapshot."""
        snapshot = snapshot or self.load()
        envelope = BackupEnvelope(
            data=snapshot,
            backup_date=_now(),
            version=snapshot.version,
            source=source,
        )
        try:
            self.store.set(BACKUP_KEY, json.dumps(envelope.to_json_dict(), ensure_ascii=False))
        except Exception as e:
            logger.error("exceptions_backup_failed", source=source, error=str(e))
            return False

        logger.info("exceptions_backup_created", source=source, count=len(snapshot.exceptions))
        return True

    def get_backup(self) -> Optional[BackupEnvelope]:
        raw = self._read(BACKUP_KEY)
        if raw is None:
            return None
        try:
            return BackupEnvelope.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error("exceptions_backup_corrupt", error=str(e))
            return None

    def restore_from_backup(self) -> bool:
        """Replace the primary snapshot with the backup's. False if none."""
        envelope = self.get_backup()
        if envelope is None:
            logger.warning("exceptions_restore_no_backup")
            return False

        restored = self._persist(envelope.data)
        logger.info(
            "exceptions_restored",
            count=len(envelope.data.exceptions),
            backup_date=envelope.backup_date.isoformat(),
            persisted=restored
        )
        return restored

    # ===================
    # EXPORT / IMPORT
    # ===================

    def export(self) -> str:
        """Serialize the current snapshot as a backup envelope."""
        snapshot = self.load()
        envelope = BackupEnvelope(
            data=snapshot,
            backup_date=_now(),
            version=snapshot.version,
            source="export",
        )
        logger.info("exceptions_exported", count=len(snapshot.exceptions))
        return json.dumps(envelope.to_json_dict(), ensure_ascii=False, indent=2)

    def import_data(self, serialized: str) -> bool:
        """
        Merge an exported document into the local table.

        Imported records win on conflicting codes; local records that are
        not in the document are kept.

        Returns:
            False if the document is malformed (data.exceptions not a list)
        """
        try:
            document = json.loads(serialized)
        except (TypeError, ValueError) as e:
            logger.warning("exceptions_import_invalid_json", error=str(e))
            return False

        data = document.get("data") if isinstance(document, dict) else None
        items = data.get("exceptions") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.warning("exceptions_import_missing_array")
            return False

        imported = _validate_records(items, source="import")

        snapshot = self.load()
        merged = {r.code: r for r in snapshot.exceptions}
        for record in imported:
            merged[record.code] = record

        snapshot.exceptions = list(merged.values())
        snapshot.version += 1
        self._persist(snapshot)
        self.create_backup(source="auto", snapshot=snapshot)

        logger.info(
            "exceptions_imported",
            imported=len(imported),
            skipped=len(items) - len(imported),
            total=len(snapshot.exceptions)
        )
        return True

    # ===================
    # INTEGRITY
    # ===================

    def validate_integrity(self) -> IntegrityReport:
        """Structural check of the persisted primary snapshot. Read-only."""
        raw = self._read(PRIMARY_KEY)
        if raw is None:
            return IntegrityReport(is_valid=True, errors=[])

        try:
            document = json.loads(raw)
        except ValueError as e:
            return IntegrityReport(is_valid=False, errors=[f"Snapshot is not valid JSON: {e}"])

        errors = check_snapshot_document(document)
        return IntegrityReport(is_valid=not errors, errors=errors)

    # ===================
    # PERSISTENCE
    # ===================

    def _parse_snapshot(self, key: str, raw: str) -> Optional[ExceptionStoreSnapshot]:
        """Tolerant snapshot parse. None only for an unreadable document."""
        try:
            document = json.loads(raw)
        except ValueError as e:
            logger.error("exceptions_snapshot_corrupt", key=key, error=str(e))
            return None

        items = document.get("exceptions") if isinstance(document, dict) else None
        if not isinstance(items, list):
            logger.error("exceptions_snapshot_missing_array", key=key)
            return None

        records = _validate_records(items, source=key)
        unique = list({r.code: r for r in records}.values())
        if len(unique) < len(records):
            logger.warning("exceptions_duplicates_collapsed", key=key, dropped=len(records) - len(unique))

        version = document.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            logger.warning("exceptions_snapshot_bad_version", key=key, version=version)
            version = 1

        snapshot = ExceptionStoreSnapshot(exceptions=unique, version=version)
        last_updated = document.get("lastUpdated")
        if last_updated:
            try:
                snapshot.last_updated = last_updated
            except PydanticValidationError as e:
                logger.warning("exceptions_snapshot_bad_timestamp", key=key, error=str(e))
        return snapshot

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.store.get(key)
        except Exception as e:
            logger.error("exceptions_read_failed", key=key, error=str(e))
            return None

    def _persist(self, snapshot: ExceptionStoreSnapshot) -> bool:
        """Write the snapshot; on failure retry once under the emergency key."""
        snapshot.last_updated = _now()
        payload = json.dumps(snapshot.to_json_dict(), ensure_ascii=False)

        try:
            self.store.set(PRIMARY_KEY, payload)
            logger.debug("exceptions_saved", count=len(snapshot.exceptions), version=snapshot.version)
            return True
        except Exception as e:
            logger.error("exceptions_save_failed", error=str(e))

        try:
            self.store.set(EMERGENCY_KEY, payload)
            logger.warning("exceptions_saved_to_emergency_key", key=EMERGENCY_KEY)
        except Exception as e:
            logger.error("exceptions_emergency_save_failed", error=str(e))
        return False


def _validate_records(items: list, source: str) -> list[ExceptionRecord]:
    """Validate raw record items one by one, skipping the invalid ones."""
    records: list[ExceptionRecord] = []
    for index, item in enumerate(items):
        try:
            records.append(ExceptionRecord.model_validate(item))
        except PydanticValidationError as e:
            logger.warning("exceptions_item_skipped", source=source, index=index, error=str(e))
    return records


def check_snapshot_document(document: Any) -> list[str]:
    """
    List structural problems in a raw snapshot document.

    Checks: object shape, exceptions array, non-empty string code and
    reason, timestamps present, numeric version, duplicate codes.
    """
    if not isinstance(document, dict):
        return ["Snapshot must be a JSON object"]

    errors: list[str] = []
    items = document.get("exceptions")
    if not isinstance(items, list):
        errors.append("'exceptions' must be an array")
        items = []

    version = document.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        errors.append("'version' must be an integer")

    seen: set[str] = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"exceptions[{index}] must be an object")
            continue

        code = item.get("code")
        if not isinstance(code, str) or not code.strip():
            errors.append(f"exceptions[{index}].code must be a non-empty string")
        else:
            normalized = normalize_code(code)
            if normalized in seen:
                errors.append(f"exceptions[{index}].code duplicates {normalized}")
            seen.add(normalized)

        reason = item.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            errors.append(f"exceptions[{index}].reason must be a non-empty string")

        for field in ("createdAt", "updatedAt"):
            if not isinstance(item.get(field), str) or not item.get(field):
                errors.append(f"exceptions[{index}].{field} is missing")

        mapping = item.get("manualMapping")
        if mapping is not None and not isinstance(mapping, dict):
            errors.append(f"exceptions[{index}].manualMapping must be an object")

    return errors

"""
EPW decoder API routes.

Decoding, attribute cache control, and exception management.
Error responses use the shared {"error": {...}} shape.
"""

import json
from typing import Optional

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse, PlainTextResponse
import structlog

from exceptions import (
    AppError,
    ExceptionNotFoundError,
    InvalidBackupError,
    BackupNotFoundError,
    InvalidAttributeClassError,
)
from models.epw import (
    AttributeClass,
    AttributeEntry,
    BatchDecodeRequest,
    DecodeRequest,
    DecodeResult,
    ExceptionRecord,
    ExceptionStoreSnapshot,
    ExceptionUpsert,
    IntegrityReport,
    OperationResult,
    PreloadRequest,
)
from services.epw_service import (
    get_attribute_resolver,
    get_epw_decoder,
    get_exception_store,
)
from services.exception_store import BACKUP_KEY

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/epw", tags=["EPW"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _parse_attribute_class(name: str) -> AttributeClass:
    try:
        return AttributeClass(name.lower())
    except ValueError:
        raise InvalidAttributeClassError(name, [c.value for c in AttributeClass])


# ===================
# DECODE
# ===================

@router.post("/decode", response_model=DecodeResult)
async def decode_code(data: DecodeRequest):
    """
    Decode one EPW code.

    Failures (bad length, foreign format) come back as success=false, not as errors.
    """
    return get_epw_decoder().decode(data.code, debug=data.debug)


@router.get("/decode/{code}", response_model=DecodeResult)
async def decode_code_get(code: str, debug: bool = Query(False, description="Log segment breakdown")):
    """Decode one EPW code given in the path."""
    return get_epw_decoder().decode(code, debug=debug)


@router.post("/decode/batch", response_model=list[DecodeResult])
async def decode_batch(data: BatchDecodeRequest):
    """Decode many codes; results keep the request order."""
    return get_epw_decoder().decode_many(data.codes)


@router.post("/decode/validated", response_model=DecodeResult)
async def decode_validated(data: DecodeRequest):
    """Refresh attribute lists from the API, then decode."""
    return await get_epw_decoder().decode_validated(data.code, debug=data.debug)


# ===================
# ATTRIBUTES
# ===================

@router.post("/attributes/preload")
async def preload_attributes(data: Optional[PreloadRequest] = None):
    """Warm the attribute cache for the given classes (all by default)."""
    try:
        counts = await get_attribute_resolver().preload(data.classes if data else None)
        return {"loaded": counts}
    except Exception as e:
        return handle_error(e)


@router.get("/attributes/cache")
async def attribute_cache_status():
    """Per-class cache size, age and freshness."""
    return {"classes": get_attribute_resolver().cache_status()}


@router.delete("/attributes/cache", response_model=OperationResult)
async def clear_attribute_cache():
    """Drop in-memory and persisted attribute caches."""
    get_attribute_resolver().clear_cache()
    return OperationResult(success=True, message="Attribute cache cleared")


@router.get("/attributes/{attribute_class}", response_model=list[AttributeEntry])
async def list_attribute_entries(attribute_class: str):
    """Known entries of one class (dictionary merged with cached API data)."""
    try:
        cls = _parse_attribute_class(attribute_class)
        return get_attribute_resolver().known_entries(cls)
    except Exception as e:
        return handle_error(e)


@router.get("/attributes/{attribute_class}/{code}", response_model=AttributeEntry)
async def resolve_attribute(attribute_class: str, code: str):
    """Resolve one code, fetching the class list if it is not fresh."""
    try:
        cls = _parse_attribute_class(attribute_class)
        normalized = code.strip().upper()
        description = await get_attribute_resolver().resolve_async(cls, normalized)
        return AttributeEntry(code=normalized, description=description)
    except Exception as e:
        return handle_error(e)


# ===================
# EXCEPTIONS
# ===================

@router.get("/exceptions", response_model=ExceptionStoreSnapshot)
async def list_exceptions():
    """Full exception table."""
    return get_exception_store().load()


@router.get("/exceptions/export", response_class=PlainTextResponse)
async def export_exceptions():
    """Download the exception table as a backup document."""
    return PlainTextResponse(
        get_exception_store().export(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="epw-exceptions.json"'}
    )


@router.post("/exceptions/import", response_model=OperationResult)
async def import_exceptions(document: dict = Body(...)):
    """
    Merge an exported backup document into the table.

    Raises:
        422: data.exceptions missing or not a list
    """
    try:
        if not get_exception_store().import_data(json.dumps(document)):
            raise InvalidBackupError()
        return OperationResult(success=True, message="Exceptions imported")
    except Exception as e:
        return handle_error(e)


@router.post("/exceptions/backup", response_model=OperationResult)
async def backup_exceptions():
    """Overwrite the backup with the current table."""
    created = get_exception_store().create_backup(source="manual")
    return OperationResult(
        success=created,
        message="Backup created" if created else "Backup failed"
    )


@router.post("/exceptions/restore", response_model=OperationResult)
async def restore_exceptions():
    """
    Restore the table from the backup.

    Raises:
        404: No backup available
    """
    try:
        store = get_exception_store()
        if store.get_backup() is None:
            raise BackupNotFoundError(BACKUP_KEY)
        restored = store.restore_from_backup()
        return OperationResult(
            success=restored,
            message="Backup restored" if restored else "Restore could not be persisted"
        )
    except Exception as e:
        return handle_error(e)


@router.get("/exceptions/integrity", response_model=IntegrityReport)
async def exceptions_integrity():
    """Structural check of the persisted table."""
    return get_exception_store().validate_integrity()


@router.get("/exceptions/{code}", response_model=ExceptionRecord)
async def get_exception(code: str):
    """
    Get the exception for one code.

    Raises:
        404: No exception for this code
    """
    try:
        record = get_exception_store().get(code)
        if record is None:
            raise ExceptionNotFoundError(code.strip().upper())
        return record
    except Exception as e:
        return handle_error(e)


@router.put("/exceptions/{code}", response_model=ExceptionRecord)
async def upsert_exception(code: str, data: ExceptionUpsert):
    """
    Create or replace the exception for one code.

    Raises:
        422: Code is blank
    """
    try:
        return get_exception_store().upsert(code, data.reason, data.manual_mapping)
    except Exception as e:
        return handle_error(e)


@router.delete("/exceptions/{code}", response_model=OperationResult)
async def delete_exception(code: str):
    """
    Remove the exception for one code.

    Raises:
        404: No exception for this code
    """
    try:
        if not get_exception_store().remove(code):
            raise ExceptionNotFoundError(code.strip().upper())
        return OperationResult(success=True, message=f"Exception removed: {code.strip().upper()}")
    except Exception as e:
        return handle_error(e)

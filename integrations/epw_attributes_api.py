"""
EPW attributes API client.

Fetches the code → description list of one attribute class from the
remote service and normalizes the field names it comes back with.
"""

from typing import Any, Optional
import httpx
import structlog

from config.settings import settings
from exceptions import AttributeFetchError
from models.epw import AttributeClass, AttributeEntry

logger = structlog.get_logger(__name__)


# Field-name pairs seen in attribute payloads, checked in order
FIELD_NAME_PAIRS: list[tuple[str, str]] = [
    ("l", "d"),
    ("codigo", "descricao"),
    ("strCodigo", "strDescricao"),
    ("code", "description"),
]


def normalize_item(item: Any) -> Optional[AttributeEntry]:
    """
    Convert one payload item into an AttributeEntry.

    Args:
        item: Raw JSON item from the attributes endpoint

    Returns:
        AttributeEntry, or None if no known field naming matches.
        A missing or blank description comes back as "" so the
        resolver can fall through to the dictionary.
    """
    if not isinstance(item, dict):
        return None

    for code_field, desc_field in FIELD_NAME_PAIRS:
        code = item.get(code_field)
        if code is None or code == "":
            continue
        description = item.get(desc_field)
        return AttributeEntry(
            code=str(code).strip().upper(),
            description=str(description).strip() if description is not None else "",
        )
    return None


def normalize_payload(attribute_class: AttributeClass, payload: Any) -> list[AttributeEntry]:
    """
    Normalize a whole response body.

    Accepts a bare list or a {"data": [...]} wrapper. Items with an
    unrecognized shape are skipped and reported in one warning.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]

    if not isinstance(payload, list):
        logger.warning(
            "attributes_unexpected_payload",
            attribute_class=attribute_class.value,
            payload_type=type(payload).__name__
        )
        return []

    entries: list[AttributeEntry] = []
    unrecognized = 0
    for item in payload:
        entry = normalize_item(item)
        if entry is None:
            unrecognized += 1
            continue
        entries.append(entry)

    if unrecognized:
        logger.warning(
            "attributes_unrecognized_items",
            attribute_class=attribute_class.value,
            skipped=unrecognized,
            accepted=len(entries)
        )

    return entries


class EPWAttributesClient:
    """
    Async HTTP client for the attributes endpoint.

    One shared httpx.AsyncClient per instance. Abort/timeout handling
    lives here; callers only see entries or AttributeFetchError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.epw_attributes_url).rstrip("/")
        self.timeout = timeout or settings.epw_http_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def fetch(self, attribute_class: AttributeClass) -> list[AttributeEntry]:
        """
        Fetch all entries of one attribute class.

        Args:
            attribute_class: Class to fetch

        Returns:
            Normalized entries (possibly empty)

        Raises:
            AttributeFetchError: On timeout, transport error, non-2xx or invalid JSON
        """
        url = f"{self.base_url}/{attribute_class.value}"
        logger.info("fetching_attributes", attribute_class=attribute_class.value, url=url)

        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            logger.error("attributes_fetch_timeout", attribute_class=attribute_class.value, error=str(e))
            raise AttributeFetchError(attribute_class.value, f"Timed out fetching {attribute_class.value}")
        except httpx.HTTPStatusError as e:
            logger.error(
                "attributes_fetch_bad_status",
                attribute_class=attribute_class.value,
                status_code=e.response.status_code
            )
            raise AttributeFetchError(
                attribute_class.value,
                f"API request failed: {e.response.status_code} {e.response.reason_phrase}"
            )
        except httpx.HTTPError as e:
            logger.error("attributes_fetch_failed", attribute_class=attribute_class.value, error=str(e))
            raise AttributeFetchError(attribute_class.value, f"Failed to fetch {attribute_class.value}: {e}")
        except ValueError as e:
            logger.error("attributes_invalid_json", attribute_class=attribute_class.value, error=str(e))
            raise AttributeFetchError(attribute_class.value, f"Invalid JSON for {attribute_class.value}")

        entries = normalize_payload(attribute_class, payload)
        logger.info("attributes_fetched", attribute_class=attribute_class.value, count=len(entries))
        return entries

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

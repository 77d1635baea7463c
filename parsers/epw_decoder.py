"""
EPW code decoder.

Public entry point for decoding article codes. Input problems are
returned as failed DecodeResult values; nothing raised inside the
parser escapes decode(), so one bad row never aborts a batch.
"""

import re
from typing import Iterable, Optional, Union
import structlog

from models.epw import (
    ATTRIBUTE_CLASSES,
    AttributeClass,
    AttributeEntry,
    DecodedProduct,
    DecodeResult,
)
from parsers.epw_segment_parser import SegmentParser
from utils.text_utils import normalize_code, is_foreign_code

logger = structlog.get_logger(__name__)

MIN_CODE_LENGTH = 7
MAX_CODE_LENGTH = 11

# Historical code with a fixed decode, independent of the exception store
SPECIAL_CASE_CODE = "OSACAN001"

NOT_AVAILABLE = "N/A"


class EPWDecoder:
    """
    Orchestrates normalization, rejection rules, parsing and overrides.

    Stateless per call: all mutable state lives in the injected resolver
    and exception store.
    """

    def __init__(self, resolver, exception_store=None):
        self.resolver = resolver
        self.parser = SegmentParser(resolver)
        self.exception_store = exception_store

    def decode(self, raw_code: object, debug: bool = False) -> DecodeResult:
        """
        Decode one EPW article code.

        Args:
            raw_code: Code as received (anything; non-strings fail)
            debug: Log the segment breakdown

        Returns:
            DecodeResult (success with product, or failure with message)
        """
        if not isinstance(raw_code, str) or not raw_code.strip():
            return DecodeResult.fail("Invalid reference code")

        code = normalize_code(raw_code)

        if is_foreign_code(code):
            if debug:
                logger.info("epw_decode_rejected_foreign", code=code)
            return DecodeResult.fail(f"Code {code} is not in EPW format")

        if code == SPECIAL_CASE_CODE:
            return DecodeResult.ok(self._special_case(), "Special case decoded")

        length = len(code)
        if length < MIN_CODE_LENGTH or length > MAX_CODE_LENGTH:
            return DecodeResult.fail(
                f"Unsupported code length: {length}. "
                f"Expected {MIN_CODE_LENGTH}-{MAX_CODE_LENGTH} characters."
            )

        try:
            product = self.parser.parse(code, debug=debug)
            message = f"Successfully decoded using adaptive parsing ({length}-char)"

            if self.exception_store is not None:
                overridden = self.exception_store.apply_override(code, product)
                if overridden is not product:
                    product = overridden
                    message = f"Decoded with manual exception override ({length}-char)"
        except Exception as e:
            logger.error("epw_decode_failed", code=code, error=str(e), error_type=type(e).__name__)
            return DecodeResult.fail(f"Decode error: {e}")

        return DecodeResult.ok(product, message)

    def decode_many(self, codes: Iterable[object], debug: bool = False) -> list[DecodeResult]:
        """Decode every code independently, preserving order."""
        results = [self.decode(code, debug=debug) for code in codes]
        logger.info(
            "epw_batch_decoded",
            total=len(results),
            failed=sum(1 for r in results if not r.success)
        )
        return results

    async def decode_validated(
        self,
        raw_code: object,
        debug: bool = False,
        classes: Optional[Iterable[AttributeClass]] = None
    ) -> DecodeResult:
        """Warm the attribute cache from the API, then decode."""
        await self.resolver.preload(classes or ATTRIBUTE_CLASSES)
        return self.decode(raw_code, debug=debug)

    def _special_case(self) -> DecodedProduct:
        return DecodedProduct(
            tipo=AttributeEntry(code="X", description=self.resolver.resolve_sync(AttributeClass.TIPO, "X")),
            certif=AttributeEntry(code="S", description=self.resolver.resolve_sync(AttributeClass.CERTIF, "S")),
            modelo=AttributeEntry(code="--", description="Genérico"),
            comprim=AttributeEntry(code="", description=""),
            cor=AttributeEntry(code="", description=""),
            acabamento=AttributeEntry(code="", description=""),
        )


# ===================
# DISPLAY PROJECTIONS
# ===================

def get_familia(decoded: DecodedProduct) -> str:
    """Family label: tipo description + modelo description."""
    familia = f"{decoded.tipo.description} {decoded.modelo.description}".strip()
    return familia or NOT_AVAILABLE


def get_modelo(decoded: DecodedProduct) -> str:
    return decoded.modelo.code or NOT_AVAILABLE


def get_acabamento(decoded: DecodedProduct) -> str:
    return decoded.acabamento.description or NOT_AVAILABLE


def get_cor(decoded: DecodedProduct) -> str:
    return decoded.cor.description or NOT_AVAILABLE


def get_comprimento(decoded: DecodedProduct) -> Union[str, int]:
    """
    Length for display.

    Descriptions in centimetres ("230cm") come back as the integer value;
    anything else is returned as-is.
    """
    description = decoded.comprim.description
    if description and "cm" in description:
        match = re.search(r"(\d+)", description)
        return int(match.group(1)) if match else description
    return description or NOT_AVAILABLE

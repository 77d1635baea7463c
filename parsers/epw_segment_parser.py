"""
EPW segment parser.

Splits a normalized EPW code into its six raw attribute codes.

Layout, read right to left:

    [ front: tipo + certif + modelo ][ comprim:2 ][ cor:1 ][ acabamento:1 ][ variant:2 ]

The trailing segments have fixed widths. The front part is variable
because tipo can be 1 or 2 characters, so two candidate splits are
scored against the attribute resolver and the best one kept.
"""

from dataclasses import dataclass
from typing import Protocol
import structlog

from models.epw import AttributeClass, AttributeEntry, DecodedProduct

logger = structlog.get_logger(__name__)

VARIANT_WIDTH = 2
FINISH_WIDTH = 1
COLOR_WIDTH = 1
LENGTH_WIDTH = 2
SUFFIX_WIDTH = VARIANT_WIDTH + FINISH_WIDTH + COLOR_WIDTH + LENGTH_WIDTH

MATCH_POINTS = 3


class SyncResolver(Protocol):
    def resolve_sync(self, attribute_class: AttributeClass, code: str) -> str: ...


@dataclass
class FrontSplit:
    """One candidate decomposition of the front part."""
    strategy: str
    tipo: str
    certif: str
    modelo: str
    score: int = 0


@dataclass
class RawSegments:
    """Raw codes extracted from one EPW code, before description lookup."""
    tipo: str
    certif: str
    modelo: str
    comprim: str
    cor: str
    acabamento: str
    variant: str
    front: str
    strategy: str
    score: int

    def get(self, attribute_class: AttributeClass) -> str:
        return getattr(self, attribute_class.value)


class SegmentParser:
    """
    Decodes a normalized code into raw segments and a DecodedProduct.

    The resolver is only used through resolve_sync, so parsing never
    waits on I/O.
    """

    def __init__(self, resolver: SyncResolver):
        self.resolver = resolver

    def split(self, code: str, debug: bool = False) -> RawSegments:
        """
        Strip the fixed-width suffix and disambiguate the front part.

        Args:
            code: Normalized code (uppercase, trimmed)
            debug: Log every candidate split

        Returns:
            RawSegments with the winning front split
        """
        variant = code[-VARIANT_WIDTH:]
        remaining = code[:-VARIANT_WIDTH]

        acabamento = remaining[-FINISH_WIDTH:]
        remaining = remaining[:-FINISH_WIDTH]

        cor = remaining[-COLOR_WIDTH:]
        remaining = remaining[:-COLOR_WIDTH]

        comprim = remaining[-LENGTH_WIDTH:]
        front = remaining[:-LENGTH_WIDTH]

        best = self.parse_front(front, debug=debug)

        segments = RawSegments(
            tipo=best.tipo,
            certif=best.certif,
            modelo=best.modelo,
            comprim=comprim,
            cor=cor,
            acabamento=acabamento,
            variant=variant,
            front=front,
            strategy=best.strategy,
            score=best.score,
        )

        if debug:
            logger.info(
                "epw_decode_debug",
                code=code,
                variant=variant,
                acabamento=acabamento,
                cor=cor,
                comprim=comprim,
                front=front,
                strategy=best.strategy,
                score=best.score
            )

        return segments

    def parse_front(self, front: str, debug: bool = False) -> FrontSplit:
        """
        Decompose the front part into tipo + certif + modelo.

        Strategy A (tipo 1 char) is the default; Strategy B (tipo 2 chars)
        only replaces it with a strictly higher score.
        """
        best = self._score(FrontSplit(
            strategy="A",
            tipo=front[:1],
            certif=front[1:2],
            modelo=front[2:],
        ))
        candidates = [best]

        if len(front) >= 3:
            candidates.append(self._score(FrontSplit(
                strategy="B",
                tipo=front[:2],
                certif=front[2:3],
                modelo=front[3:],
            )))

        for candidate in candidates[1:]:
            if candidate.score > best.score:
                best = candidate

        if debug:
            logger.info(
                "epw_front_candidates",
                front=front,
                candidates=[
                    {"strategy": c.strategy, "tipo": c.tipo, "certif": c.certif,
                     "modelo": c.modelo, "score": c.score}
                    for c in candidates
                ],
                chosen=best.strategy
            )

        return best

    def _score(self, split: FrontSplit) -> FrontSplit:
        score = 0
        for attribute_class, code in (
            (AttributeClass.TIPO, split.tipo),
            (AttributeClass.CERTIF, split.certif),
            (AttributeClass.MODELO, split.modelo),
        ):
            if code and self.resolver.resolve_sync(attribute_class, code) != code:
                score += MATCH_POINTS
        split.score = score
        return split

    def describe(self, segments: RawSegments) -> DecodedProduct:
        """Resolve every raw segment into an AttributeEntry."""
        return DecodedProduct(**{
            attribute_class.value: AttributeEntry(
                code=segments.get(attribute_class),
                description=self.resolver.resolve_sync(attribute_class, segments.get(attribute_class)),
            )
            for attribute_class in AttributeClass
        })

    def parse(self, code: str, debug: bool = False) -> DecodedProduct:
        """Split and describe in one step."""
        return self.describe(self.split(code, debug=debug))

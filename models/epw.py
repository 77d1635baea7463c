"""
EPW decoder schemas.

Covers the decoded product, the decode result envelope, and the
documents owned by the exception store (records, snapshots, backups).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.base import BaseSchema, CamelSchema


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttributeClass(str, Enum):
    """The six attribute classes an EPW code decodes into."""
    TIPO = "tipo"
    CERTIF = "certif"
    MODELO = "modelo"
    COMPRIM = "comprim"
    COR = "cor"
    ACABAMENTO = "acabamento"


ATTRIBUTE_CLASSES: tuple[AttributeClass, ...] = tuple(AttributeClass)


# ===================
# DECODED PRODUCT
# ===================

class AttributeEntry(BaseModel):
    """
    One resolved attribute: raw code plus description.

    Serialized as {"l": code, "d": description}.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    code: str = Field("", alias="l", description="Raw segment code")
    description: str = Field("", alias="d", description="Resolved description")


class DecodedProduct(BaseModel):
    """Full decode of one EPW code, one entry per attribute class."""
    model_config = ConfigDict(frozen=True)

    tipo: AttributeEntry = Field(default_factory=AttributeEntry)
    certif: AttributeEntry = Field(default_factory=AttributeEntry)
    modelo: AttributeEntry = Field(default_factory=AttributeEntry)
    comprim: AttributeEntry = Field(default_factory=AttributeEntry)
    cor: AttributeEntry = Field(default_factory=AttributeEntry)
    acabamento: AttributeEntry = Field(default_factory=AttributeEntry)

    def get(self, attribute_class: AttributeClass) -> AttributeEntry:
        return getattr(self, attribute_class.value)


class DecodeResult(BaseModel):
    """Tagged decode outcome. Failures are values, never raised."""
    success: bool
    message: str
    product: Optional[DecodedProduct] = None

    @classmethod
    def ok(cls, product: DecodedProduct, message: str) -> "DecodeResult":
        return cls(success=True, message=message, product=product)

    @classmethod
    def fail(cls, message: str) -> "DecodeResult":
        return cls(success=False, message=message)


# ===================
# EXCEPTION STORE DOCUMENTS
# ===================

class ManualMapping(CamelSchema):
    """Raw codes entered by a user to override part of a decode."""
    tipo: Optional[str] = None
    certif: Optional[str] = None
    modelo: Optional[str] = None
    comprim: Optional[str] = None
    cor: Optional[str] = None
    acabamento: Optional[str] = None

    @field_validator("*")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().upper()

    def get(self, attribute_class: AttributeClass) -> Optional[str]:
        return getattr(self, attribute_class.value)


class ExceptionRecord(CamelSchema):
    """A manual exception for one normalized code."""
    code: str = Field(..., min_length=1)
    reason: str = ""
    manual_mapping: Optional[ManualMapping] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("code", mode="before")
    @classmethod
    def code_uppercase(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class ExceptionStoreSnapshot(CamelSchema):
    """Whole exception table as persisted under the primary key."""
    exceptions: list[ExceptionRecord] = Field(default_factory=list)
    version: int = 1
    last_updated: datetime = Field(default_factory=utc_now)

    def find(self, code: str) -> Optional[ExceptionRecord]:
        for record in self.exceptions:
            if record.code == code:
                return record
        return None


class BackupEnvelope(CamelSchema):
    """Backup / export wrapper around a snapshot."""
    data: ExceptionStoreSnapshot
    backup_date: datetime = Field(default_factory=utc_now)
    version: int = 1
    source: str = "manual"


class IntegrityReport(CamelSchema):
    """Structural check result over the persisted snapshot."""
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


# ===================
# API SCHEMAS
# ===================

class DecodeRequest(BaseSchema):
    """Decode a single code."""
    code: str = Field(..., description="Raw EPW article code", examples=["RSC23CL01"])
    debug: bool = Field(False, description="Log the segment breakdown")


class BatchDecodeRequest(BaseSchema):
    """Decode many codes in one call."""
    codes: list[str] = Field(..., max_length=5000, description="Raw EPW article codes")


class ExceptionUpsert(BaseSchema):
    """Create or replace the exception for a code."""
    reason: str = Field(..., min_length=1, max_length=500, description="Why the automatic decode is wrong")
    manual_mapping: Optional[ManualMapping] = Field(None, description="Raw codes overriding the decode")


class PreloadRequest(BaseSchema):
    """Attribute classes to warm; all classes when omitted."""
    classes: Optional[list[AttributeClass]] = None


class OperationResult(BaseSchema):
    """Boolean outcome of a store operation."""
    success: bool
    message: str

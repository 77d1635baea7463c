"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    CamelSchema,
)
from models.epw import (
    AttributeClass,
    ATTRIBUTE_CLASSES,
    AttributeEntry,
    DecodedProduct,
    DecodeResult,
    ManualMapping,
    ExceptionRecord,
    ExceptionStoreSnapshot,
    BackupEnvelope,
    IntegrityReport,
    DecodeRequest,
    BatchDecodeRequest,
    ExceptionUpsert,
    PreloadRequest,
    OperationResult,
)

__all__ = [
    # Base
    "BaseSchema",
    "CamelSchema",

    # EPW
    "AttributeClass",
    "ATTRIBUTE_CLASSES",
    "AttributeEntry",
    "DecodedProduct",
    "DecodeResult",
    "ManualMapping",
    "ExceptionRecord",
    "ExceptionStoreSnapshot",
    "BackupEnvelope",
    "IntegrityReport",
    "DecodeRequest",
    "BatchDecodeRequest",
    "ExceptionUpsert",
    "PreloadRequest",
    "OperationResult",
]

"""Field descriptors, record schemas and the primitive type table."""

from fhircodec.schema.field import Binding, FieldDescriptor
from fhircodec.schema.record_schema import ChoiceGroup, RecordSchema, variant_suffix
from fhircodec.schema.types import (
    PRIMITIVE_TYPES,
    BindingStrength,
    FieldKind,
    JsonKind,
    PrimitiveType,
    SchemaKind,
)

__all__ = [
    "PRIMITIVE_TYPES",
    "Binding",
    "BindingStrength",
    "ChoiceGroup",
    "FieldDescriptor",
    "FieldKind",
    "JsonKind",
    "PrimitiveType",
    "RecordSchema",
    "SchemaKind",
    "variant_suffix",
]

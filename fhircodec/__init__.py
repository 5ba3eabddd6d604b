"""Typed schema-and-codec layer for FHIR R4 resources.

Record schemas are loaded once from packaged definition documents into a
read-only registry. Records decode from and encode to FHIR JSON and XML,
resolving choice-typed fields and validating cardinality and bindings.
"""

from fhircodec.codec.json_codec import decode, dumps, encode, loads
from fhircodec.codec.validation import IssueCode, ValidationIssue, validate_record
from fhircodec.codec.xml_codec import decode_xml, encode_xml
from fhircodec.errors import (
    AmbiguousChoiceError,
    DecodeError,
    FhirCodecError,
    SchemaError,
    ValidationError,
)
from fhircodec.models.record import ChoiceValue, Record
from fhircodec.registry import ResourceRegistry, get_registry

__all__ = [
    "AmbiguousChoiceError",
    "ChoiceValue",
    "DecodeError",
    "FhirCodecError",
    "IssueCode",
    "Record",
    "ResourceRegistry",
    "SchemaError",
    "ValidationError",
    "ValidationIssue",
    "decode",
    "decode_xml",
    "dumps",
    "encode",
    "encode_xml",
    "get_registry",
    "loads",
    "validate_record",
]

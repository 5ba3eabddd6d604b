"""Shared FHIR value parsing utilities.

Consolidates reference-string and coding extraction used by validation and
the CLI. All functions are pure and handle missing/malformed data gracefully.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

_URN_PREFIXES = ("urn:uuid:", "urn:oid:")
_CONTAINED_PREFIX = "#"

# [base/]Type/id[/_history/version]
_LITERAL_REFERENCE = re.compile(
    r"(?:(?P<base>https?://\S+?)/)?"
    r"(?P<type>[A-Z][A-Za-z]+)/(?P<id>[A-Za-z0-9\-\.]{1,64})"
    r"(?:/_history/(?P<version>[A-Za-z0-9\-\.]{1,64}))?"
)


class ReferenceKind(str, Enum):
    RELATIVE = "relative"
    ABSOLUTE = "absolute"
    CONTAINED = "contained"
    URN = "urn"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReferenceTarget:
    """Parsed Reference.reference string.

    Args:
        kind: Which of the reference forms the string uses.
        resource_id: Target id (or the URN's value, or the contained anchor).
        resource_type: Target type for relative and absolute forms.
        version: History version when the string carries one.
    """

    kind: ReferenceKind
    resource_id: str | None = None
    resource_type: str | None = None
    version: str | None = None


def extract_reference_id(reference: str | None) -> str | None:
    """Extract FHIR ID from a reference string.

    Handles these formats:
    - "urn:uuid:abc-123" -> "abc-123"
    - "Patient/abc-123" -> "abc-123"
    - "#contained-1" -> "contained-1"

    Args:
        reference: FHIR reference string

    Returns:
        Extracted ID or None if reference is empty/None
    """
    target = parse_reference(reference)
    return target.resource_id if target is not None else None


def parse_reference(reference: str | None) -> ReferenceTarget | None:
    """Parse a literal reference string.

    Args:
        reference: Reference.reference value

    Returns:
        ReferenceTarget, or None if reference is empty/None. Strings matching
        no known form come back with kind UNKNOWN and the raw value as id.
    """
    if not reference:
        return None

    if reference.startswith(_CONTAINED_PREFIX):
        return ReferenceTarget(ReferenceKind.CONTAINED, resource_id=reference[1:])

    for prefix in _URN_PREFIXES:
        if reference.startswith(prefix):
            return ReferenceTarget(ReferenceKind.URN, resource_id=reference[len(prefix):])

    match = _LITERAL_REFERENCE.fullmatch(reference)
    if match:
        kind = ReferenceKind.ABSOLUTE if match.group("base") else ReferenceKind.RELATIVE
        return ReferenceTarget(
            kind,
            resource_id=match.group("id"),
            resource_type=match.group("type"),
            version=match.group("version"),
        )
    return ReferenceTarget(ReferenceKind.UNKNOWN, resource_id=reference)


def contained_ids(record: Any) -> set[str]:
    """Collect the ids of a record's contained resources.

    Args:
        record: Record whose schema may declare a 'contained' field

    Returns:
        Set of ids (contained resources without an id are skipped)
    """
    if not record.schema.has_field("contained"):
        return set()
    return {
        resource.get("id")
        for resource in record.contained
        if resource.get("id")
    }


def iter_codings(value: Any, type_code: str) -> Iterator[tuple[str | None, str]]:
    """Yield (system, code) pairs carried by a coded value.

    Handles plain `code` primitives, Coding and CodeableConcept records.
    Codings without a code are skipped.

    Args:
        value: Field value
        type_code: Type code of the field the value belongs to

    Yields:
        Tuples of (system or None, code)
    """
    if type_code == "code":
        if isinstance(value, str):
            yield None, value
    elif type_code == "Coding":
        if value.get("code"):
            yield value.get("system"), value.get("code")
    elif type_code == "CodeableConcept":
        for coding in value.coding:
            if coding.get("code"):
                yield coding.get("system"), coding.get("code")


def extract_first_coding(codeable_concept: Any) -> Any | None:
    """Extract first coding from a CodeableConcept record.

    Args:
        codeable_concept: CodeableConcept record

    Returns:
        First Coding record or None if none
    """
    codings = codeable_concept.coding
    return codings[0] if codings else None

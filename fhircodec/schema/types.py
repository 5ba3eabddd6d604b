"""Primitive type table and schema enums.

Lexical patterns follow the FHIR R4 primitive definitions. Each primitive also
declares the JSON value kind it decodes from, which the codecs use to reject
wrongly-typed values before validation runs.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class FieldKind(str, Enum):
    """Semantic kind of a field's values."""

    PRIMITIVE = "primitive"
    COMPOSITE = "composite"
    REFERENCE = "reference"
    RESOURCE = "resource"


class SchemaKind(str, Enum):
    """Kind of a record schema."""

    RESOURCE = "resource"
    COMPLEX_TYPE = "complex-type"
    BACKBONE = "backbone"


class BindingStrength(str, Enum):
    """How strictly a coded field must draw from its value set."""

    REQUIRED = "required"
    EXTENSIBLE = "extensible"
    PREFERRED = "preferred"
    EXAMPLE = "example"


class JsonKind(str, Enum):
    """JSON value kind a primitive is carried as."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    STRING = "string"


@dataclass(frozen=True)
class PrimitiveType:
    """A FHIR primitive type.

    Args:
        code: Type code as used in definitions (e.g. 'dateTime').
        json_kind: JSON value kind the primitive is carried as.
        pattern: Compiled lexical pattern, None when unconstrained.
        min_value: Inclusive lower bound for integer kinds.
        max_value: Inclusive upper bound for integer kinds.
    """

    code: str
    json_kind: JsonKind
    pattern: re.Pattern | None = None
    min_value: int | None = None
    max_value: int | None = None

    def matches(self, value: str) -> bool:
        """Check a string value against the lexical pattern."""
        return self.pattern is None or self.pattern.fullmatch(value) is not None

    def accepts(self, value) -> bool:
        """Check that a Python value has this primitive's JSON kind.

        bool is excluded from the numeric kinds even though it subclasses int,
        and NaN and the infinities are not decimals.
        """
        if self.json_kind is JsonKind.BOOLEAN:
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False
        if self.json_kind is JsonKind.INTEGER:
            return isinstance(value, int)
        if self.json_kind is JsonKind.DECIMAL:
            return isinstance(value, (int, float, Decimal)) and Decimal(value).is_finite()
        return isinstance(value, str)

    def in_range(self, value: int) -> bool:
        """Check an integer value against min_value/max_value."""
        if self.min_value is not None and value < self.min_value:
            return False
        return self.max_value is None or value <= self.max_value


_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

_YEAR = r"([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
_TIME = r"([01][0-9]|2[0-3]):[0-5][0-9]:([0-5][0-9]|60)(\.[0-9]+)?"
_ZONE = r"(Z|(\+|-)((0[0-9]|1[0-3]):[0-5][0-9]|14:00))"
_MONTH_DAY = r"(0[1-9]|1[0-2])-(0[1-9]|[1-2][0-9]|3[0-1])"


def _primitive(code: str, json_kind: JsonKind, pattern: str | None = None, **bounds) -> PrimitiveType:
    compiled = re.compile(pattern) if pattern is not None else None
    return PrimitiveType(code=code, json_kind=json_kind, pattern=compiled, **bounds)


PRIMITIVE_TYPES: dict[str, PrimitiveType] = {
    p.code: p
    for p in (
        _primitive("base64Binary", JsonKind.STRING, r"(\s*([0-9a-zA-Z\+/=]){4}\s*)+"),
        _primitive("boolean", JsonKind.BOOLEAN),
        _primitive("canonical", JsonKind.STRING, r"\S*"),
        _primitive("code", JsonKind.STRING, r"[^\s]+(\s[^\s]+)*"),
        _primitive("date", JsonKind.STRING, rf"{_YEAR}(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1]))?)?"),
        _primitive(
            "dateTime",
            JsonKind.STRING,
            rf"{_YEAR}(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1])(T{_TIME}{_ZONE})?)?)?",
        ),
        _primitive("decimal", JsonKind.DECIMAL, r"-?(0|[1-9][0-9]*)(\.[0-9]+)?([eE][+-]?[0-9]+)?"),
        _primitive("id", JsonKind.STRING, r"[A-Za-z0-9\-\.]{1,64}"),
        _primitive("instant", JsonKind.STRING, rf"{_YEAR}-{_MONTH_DAY}T{_TIME}{_ZONE}"),
        _primitive("integer", JsonKind.INTEGER, min_value=_INT32_MIN, max_value=_INT32_MAX),
        _primitive("markdown", JsonKind.STRING, r"[ \r\n\t\S]+"),
        _primitive("oid", JsonKind.STRING, r"urn:oid:[0-2](\.(0|[1-9][0-9]*))+"),
        _primitive("positiveInt", JsonKind.INTEGER, min_value=1, max_value=_INT32_MAX),
        _primitive("string", JsonKind.STRING, r"[ \r\n\t\S]+"),
        _primitive("time", JsonKind.STRING, _TIME),
        _primitive("unsignedInt", JsonKind.INTEGER, min_value=0, max_value=_INT32_MAX),
        _primitive("uri", JsonKind.STRING, r"\S*"),
        _primitive("url", JsonKind.STRING, r"\S*"),
        _primitive("uuid", JsonKind.STRING, r"urn:uuid:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"),
        _primitive("xhtml", JsonKind.STRING),
    )
}


def is_primitive(type_code: str) -> bool:
    """Return True if type_code names a FHIR primitive type."""
    return type_code in PRIMITIVE_TYPES

"""Definition document loader.

Each JSON document under definitions/ describes one resource or data type,
with its elements in serialization order and the backbone types it owns.
Documents are validated with pydantic before being turned into immutable
RecordSchema objects, so a malformed document fails at startup with the
file named in the error.
"""

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from fhircodec.constants import ANY_RESOURCE, REFERENCE_TYPE, UNBOUNDED_MARKER
from fhircodec.errors import SchemaError
from fhircodec.schema.field import Binding, FieldDescriptor
from fhircodec.schema.record_schema import RecordSchema, variant_suffix
from fhircodec.schema.types import BindingStrength, FieldKind, SchemaKind, is_primitive

logger = logging.getLogger(__name__)

DEFINITION_SUBDIRS = ("types", "resources")


class BindingDefinition(BaseModel):
    """Terminology binding as written in a definition document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    strength: BindingStrength
    value_set: str | None = Field(default=None, alias="valueSet")
    codes: dict[str, list[str]] = Field(default_factory=dict)


class VariantDefinition(BaseModel):
    """One typed variant of a choice element."""

    model_config = ConfigDict(extra="forbid")

    type: str
    binding: BindingDefinition | None = None
    targets: list[str] = Field(default_factory=list)


class ElementDefinition(BaseModel):
    """One element of a type definition.

    Exactly one of `type` or `choice` is set. `max` is an integer or '*';
    digit strings are accepted and normalized to integers.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    type: str | None = None
    choice: list[VariantDefinition] | None = None
    min: int = Field(default=0, ge=0)
    max: int | None = 1
    binding: BindingDefinition | None = None
    targets: list[str] = Field(default_factory=list)

    @field_validator("max", mode="before")
    @classmethod
    def normalize_max(cls, value):
        """Map '*' to None (unbounded) and digit strings to integers."""
        if value == UNBOUNDED_MARKER or value is None:
            return None
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return value

    @model_validator(mode="after")
    def check_shape(self) -> "ElementDefinition":
        if (self.type is None) == (self.choice is None):
            raise ValueError(f"element '{self.name}' must declare exactly one of type or choice")
        if self.choice is not None and not self.choice:
            raise ValueError(f"choice element '{self.name}' has no variants")
        if self.max is not None and self.max < self.min:
            raise ValueError(f"element '{self.name}' has max {self.max} below min {self.min}")
        return self


class TypeDefinition(BaseModel):
    """A resource, data type or backbone element definition."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    kind: Literal["resource", "complex-type", "backbone"]
    elements: list[ElementDefinition]
    search_params: list[str] = Field(default_factory=list, alias="searchParams")
    backbone_elements: list["TypeDefinition"] = Field(default_factory=list, alias="backboneElements")


def _field_kind(type_code: str) -> FieldKind:
    if is_primitive(type_code):
        return FieldKind.PRIMITIVE
    if type_code == REFERENCE_TYPE:
        return FieldKind.REFERENCE
    if type_code == ANY_RESOURCE:
        return FieldKind.RESOURCE
    return FieldKind.COMPOSITE


def _binding(definition: BindingDefinition | None) -> Binding | None:
    if definition is None:
        return None
    return Binding(
        strength=definition.strength,
        value_set=definition.value_set,
        valid_codes={system: frozenset(codes) for system, codes in definition.codes.items()},
    )


def _descriptors(type_name: str, element: ElementDefinition) -> list[FieldDescriptor]:
    """Expand one element into descriptors; choice elements yield one per variant."""
    if element.choice is None:
        return [
            FieldDescriptor(
                name=element.name,
                type_code=element.type,
                kind=_field_kind(element.type),
                path=f"{type_name}.{element.name}",
                min_occurs=element.min,
                max_occurs=element.max,
                binding=_binding(element.binding),
                target_types=tuple(element.targets),
            )
        ]

    return [
        FieldDescriptor(
            name=f"{element.name}{variant_suffix(variant.type)}",
            type_code=variant.type,
            kind=_field_kind(variant.type),
            path=f"{type_name}.{element.name}[x]",
            min_occurs=element.min,
            max_occurs=element.max,
            binding=_binding(variant.binding),
            target_types=tuple(variant.targets),
            choice_group=element.name,
        )
        for variant in element.choice
    ]


def build_schemas(definition: TypeDefinition) -> list[RecordSchema]:
    """Build the schema for a definition and every backbone type it owns."""
    fields: list[FieldDescriptor] = []
    for element in definition.elements:
        fields.extend(_descriptors(definition.name, element))

    schemas = [
        RecordSchema(
            name=definition.name,
            kind=SchemaKind(definition.kind),
            fields=tuple(fields),
            search_params=tuple(definition.search_params),
        )
    ]
    for backbone in definition.backbone_elements:
        schemas.extend(build_schemas(backbone))
    return schemas


def parse_definition(text: str, source: str) -> list[RecordSchema]:
    """Parse one definition document.

    Args:
        text: JSON document text.
        source: File name used in error messages.

    Returns:
        Schemas for the type and its backbone elements.

    Raises:
        SchemaError: If the document is not valid JSON or not a valid definition.
    """
    try:
        definition = TypeDefinition.model_validate(json.loads(text))
    except json.JSONDecodeError as e:
        raise SchemaError(f"invalid JSON in definition {source}: {e}") from e
    except ValidationError as e:
        raise SchemaError(f"invalid definition {source}: {e}") from e
    return build_schemas(definition)


def _iter_documents(root) -> Iterable[tuple[str, str]]:
    """Yield (name, text) for every definition document under root."""
    for subdir in DEFINITION_SUBDIRS:
        directory = root.joinpath(subdir)
        if not directory.is_dir():
            continue
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.endswith(".json"):
                yield f"{subdir}/{entry.name}", entry.read_text(encoding="utf-8")


def load_definitions(directory: Path | None = None) -> list[RecordSchema]:
    """Load record schemas from definition documents.

    Args:
        directory: Directory with types/ and resources/ subdirectories.
            Defaults to the definitions packaged with fhircodec.

    Returns:
        All schemas found, data types before resources.
    """
    root = directory if directory is not None else resources.files(__package__)
    schemas: list[RecordSchema] = []
    for source, text in _iter_documents(root):
        parsed = parse_definition(text, source)
        logger.debug("Loaded %d schema(s) from %s", len(parsed), source)
        schemas.extend(parsed)
    return schemas

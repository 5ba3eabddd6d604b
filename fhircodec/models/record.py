"""Record instances: mutable values conforming to a record schema.

A Record holds one value per schema slot. Choice groups hold a single
ChoiceValue, so populating one variant replaces any other variant of the same
group and at most one variant is ever present. Constraints such as
cardinality and bindings are checked at decode/validation time, not on
assignment, so partial records can be built up freely.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

from fhircodec.registry import get_registry
from fhircodec.schema.field import FieldDescriptor
from fhircodec.schema.record_schema import ChoiceGroup, RecordSchema, variant_suffix
from fhircodec.schema.types import FieldKind

if TYPE_CHECKING:
    from fhircodec.codec.validation import ValidationIssue


@dataclass(frozen=True)
class ChoiceValue:
    """The populated variant of a choice group.

    Args:
        type_code: Variant type code, e.g. 'boolean' or 'Quantity'.
        value: The variant's payload.
    """

    type_code: str
    value: Any

    def key(self, group: str) -> str:
        """Serialized key for this variant, e.g. 'deceasedBoolean'."""
        return f"{group}{variant_suffix(self.type_code)}"


def _is_populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, list):
        return len(value) > 0
    return True


class Record:
    """A record of a given schema.

    Fields are read and written as attributes (`patient.gender`) or items
    (`patient["for"]`, for names that are Python keywords). Repeating fields
    read as a list that is created on first access.

    Args:
        schema: RecordSchema, or a type name resolved through the registry.
        **fields: Initial field values, by serialized key or group name.
    """

    def __init__(self, schema: RecordSchema | str, /, **fields: Any):
        if isinstance(schema, str):
            schema = get_registry().require(schema)
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "extras", {})
        for name, value in fields.items():
            setattr(self, name, value)

    # --- schema access -----------------------------------------------------

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    @property
    def type_name(self) -> str:
        return self._schema.name

    @property
    def resource_type(self) -> str | None:
        """Resource type name, None for data types and backbone elements."""
        return self._schema.name if self._schema.is_resource else None

    # --- field access ------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"{self._schema.name} has no field '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or name == "extras":
            object.__setattr__(self, name, value)
            return
        try:
            self[name] = value
        except KeyError:
            raise AttributeError(f"{self._schema.name} has no field '{name}'") from None

    def __delattr__(self, name: str) -> None:
        self.__setattr__(name, None)

    def __getitem__(self, name: str) -> Any:
        slot = self._schema.slot(name)
        if slot is None:
            raise KeyError(name)
        if isinstance(slot, ChoiceGroup):
            current = self._values.get(slot.name)
            if name == slot.name:
                return current
            variant = self._schema.field(name)
            if current is not None and current.type_code == variant.type_code:
                return current.value
            return None
        if slot.is_list:
            return self._values.setdefault(name, [])
        return self._values.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        slot = self._schema.slot(name)
        if slot is None:
            raise KeyError(name)
        if isinstance(slot, ChoiceGroup):
            self._set_choice(slot, name, value)
            return

        if value is None:
            self._values.pop(name, None)
            return
        if slot.is_list:
            if not isinstance(value, (list, tuple)):
                raise TypeError(f"{slot.path} repeats; assign a list")
            for item in value:
                _check_value(slot, item)
            self._values[name] = list(value)
        else:
            _check_value(slot, value)
            self._values[name] = value

    def __delitem__(self, name: str) -> None:
        self[name] = None

    def _set_choice(self, group: ChoiceGroup, name: str, value: Any) -> None:
        current = self._values.get(group.name)
        if name == group.name:
            if value is None:
                self._values.pop(group.name, None)
                return
            if not isinstance(value, ChoiceValue):
                raise TypeError(f"{group.path} takes a ChoiceValue; or assign a variant such as {group.variants[0].name}")
            variant = group.variant(value.type_code)
            if variant is None:
                raise ValueError(f"{group.path} has no '{value.type_code}' variant")
            _check_value(variant, value.value)
            self._values[group.name] = value
            return

        variant = self._schema.field(name)
        if value is None:
            if current is not None and current.type_code == variant.type_code:
                self._values.pop(group.name)
            return
        _check_value(variant, value)
        self._values[group.name] = ChoiceValue(variant.type_code, value)

    def choice(self, group: str) -> ChoiceValue | None:
        """Get the populated variant of a choice group."""
        if self._schema.choice_group(group) is None:
            raise KeyError(group)
        return self._values.get(group)

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value, returning default when absent or unknown."""
        try:
            value = self[name]
        except KeyError:
            return default
        return value if _is_populated(value) else default

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        try:
            return _is_populated(self[name])
        except KeyError:
            return False

    def items(self) -> Iterator[tuple[str, Any]]:
        """Yield (serialized key, value) for populated fields in declared order."""
        for slot in self._schema.slots():
            value = self._values.get(slot.name)
            if not _is_populated(value):
                continue
            if isinstance(slot, ChoiceGroup):
                yield value.key(slot.name), value.value
            else:
                yield slot.name, value

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self.items())

    # --- comparison and display -------------------------------------------

    def _populated(self) -> dict[str, Any]:
        return {name: value for name, value in self._values.items() if _is_populated(value)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return (
            self._schema.name == other._schema.name
            and self._populated() == other._populated()
            and self.extras == other.extras
        )

    __hash__ = None

    def __repr__(self) -> str:
        fields = ", ".join(f"{key}={value!r}" for key, value in self.items())
        return f"{self._schema.name}({fields})"

    def __deepcopy__(self, memo: dict) -> Record:
        # Schemas are immutable and shared; only owned values are copied
        clone = Record(self._schema)
        memo[id(self)] = clone
        object.__setattr__(clone, "_values", copy.deepcopy(self._values, memo))
        object.__setattr__(clone, "extras", copy.deepcopy(self.extras, memo))
        return clone

    def copy(self) -> Record:
        """Deep copy of this record and everything it owns."""
        return copy.deepcopy(self)

    # --- codec shortcuts ---------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Encode to the FHIR JSON object form."""
        # Import here to avoid circular imports
        from fhircodec.codec.json_codec import encode

        return encode(self)

    def to_json(self, indent: int | None = None) -> str:
        from fhircodec.codec.json_codec import dumps

        return dumps(self, indent=indent)

    def to_xml(self, pretty: bool = False) -> str:
        from fhircodec.codec.xml_codec import encode_xml

        return encode_xml(self, pretty=pretty)

    @classmethod
    def from_dict(cls, data: dict[str, Any], type_name: str | None = None, **options: Any) -> Record:
        from fhircodec.codec.json_codec import decode

        return decode(data, type_name, **options)

    @classmethod
    def from_json(cls, text: str | bytes, type_name: str | None = None, **options: Any) -> Record:
        from fhircodec.codec.json_codec import decode

        return decode(text, type_name, **options)

    @classmethod
    def from_xml(cls, text: str | bytes, type_name: str | None = None, **options: Any) -> Record:
        from fhircodec.codec.xml_codec import decode_xml

        return decode_xml(text, type_name, **options)

    def validate(self, **options: Any) -> list[ValidationIssue]:
        """Return every cardinality, binding and value issue in this record."""
        from fhircodec.codec.validation import validate_record

        return validate_record(self, **options)

    def is_valid(self, **options: Any) -> bool:
        return not self.validate(**options)


def _check_value(descriptor: FieldDescriptor, value: Any) -> None:
    """Reject non-record values for composite, reference and resource fields."""
    if descriptor.kind is FieldKind.PRIMITIVE:
        if isinstance(value, Record):
            raise TypeError(f"{descriptor.path} is a {descriptor.type_code} primitive, got a record")
        return
    if not isinstance(value, Record):
        raise TypeError(f"{descriptor.path} takes a {descriptor.type_code} record, got {type(value).__name__}")
    if descriptor.kind is FieldKind.RESOURCE:
        if not value.schema.is_resource:
            raise TypeError(f"{descriptor.path} takes a resource, got {value.type_name}")
    elif value.type_name != descriptor.type_code:
        raise TypeError(f"{descriptor.path} takes a {descriptor.type_code} record, got {value.type_name}")

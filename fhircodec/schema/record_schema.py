"""Record schemas: ordered field descriptors for one named record type."""

from dataclasses import dataclass, field
from typing import Iterator

from fhircodec.constants import EXTENSION_FIELDS
from fhircodec.schema.field import Binding, FieldDescriptor
from fhircodec.schema.types import FieldKind, SchemaKind


def variant_suffix(type_code: str) -> str:
    """Serialized suffix of a choice variant: 'dateTime' -> 'DateTime'."""
    return type_code[:1].upper() + type_code[1:]


@dataclass(frozen=True)
class ChoiceGroup:
    """A polymorphic slot and its mutually exclusive variants.

    Args:
        name: Group name, e.g. 'value'.
        variants: Variant descriptors in declared order.
    """

    name: str
    variants: tuple[FieldDescriptor, ...]

    @property
    def min_occurs(self) -> int:
        return self.variants[0].min_occurs

    @property
    def max_occurs(self) -> int | None:
        return self.variants[0].max_occurs

    @property
    def path(self) -> str:
        return self.variants[0].path

    @property
    def type_codes(self) -> tuple[str, ...]:
        return tuple(v.type_code for v in self.variants)

    def variant(self, type_code: str) -> FieldDescriptor | None:
        """Get the variant descriptor for a type code."""
        for descriptor in self.variants:
            if descriptor.type_code == type_code:
                return descriptor
        return None


Slot = FieldDescriptor | ChoiceGroup


@dataclass(frozen=True)
class RecordSchema:
    """Ordered field descriptors for one record type.

    Nested backbone types (e.g. 'Patient.Contact') are schemas of their own,
    referenced by name from their parent's descriptors.

    Args:
        name: Type name, e.g. 'Patient' or 'Patient.Contact'.
        kind: Resource, complex data type or backbone element.
        fields: Descriptors in declared (serialization) order.
        search_params: Search parameter names, resources only.
    """

    name: str
    kind: SchemaKind
    fields: tuple[FieldDescriptor, ...]
    search_params: tuple[str, ...] = ()
    _by_name: dict[str, FieldDescriptor] = field(init=False, repr=False, compare=False, hash=False)
    _groups: dict[str, ChoiceGroup] = field(init=False, repr=False, compare=False, hash=False)
    _slots: tuple[Slot, ...] = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        by_name: dict[str, FieldDescriptor] = {}
        grouped: dict[str, list[FieldDescriptor]] = {}
        order: list[str] = []
        for descriptor in self.fields:
            by_name[descriptor.name] = descriptor
            key = descriptor.choice_group or descriptor.name
            if key not in grouped:
                grouped[key] = []
                order.append(key)
            grouped[key].append(descriptor)

        groups = {
            key: ChoiceGroup(key, tuple(members))
            for key, members in grouped.items()
            if members[0].is_choice
        }
        slots = tuple(groups[key] if key in groups else grouped[key][0] for key in order)

        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_groups", groups)
        object.__setattr__(self, "_slots", slots)

    @property
    def is_resource(self) -> bool:
        return self.kind is SchemaKind.RESOURCE

    @property
    def supports_extensions(self) -> bool:
        """True if the schema declares an extension slot."""
        return any(name in self._by_name for name in EXTENSION_FIELDS)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self._by_name)

    @property
    def choice_groups(self) -> dict[str, ChoiceGroup]:
        return dict(self._groups)

    def field(self, name: str) -> FieldDescriptor | None:
        """Get a descriptor by serialized key."""
        return self._by_name.get(name)

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    def choice_group(self, name: str) -> ChoiceGroup | None:
        return self._groups.get(name)

    def slots(self) -> tuple[Slot, ...]:
        """Plain fields and choice groups in declared order."""
        return self._slots

    def slot(self, name: str) -> Slot | None:
        """Resolve a field name, variant name or group name to its slot.

        Variant names resolve to their group.
        """
        if name in self._groups:
            return self._groups[name]
        descriptor = self._by_name.get(name)
        if descriptor is not None and descriptor.is_choice:
            return self._groups[descriptor.choice_group]
        return descriptor

    def referenced_types(self) -> set[str]:
        """Type names of composite and reference fields."""
        return {
            d.type_code
            for d in self.fields
            if d.kind in (FieldKind.COMPOSITE, FieldKind.REFERENCE)
        }

    def bindings(self) -> Iterator[tuple[FieldDescriptor, Binding]]:
        """Yield every (descriptor, binding) pair declared on this schema.

        Exposes code system URIs and strengths so an external terminology
        service can be consulted by calling code.
        """
        for descriptor in self.fields:
            if descriptor.binding is not None:
                yield descriptor, descriptor.binding

"""Field descriptors: the per-field half of a record schema.

A descriptor carries everything the codec needs to read, write and validate
one serialized key: its type, cardinality, terminology binding, allowed
reference targets and, for polymorphic slots, the choice group it belongs to.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from fhircodec.constants import ANY_RESOURCE
from fhircodec.schema.types import PRIMITIVE_TYPES, BindingStrength, FieldKind, PrimitiveType


@dataclass(frozen=True)
class Binding:
    """Terminology binding of a coded field.

    Args:
        strength: Binding strength; only REQUIRED is enforced.
        value_set: Canonical URL of the bound value set.
        valid_codes: Legal codes keyed by code system URI.
    """

    strength: BindingStrength
    value_set: str | None = None
    valid_codes: Mapping[str, frozenset[str]] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        frozen = {system: frozenset(codes) for system, codes in self.valid_codes.items()}
        object.__setattr__(self, "valid_codes", MappingProxyType(frozen))

    @property
    def is_required(self) -> bool:
        return self.strength is BindingStrength.REQUIRED

    @property
    def systems(self) -> tuple[str, ...]:
        """Code system URIs with enumerated codes."""
        return tuple(self.valid_codes)

    @property
    def has_codes(self) -> bool:
        return any(self.valid_codes.values())

    def contains(self, code: str, system: str | None = None) -> bool:
        """Check whether a code belongs to the enumerated value set.

        Args:
            code: Code value.
            system: Code system the value declares. When None (plain `code`
                fields, or codings without a system) any system may match.

        Returns:
            True if the code is listed for the system.
        """
        if system is None:
            return any(code in codes for codes in self.valid_codes.values())
        return code in self.valid_codes.get(system, frozenset())


@dataclass(frozen=True)
class FieldDescriptor:
    """One serialized key of a record schema.

    Choice-group variants are separate descriptors that share a
    `choice_group`; their `name` is the serialized key (e.g. 'deceasedBoolean')
    and their cardinality is that of the group.

    Args:
        name: Serialized key, unique within the owning schema.
        type_code: Primitive code, data type name, nested schema name,
            'Reference' or 'Resource'.
        kind: Semantic kind derived from type_code.
        path: Definition path, e.g. 'Patient.deceased[x]'.
        min_occurs: Minimum number of values.
        max_occurs: Maximum number of values, None when unbounded.
        binding: Terminology binding for coded fields.
        target_types: Allowed reference target type names.
        choice_group: Choice group name for polymorphic variants.
    """

    name: str
    type_code: str
    kind: FieldKind
    path: str
    min_occurs: int = 0
    max_occurs: int | None = 1
    binding: Binding | None = None
    target_types: tuple[str, ...] = ()
    choice_group: str | None = None

    @property
    def is_list(self) -> bool:
        """True if the field serializes as an array."""
        return self.max_occurs is None or self.max_occurs > 1

    @property
    def is_required(self) -> bool:
        return self.min_occurs >= 1

    @property
    def is_choice(self) -> bool:
        return self.choice_group is not None

    @property
    def primitive(self) -> PrimitiveType | None:
        """Primitive type entry, None for non-primitive fields."""
        return PRIMITIVE_TYPES.get(self.type_code)

    def allows_target(self, resource_type: str) -> bool:
        """Check a reference target type against the allow-list.

        An empty allow-list, or one containing 'Resource', allows any type.
        """
        if not self.target_types or ANY_RESOURCE in self.target_types:
            return True
        return resource_type in self.target_types

    def accepts_count(self, count: int) -> bool:
        """Check a populated value count against [min_occurs, max_occurs]."""
        if count < self.min_occurs:
            return False
        return self.max_occurs is None or count <= self.max_occurs

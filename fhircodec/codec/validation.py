"""Record validation: cardinality, primitive values, bindings and references.

validate_record walks a Record depth-first in declared field order and
collects every issue instead of stopping at the first, so one decode reports
everything wrong with a document. Paths use serialized keys with list
indices, e.g. 'Patient.contact[2].gender' or 'Observation.value[x]'.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fhircodec import config
from fhircodec.constants import EXTENSION_FIELDS, PRIMITIVE_EXTENSION_PREFIX
from fhircodec.schema.field import Binding, FieldDescriptor
from fhircodec.schema.record_schema import ChoiceGroup
from fhircodec.schema.types import FieldKind, JsonKind
from fhircodec.terminology import TerminologyService
from fhircodec.utils.fhir_helpers import ReferenceKind, contained_ids, iter_codings, parse_reference

logger = logging.getLogger(__name__)


class IssueCode(str, Enum):
    """Category of a validation issue."""

    REQUIRED = "required"
    CARDINALITY = "cardinality"
    BINDING = "binding"
    VALUE = "value"
    REFERENCE = "reference"
    AMBIGUOUS_CHOICE = "ambiguous-choice"


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found in a record.

    Args:
        path: Location of the offending value.
        code: Issue category.
        message: Human-readable description.
    """

    path: str
    code: IssueCode
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class _Validator:
    def __init__(
        self,
        strict_references: bool,
        validate_primitives: bool,
        terminology: TerminologyService | None,
    ):
        self.strict_references = strict_references
        self.validate_primitives = validate_primitives
        self.terminology = terminology
        self.issues: list[ValidationIssue] = []

    def add(self, path: str, code: IssueCode, message: str) -> None:
        self.issues.append(ValidationIssue(path=path, code=code, message=message))

    def visit(self, record, path: str, anchors: set[str] | None) -> None:
        if anchors is None and record.schema.is_resource:
            anchors = contained_ids(record)
        for slot in record.schema.slots():
            if isinstance(slot, ChoiceGroup):
                self.check_choice(record, slot, path, anchors)
            else:
                self.check_field(record, slot, path, anchors)

    def check_field(self, record, descriptor: FieldDescriptor, path: str, anchors: set[str] | None) -> None:
        value = record.get(descriptor.name)
        if value is None:
            values = self._companion_only(record, descriptor)
        elif descriptor.is_list:
            values = value
        else:
            values = [value]

        if len(values) < descriptor.min_occurs:
            self.add(
                f"{path}.{descriptor.name}",
                IssueCode.REQUIRED,
                f"required field '{descriptor.name}' is missing",
            )
        if descriptor.max_occurs is not None and len(values) > descriptor.max_occurs:
            self.add(
                f"{path}.{descriptor.name}",
                IssueCode.CARDINALITY,
                f"'{descriptor.name}' allows at most {descriptor.max_occurs} value(s), found {len(values)}",
            )

        for index, item in enumerate(values):
            item_path = f"{path}.{descriptor.name}"
            if descriptor.is_list:
                item_path = f"{item_path}[{index}]"
            self.check_value(descriptor, item, item_path, anchors)

    @staticmethod
    def _companion_only(record, descriptor: FieldDescriptor) -> list[None]:
        """Placeholders for primitives present only through a `_name` companion.

        A companion carrying extensions (e.g. a data-absent-reason) stands in
        for the value, so the field counts as present.
        """
        if descriptor.kind is not FieldKind.PRIMITIVE:
            return []
        companion = record.extras.get(f"{PRIMITIVE_EXTENSION_PREFIX}{descriptor.name}")
        entries = companion if isinstance(companion, list) else [companion]
        return [None for entry in entries if isinstance(entry, dict) and any(entry.get(name) for name in EXTENSION_FIELDS)]

    def check_choice(self, record, group: ChoiceGroup, path: str, anchors: set[str] | None) -> None:
        current = record.choice(group.name)
        if current is None:
            if group.min_occurs >= 1:
                self.add(
                    f"{path}.{group.name}[x]",
                    IssueCode.REQUIRED,
                    f"one of {', '.join(d.name for d in group.variants)} is required",
                )
            return
        descriptor = group.variant(current.type_code)
        self.check_value(descriptor, current.value, f"{path}.{current.key(group.name)}", anchors)

    def check_value(self, descriptor: FieldDescriptor, value: Any, path: str, anchors: set[str] | None) -> None:
        # Primitive array positions that only carry a _name companion
        if value is None:
            return
        if descriptor.kind is FieldKind.PRIMITIVE:
            self.check_primitive(descriptor, value, path)
        else:
            self.visit(value, path, anchors)
            if descriptor.kind is FieldKind.REFERENCE and self.strict_references:
                self.check_reference(descriptor, value, path, anchors)
        if descriptor.binding is not None:
            self.check_binding(descriptor, descriptor.binding, value, path)

    def check_primitive(self, descriptor: FieldDescriptor, value: Any, path: str) -> None:
        primitive = descriptor.primitive
        if not primitive.accepts(value):
            self.add(
                path,
                IssueCode.VALUE,
                f"expected a {primitive.json_kind.value} for {descriptor.type_code}, got {type(value).__name__}",
            )
            return
        if not self.validate_primitives:
            return
        if primitive.json_kind is JsonKind.INTEGER:
            if not primitive.in_range(value):
                self.add(path, IssueCode.VALUE, f"{value} is out of range for {descriptor.type_code}")
        elif isinstance(value, str) and not primitive.matches(value):
            self.add(path, IssueCode.VALUE, f"'{value}' is not a valid {descriptor.type_code}")

    def code_accepted(self, binding: Binding, system: str | None, code: str) -> bool | None:
        """True/False when membership is known, None when nothing can tell."""
        if binding.contains(code, system):
            return True
        if self.terminology is not None:
            verdict = self.terminology.validate_code(binding.value_set, system, code)
            if verdict is not None:
                return verdict
        return False if binding.has_codes else None

    def check_binding(self, descriptor: FieldDescriptor, binding: Binding, value: Any, path: str) -> None:
        codings = list(iter_codings(value, descriptor.type_code))
        if not codings:
            return
        verdicts = [self.code_accepted(binding, system, code) for system, code in codings]
        if any(verdicts):
            return
        # CodeableConcept passes when any of its codings is a member
        shown = ", ".join(f"{system}|{code}" if system else code for system, code in codings)
        if binding.is_required and False in verdicts:
            self.add(
                path,
                IssueCode.BINDING,
                f"{shown} is not in required value set {binding.value_set or descriptor.path}",
            )
        else:
            logger.debug("Code %s at %s is outside %s binding %s", shown, path, binding.strength.value, binding.value_set)

    def check_reference(self, descriptor: FieldDescriptor, reference, path: str, anchors: set[str] | None) -> None:
        literal = reference.get("reference")
        declared_type = reference.get("type")
        target = parse_reference(literal)

        if target is None:
            resource_type = declared_type
        elif target.kind is ReferenceKind.CONTAINED:
            # A bare '#' points back at the containing resource
            if target.resource_id and target.resource_id not in (anchors or set()):
                self.add(
                    f"{path}.reference",
                    IssueCode.REFERENCE,
                    f"no contained resource with id '{target.resource_id}'",
                )
            return
        elif target.kind is ReferenceKind.UNKNOWN:
            self.add(f"{path}.reference", IssueCode.REFERENCE, f"'{literal}' is not a valid reference")
            return
        else:
            resource_type = target.resource_type or declared_type

        if resource_type and not descriptor.allows_target(resource_type):
            self.add(
                f"{path}.reference",
                IssueCode.REFERENCE,
                f"reference to {resource_type} not allowed; expected one of {', '.join(descriptor.target_types)}",
            )


def validate_record(
    record,
    *,
    path: str | None = None,
    strict_references: bool | None = None,
    validate_primitives: bool | None = None,
    terminology: TerminologyService | None = None,
) -> list[ValidationIssue]:
    """Validate a record and everything it contains.

    Args:
        record: Record to check.
        path: Path prefix for issues, defaults to the record's type name.
        strict_references: Check reference targets against each field's
            allow-list. Defaults to settings.strict_references.
        validate_primitives: Check primitive lexical forms and integer
            ranges. Defaults to settings.validate_primitives.
        terminology: Service consulted for required-binding misses.

    Returns:
        Every issue found, in traversal order. Empty when the record is valid.
    """
    if strict_references is None:
        strict_references = config.settings.strict_references
    if validate_primitives is None:
        validate_primitives = config.settings.validate_primitives

    validator = _Validator(strict_references, validate_primitives, terminology)
    validator.visit(record, path or record.type_name, None)
    return validator.issues

"""FHIR JSON codec.

Decode walks the target schema's slots in declared order, probing each choice
group for its variant keys, recursing into composites and contained
resources, and then runs validation over the finished record. Encode walks
the same order, so encode(decode(doc)) reproduces doc's key order for
documents written in canonical order.
"""

import copy
import json
import logging
from decimal import Decimal
from typing import Any

from fhircodec import config
from fhircodec.codec.validation import validate_record
from fhircodec.constants import PRIMITIVE_EXTENSION_PREFIX, RESOURCE_TYPE_KEY
from fhircodec.errors import AmbiguousChoiceError, DecodeError, ValidationError
from fhircodec.models.record import Record
from fhircodec.registry import ResourceRegistry, get_registry
from fhircodec.schema.field import FieldDescriptor
from fhircodec.schema.record_schema import ChoiceGroup, RecordSchema
from fhircodec.schema.types import FieldKind
from fhircodec.terminology import TerminologyService

logger = logging.getLogger(__name__)


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number" if Decimal(value).is_finite() else "non-finite number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _reject_constant(name: str) -> Any:
    raise DecodeError(f"invalid JSON: {name} is not a number")


def _load_document(document: dict | str | bytes) -> dict:
    if isinstance(document, (str, bytes, bytearray)):
        try:
            document = json.loads(document, parse_float=Decimal, parse_constant=_reject_constant)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(document, dict):
        raise DecodeError(f"expected a JSON object, got {_json_type(document)}")
    return document


def _root_schema(data: dict, type_name: str | None, registry: ResourceRegistry) -> RecordSchema:
    resource_type = data.get(RESOURCE_TYPE_KEY)
    if resource_type is not None and not isinstance(resource_type, str):
        raise DecodeError(f"resourceType must be a string, got {_json_type(resource_type)}")

    if type_name is not None:
        schema = registry.require(type_name)
        if resource_type is not None and resource_type != schema.name:
            raise DecodeError(f"expected resourceType '{schema.name}', got '{resource_type}'")
        return schema

    if resource_type is None:
        raise DecodeError("missing resourceType")
    schema = registry.lookup_resource(resource_type)
    if schema is None:
        raise DecodeError(f"unknown resourceType '{resource_type}'")
    return schema


class _Decoder:
    """Maps parsed JSON onto Records for one decode call."""

    def __init__(self, registry: ResourceRegistry, preserve_unknown_fields: bool):
        self.registry = registry
        self.preserve_unknown_fields = preserve_unknown_fields

    def record(self, schema: RecordSchema, data: Any, path: str) -> Record:
        if not isinstance(data, dict):
            raise DecodeError(f"expected a JSON object for {schema.name}, got {_json_type(data)}", path)

        record = Record(schema)
        seen = {RESOURCE_TYPE_KEY} if schema.is_resource else set()
        for slot in schema.slots():
            if isinstance(slot, ChoiceGroup):
                seen.update(self.choice(record, slot, data, path))
            elif slot.name in data:
                seen.add(slot.name)
                self.field(record, slot, data, path)

        for key, raw in data.items():
            if key in seen:
                continue
            if self._is_companion(schema, key):
                record.extras[key] = raw
            elif self._is_undeclared_variant(schema, key):
                # Kept, it would encode as a second key for the same group
                logger.warning("Dropping undeclared choice variant '%s' at %s", key, path)
            elif schema.supports_extensions and self.preserve_unknown_fields:
                record.extras[key] = raw
            else:
                logger.debug("Dropping unknown key '%s' at %s", key, path)
        return record

    @staticmethod
    def _is_companion(schema: RecordSchema, key: str) -> bool:
        if not key.startswith(PRIMITIVE_EXTENSION_PREFIX):
            return False
        descriptor = schema.field(key[len(PRIMITIVE_EXTENSION_PREFIX):])
        return descriptor is not None and descriptor.kind is FieldKind.PRIMITIVE

    @staticmethod
    def _is_undeclared_variant(schema: RecordSchema, key: str) -> bool:
        """Check for a key like 'deceasedString' naming a type its group does not allow."""
        name = key.removeprefix(PRIMITIVE_EXTENSION_PREFIX)
        for group in schema.choice_groups:
            suffix = name[len(group):]
            if name.startswith(group) and suffix[:1].isupper():
                return True
        return False

    def choice(self, record: Record, group: ChoiceGroup, data: dict, path: str) -> list[str]:
        keys = [variant.name for variant in group.variants if variant.name in data]
        present = [variant for variant in group.variants if data.get(variant.name) is not None]
        if len(present) > 1:
            raise AmbiguousChoiceError(f"{path}.{group.name}[x]", group.name, [v.name for v in present])
        if present:
            variant = present[0]
            raw = data[variant.name]
            if isinstance(raw, list):
                raise DecodeError(f"'{variant.name}' does not repeat; got an array", f"{path}.{variant.name}")
            record[variant.name] = self.value(variant, raw, f"{path}.{variant.name}")
        return keys

    def field(self, record: Record, descriptor: FieldDescriptor, data: dict, path: str) -> None:
        raw = data[descriptor.name]
        if raw is None:
            return
        field_path = f"{path}.{descriptor.name}"

        if not descriptor.is_list:
            if isinstance(raw, list):
                raise DecodeError(f"'{descriptor.name}' does not repeat; got an array", field_path)
            record[descriptor.name] = self.value(descriptor, raw, field_path)
            return

        if not isinstance(raw, list):
            raise DecodeError(f"'{descriptor.name}' repeats and must be an array", field_path)
        # Nulls keep primitive positions aligned with the _name companion array
        nulls_allowed = (
            descriptor.kind is FieldKind.PRIMITIVE
            and f"{PRIMITIVE_EXTENSION_PREFIX}{descriptor.name}" in data
        )
        items = []
        for index, item in enumerate(raw):
            item_path = f"{field_path}[{index}]"
            if item is None:
                if not nulls_allowed:
                    raise DecodeError("null entry in array", item_path)
                items.append(None)
            else:
                items.append(self.value(descriptor, item, item_path))
        record[descriptor.name] = items

    def value(self, descriptor: FieldDescriptor, raw: Any, path: str) -> Any:
        if descriptor.kind is FieldKind.PRIMITIVE:
            primitive = descriptor.primitive
            if not primitive.accepts(raw):
                raise DecodeError(
                    f"expected a JSON {primitive.json_kind.value} for {descriptor.type_code}, got {_json_type(raw)}",
                    path,
                )
            return raw
        if descriptor.kind is FieldKind.RESOURCE:
            return self.resource(raw, path)
        return self.record(self.registry.require(descriptor.type_code), raw, path)

    def resource(self, raw: Any, path: str) -> Record:
        """Decode an inline resource whose type comes from its resourceType."""
        if not isinstance(raw, dict):
            raise DecodeError(f"expected a resource object, got {_json_type(raw)}", path)
        resource_type = raw.get(RESOURCE_TYPE_KEY)
        schema = self.registry.lookup_resource(resource_type) if isinstance(resource_type, str) else None
        if schema is None:
            raise DecodeError(f"unknown resourceType {resource_type!r}", path)
        return self.record(schema, raw, path)


def decode(
    document: dict | str | bytes,
    type_name: str | None = None,
    *,
    registry: ResourceRegistry | None = None,
    validate: bool = True,
    strict_references: bool | None = None,
    validate_primitives: bool | None = None,
    preserve_unknown_fields: bool | None = None,
    terminology: TerminologyService | None = None,
) -> Record:
    """Decode a FHIR JSON document into a Record.

    Args:
        document: Parsed JSON object, or JSON text.
        type_name: Target type. Defaults to the document's resourceType;
            required for data types, which carry no resourceType.
        registry: Registry to resolve types in, defaults to the process-wide one.
        validate: Run validation after decoding and raise on any issue.
        strict_references: Check reference targets against allow-lists.
        validate_primitives: Check primitive lexical forms and ranges.
        preserve_unknown_fields: Keep unknown keys in Record.extras.
        terminology: Service consulted for required-binding misses.

    Returns:
        The decoded record.

    Raises:
        DecodeError: If the document is malformed or does not fit the schema.
        AmbiguousChoiceError: If a choice group has more than one variant.
        ValidationError: If validation finds any issue.
        SchemaError: If type_name is not registered.
    """
    data = _load_document(document)
    registry = registry or get_registry()
    if preserve_unknown_fields is None:
        preserve_unknown_fields = config.settings.preserve_unknown_fields

    schema = _root_schema(data, type_name, registry)
    record = _Decoder(registry, preserve_unknown_fields).record(schema, data, schema.name)

    if validate:
        issues = validate_record(
            record,
            strict_references=strict_references,
            validate_primitives=validate_primitives,
            terminology=terminology,
        )
        if issues:
            raise ValidationError(issues)
    return record


def _encode_value(value: Any) -> Any:
    if isinstance(value, Record):
        return encode(value)
    if isinstance(value, list):
        return [_encode_value(item) for item in value]
    return value


def encode(record: Record) -> dict[str, Any]:
    """Encode a Record to the FHIR JSON object form.

    Keys follow declared field order, with resourceType first for resources
    and each primitive's `_name` companion right after it. Absent fields and
    empty lists are omitted. Preserved unknown keys come last.
    """
    out: dict[str, Any] = {}
    if record.schema.is_resource:
        out[RESOURCE_TYPE_KEY] = record.type_name
    for key, value in record.items():
        out[key] = _encode_value(value)
        companion = f"{PRIMITIVE_EXTENSION_PREFIX}{key}"
        if companion in record.extras:
            out[companion] = copy.deepcopy(record.extras[companion])
    for key, value in record.extras.items():
        if key not in out:
            out[key] = copy.deepcopy(value)
    return out


def _wrap(start: str, items: list[str], end: str, indent: int | None, level: int) -> str:
    if not items:
        return start + end
    if indent is None:
        return start + ", ".join(items) + end
    inner = "\n" + " " * (indent * (level + 1))
    return start + inner + f",{inner}".join(items) + "\n" + " " * (indent * level) + end


def _write(value: Any, indent: int | None, level: int = 0) -> str:
    """Write JSON text, keeping each Decimal's digits exactly as they are."""
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"{value} cannot be written as a JSON number")
        return str(value)
    if isinstance(value, dict):
        items = [f"{json.dumps(key)}: {_write(item, indent, level + 1)}" for key, item in value.items()]
        return _wrap("{", items, "}", indent, level)
    if isinstance(value, list):
        return _wrap("[", [_write(item, indent, level + 1) for item in value], "]", indent, level)
    return json.dumps(value, allow_nan=False)


def dumps(record: Record, indent: int | None = None) -> str:
    """Encode a Record to JSON text.

    Decimals are written with the digits they were read with, so '1.50'
    stays '1.50'. Layout matches json.dumps for the same indent.
    """
    return _write(encode(record), indent)


def loads(text: str | bytes, type_name: str | None = None, **options: Any) -> Record:
    """Decode JSON text, reading decimals as Decimal. Options are those of decode()."""
    return decode(text, type_name, **options)

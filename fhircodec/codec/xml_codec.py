"""FHIR XML codec.

XML is transcoded to and from the JSON object form under the guidance of the
record schema, so decode validation and error paths are the JSON codec's.
Mapping rules:

- the root element is named after the resource type, in the FHIR namespace
- primitives carry their value in a `value` attribute; a primitive's own id
  and extensions (JSON `_name` companions) are its `id` attribute and
  `extension` children
- element ids (non-resource) and Extension.url are attributes
- repeating fields are repeated sibling elements
- contained resources are wrapped: <contained><Patient>...</Patient></contained>
- Narrative.div is an embedded XHTML element, a string in the JSON form
"""

import logging
import re
import xml.etree.ElementTree as ET
from decimal import Decimal
from itertools import zip_longest
from typing import Any

from fhircodec.codec.json_codec import decode
from fhircodec.constants import (
    EXTENSION_FIELDS,
    FHIR_NAMESPACE,
    RESOURCE_TYPE_KEY,
    XHTML_NAMESPACE,
    XML_ID_ATTRIBUTE,
    XML_URL_ATTRIBUTE,
)
from fhircodec.errors import DecodeError, FhirCodecError
from fhircodec.models.record import Record
from fhircodec.registry import ResourceRegistry, get_registry
from fhircodec.schema.field import FieldDescriptor
from fhircodec.schema.record_schema import RecordSchema
from fhircodec.schema.types import FieldKind, JsonKind, PrimitiveType

logger = logging.getLogger(__name__)

_EXTENSION_TYPE = "Extension"
_VALUE_ATTRIBUTE = "value"
_INTEGER_LEXICAL = re.compile(r"-?[0-9]+")


def _split_tag(tag: str) -> tuple[str | None, str]:
    """Split '{namespace}local' into (namespace, local)."""
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return None, tag


def _attribute_fields(schema: RecordSchema) -> tuple[str, ...]:
    """Fields serialized as XML attributes rather than child elements."""
    if schema.is_resource:
        return ()
    if schema.name == _EXTENSION_TYPE:
        return (XML_ID_ATTRIBUTE, XML_URL_ATTRIBUTE)
    return (XML_ID_ATTRIBUTE,)


def _parse_primitive(primitive: PrimitiveType, raw: str, path: str) -> Any:
    if primitive.json_kind is JsonKind.BOOLEAN:
        if raw not in ("true", "false"):
            raise DecodeError(f"'{raw}' is not a boolean", path)
        return raw == "true"
    # int() and Decimal() also take '1_0', ' 3 ', 'NaN' and 'Infinity'
    if primitive.json_kind is JsonKind.INTEGER:
        if _INTEGER_LEXICAL.fullmatch(raw) is None:
            raise DecodeError(f"'{raw}' is not an integer", path)
        return int(raw)
    if primitive.json_kind is JsonKind.DECIMAL:
        if not primitive.matches(raw):
            raise DecodeError(f"'{raw}' is not a decimal", path)
        return Decimal(raw)
    return raw


def _format_primitive(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _xhtml_to_text(element: ET.Element) -> str:
    for node in element.iter():
        namespace, local = _split_tag(node.tag)
        if namespace == XHTML_NAMESPACE:
            node.tag = local
    element.set("xmlns", XHTML_NAMESPACE)
    # tostring() would write the whitespace following </div>
    element.tail = None
    return ET.tostring(element, encoding="unicode")


def _text_to_xhtml(text: str, path: str) -> ET.Element:
    try:
        element = ET.fromstring(text)
    except ET.ParseError as e:
        raise FhirCodecError(f"narrative is not well-formed XHTML: {e}", path) from e
    for node in element.iter():
        node.tag = _split_tag(node.tag)[1]
    element.set("xmlns", XHTML_NAMESPACE)
    return element


class _XmlReader:
    """Builds the JSON object form from a FHIR XML element tree."""

    def __init__(self, registry: ResourceRegistry):
        self.registry = registry

    def element(self, element: ET.Element, schema: RecordSchema, path: str) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if schema.is_resource:
            data[RESOURCE_TYPE_KEY] = schema.name
        for attribute in _attribute_fields(schema):
            if element.get(attribute) is not None:
                data[attribute] = element.get(attribute)

        # Primitive arrays collect values and companions in parallel
        companions: dict[str, list] = {}
        for child in element:
            namespace, name = _split_tag(child.tag)
            descriptor = schema.field(name)
            if descriptor is None or (namespace != FHIR_NAMESPACE and descriptor.type_code != "xhtml"):
                logger.debug("Dropping unknown element '%s' at %s", child.tag, path)
                continue
            child_path = f"{path}.{name}"

            if descriptor.kind is FieldKind.PRIMITIVE:
                value, companion = self.primitive(descriptor, child, child_path)
                if value is None and companion is None:
                    continue
                if descriptor.is_list:
                    data.setdefault(name, []).append(value)
                    companions.setdefault(name, []).append(companion)
                    continue
                self._set_single(data, name, value, child_path)
                if companion is not None:
                    data[f"_{name}"] = companion
                continue

            if descriptor.kind is FieldKind.RESOURCE:
                value = self.contained(child, child_path)
            else:
                value = self.element(child, self.registry.require(descriptor.type_code), child_path)
            if descriptor.is_list:
                data.setdefault(name, []).append(value)
            else:
                self._set_single(data, name, value, child_path)

        for name, entries in companions.items():
            if any(entry is not None for entry in entries):
                data[f"_{name}"] = entries
        return data

    @staticmethod
    def _set_single(data: dict, name: str, value: Any, path: str) -> None:
        if name in data:
            raise DecodeError(f"'{name}' does not repeat", path)
        data[name] = value

    def primitive(self, descriptor: FieldDescriptor, element: ET.Element, path: str) -> tuple[Any, dict | None]:
        """Return (value, companion) for a primitive element."""
        if descriptor.type_code == "xhtml":
            return _xhtml_to_text(element), None

        raw = element.get(_VALUE_ATTRIBUTE)
        value = _parse_primitive(descriptor.primitive, raw, path) if raw is not None else None

        companion: dict[str, Any] = {}
        if element.get(XML_ID_ATTRIBUTE) is not None:
            companion[XML_ID_ATTRIBUTE] = element.get(XML_ID_ATTRIBUTE)
        extension_schema = self.registry.require(_EXTENSION_TYPE)
        for child in element:
            namespace, name = _split_tag(child.tag)
            if namespace == FHIR_NAMESPACE and name in EXTENSION_FIELDS:
                companion.setdefault(name, []).append(self.element(child, extension_schema, f"{path}.{name}"))
        return value, companion or None

    def contained(self, element: ET.Element, path: str) -> dict[str, Any]:
        children = list(element)
        if len(children) != 1:
            raise DecodeError("contained must wrap exactly one resource", path)
        namespace, resource_type = _split_tag(children[0].tag)
        schema = self.registry.lookup_resource(resource_type)
        if namespace != FHIR_NAMESPACE or schema is None:
            raise DecodeError(f"unknown contained resource '{resource_type}'", path)
        return self.element(children[0], schema, path)


class _XmlWriter:
    """Builds a FHIR XML element tree from a Record."""

    def __init__(self, registry: ResourceRegistry):
        self.registry = registry

    def element(self, tag: str, record: Record) -> ET.Element:
        schema = record.schema
        element = ET.Element(tag)
        attributes = _attribute_fields(schema)
        for attribute in attributes:
            if record.get(attribute) is not None:
                element.set(attribute, _format_primitive(record[attribute]))

        for descriptor in schema.fields:
            name = descriptor.name
            if name in attributes:
                continue
            value = record[name]
            companion = record.extras.get(f"_{name}")
            if descriptor.is_list:
                values = value
                companions = companion if isinstance(companion, list) else []
            else:
                values = [value] if value is not None else []
                companions = [companion] if companion is not None else []
            for item, item_companion in zip_longest(values, companions):
                self.append(element, descriptor, item, item_companion)

        for key in record.extras:
            if not key.startswith("_"):
                logger.debug("Key '%s' on %s has no XML form; not written", key, schema.name)
        return element

    def append(self, parent: ET.Element, descriptor: FieldDescriptor, value: Any, companion: dict | None) -> None:
        if descriptor.kind is FieldKind.PRIMITIVE:
            if value is None and not companion:
                return
            if descriptor.type_code == "xhtml":
                parent.append(_text_to_xhtml(value, descriptor.path))
                return
            child = ET.SubElement(parent, descriptor.name)
            if companion and companion.get(XML_ID_ATTRIBUTE) is not None:
                child.set(XML_ID_ATTRIBUTE, companion[XML_ID_ATTRIBUTE])
            if value is not None:
                child.set(_VALUE_ATTRIBUTE, _format_primitive(value))
            for name in EXTENSION_FIELDS:
                for extension in (companion or {}).get(name, []):
                    record = decode(extension, _EXTENSION_TYPE, registry=self.registry, validate=False)
                    child.append(self.element(name, record))
            return

        if value is None:
            return
        if descriptor.kind is FieldKind.RESOURCE:
            wrapper = ET.SubElement(parent, descriptor.name)
            wrapper.append(self.element(value.type_name, value))
        else:
            parent.append(self.element(descriptor.name, value))


def decode_xml(
    text: str | bytes,
    type_name: str | None = None,
    *,
    registry: ResourceRegistry | None = None,
    **options: Any,
) -> Record:
    """Decode a FHIR XML document into a Record.

    Args:
        text: XML document text.
        type_name: Target type. Defaults to the root element's name; required
            for data types.
        registry: Registry to resolve types in, defaults to the process-wide one.
        **options: Passed to json_codec.decode (validate, strict_references, ...).

    Raises:
        DecodeError: If the XML is malformed, not in the FHIR namespace or a
            primitive value cannot be converted.
        ValidationError: If validation finds any issue.
    """
    registry = registry or get_registry()
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise DecodeError(f"invalid XML: {e}") from e

    namespace, name = _split_tag(root.tag)
    if namespace != FHIR_NAMESPACE:
        raise DecodeError(f"root element must be in the {FHIR_NAMESPACE} namespace, got {namespace or 'none'}")

    if type_name is None:
        schema = registry.lookup_resource(name)
        if schema is None:
            raise DecodeError(f"unknown resource type '{name}'")
    else:
        schema = registry.require(type_name)
        if schema.is_resource and name != schema.name:
            raise DecodeError(f"expected a {schema.name} element, got '{name}'")

    data = _XmlReader(registry).element(root, schema, schema.name)
    return decode(data, schema.name, registry=registry, **options)


def encode_xml(
    record: Record,
    pretty: bool = False,
    *,
    tag: str | None = None,
    registry: ResourceRegistry | None = None,
) -> str:
    """Encode a Record as FHIR XML text.

    Args:
        record: Record to encode.
        pretty: Indent nested elements.
        tag: Root element name, defaults to the record's type name.
        registry: Registry used for primitive extensions.
    """
    writer = _XmlWriter(registry or get_registry())
    root = writer.element(tag or record.type_name, record)
    root.set("xmlns", FHIR_NAMESPACE)
    if pretty:
        ET.indent(root)
    return ET.tostring(root, encoding="unicode")

"""Shared constants for the FHIR schema and codec layer.

Centralizes namespaces, reserved keys and type markers used across the
schema, codec and registry modules.
"""

# XML namespaces
FHIR_NAMESPACE = "http://hl7.org/fhir"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"

# JSON key carrying the type name of a resource-level object
RESOURCE_TYPE_KEY = "resourceType"

# Type code of polymorphic resource slots (e.g. Patient.contained)
ANY_RESOURCE = "Resource"

# Type code of reference-typed fields
REFERENCE_TYPE = "Reference"

# Serialized marker for an unbounded maximum cardinality
UNBOUNDED_MARKER = "*"

# Slots that hold extension data on every element and resource
EXTENSION_FIELDS = ("extension", "modifierExtension")

# Prefix of the JSON companion key carrying a primitive's id/extension
PRIMITIVE_EXTENSION_PREFIX = "_"

# Fields serialized as XML attributes rather than child elements.
# Element ids apply to every non-resource type; urls only to Extension.
XML_ID_ATTRIBUTE = "id"
XML_URL_ATTRIBUTE = "url"

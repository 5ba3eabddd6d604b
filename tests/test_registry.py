"""Tests for the resource registry."""
import json
from unittest.mock import patch

import pytest

from fhircodec import config, registry as registry_module
from fhircodec.errors import SchemaError
from fhircodec.registry import RegistryBuilder, ResourceRegistry, build_registry, get_registry, set_registry
from fhircodec.schema.field import FieldDescriptor
from fhircodec.schema.record_schema import RecordSchema
from fhircodec.schema.types import FieldKind, SchemaKind


def _schema(name: str, *fields: FieldDescriptor, kind: SchemaKind = SchemaKind.COMPLEX_TYPE) -> RecordSchema:
    return RecordSchema(name=name, kind=kind, fields=fields)


class TestRegistryBuilder:
    """Tests for building registries."""

    def test_duplicate_type_rejected(self):
        """Test two schemas may not share a name."""
        builder = RegistryBuilder().register(_schema("Sample"))

        with pytest.raises(SchemaError, match="duplicate schema for type 'Sample'"):
            builder.register(_schema("Sample"))

    def test_unregistered_reference_rejected(self):
        """Test build() checks composite field types resolve."""
        builder = RegistryBuilder().register(
            _schema("Sample", FieldDescriptor("part", "Part", FieldKind.COMPOSITE, "Sample.part"))
        )

        with pytest.raises(SchemaError, match="references unregistered type 'Part'"):
            builder.build()

    def test_primitive_fields_need_no_schema(self):
        """Test primitives resolve without registered schemas."""
        registry = (
            RegistryBuilder()
            .register(_schema("Sample", FieldDescriptor("label", "string", FieldKind.PRIMITIVE, "Sample.label")))
            .build()
        )

        assert "Sample" in registry
        assert len(registry) == 1


class TestResourceRegistry:
    """Tests for registry lookups."""

    def test_lookup_and_require(self, registry):
        """Test lookup returns None and require raises for unknown types."""
        assert registry.lookup("Patient").name == "Patient"
        assert registry.lookup("Spaceship") is None
        with pytest.raises(SchemaError, match="unregistered type 'Spaceship'"):
            registry.require("Spaceship")

    def test_lookup_resource_skips_data_types(self, registry):
        """Test lookup_resource only returns resource schemas."""
        assert registry.lookup_resource("Observation") is not None
        assert registry.lookup_resource("HumanName") is None
        assert registry.lookup_resource("Patient.Contact") is None

    def test_resource_types_sorted(self, registry):
        """Test resource_types lists resources alphabetically."""
        types = registry.resource_types()

        assert types == sorted(types)
        assert "Patient" in types
        assert "Coding" not in types

    def test_is_resource_accepts_any_resource(self, registry):
        """Test 'Resource' counts as a resource type."""
        assert registry.is_resource("Resource")
        assert registry.is_resource("Specimen")
        assert not registry.is_resource("Quantity")

    def test_registry_is_read_only(self):
        """Test the registry does not see later changes to its source dict."""
        schemas = {"Sample": _schema("Sample")}
        registry = ResourceRegistry(schemas)

        schemas["Other"] = _schema("Other")

        assert "Other" not in registry
        with pytest.raises(TypeError):
            registry._schemas["Other"] = _schema("Other")

    def test_iterates_type_names(self):
        """Test iteration yields registered names."""
        registry = ResourceRegistry({"A": _schema("A"), "B": _schema("B")})

        assert sorted(registry) == ["A", "B"]


class TestProcessRegistry:
    """Tests for the process-wide registry."""

    def test_built_once(self, fresh_registry):
        """Test get_registry returns the same instance on every call."""
        assert get_registry() is get_registry()

    def test_set_registry_swaps_whole_registry(self, fresh_registry):
        """Test set_registry replaces the registry atomically."""
        replacement = ResourceRegistry({"Sample": _schema("Sample", kind=SchemaKind.RESOURCE)})

        set_registry(replacement)

        assert get_registry() is replacement
        assert get_registry().resource_types() == ["Sample"]

    def test_builds_with_configured_directory(self, fresh_registry, tmp_path):
        """Test definitions_dir adds types to the packaged ones."""
        (tmp_path / "resources").mkdir()
        (tmp_path / "resources" / "Sample.json").write_text(
            json.dumps(
                {
                    "name": "Sample",
                    "kind": "resource",
                    "elements": [
                        {"name": "id", "type": "id"},
                        {"name": "code", "type": "CodeableConcept"},
                    ],
                }
            ),
            encoding="utf-8",
        )

        with patch.object(config.settings, "definitions_dir", tmp_path):
            registry = get_registry()

        assert registry.lookup_resource("Sample") is not None
        assert registry.lookup_resource("Patient") is not None

    def test_build_registry_ignores_missing_directory(self, tmp_path):
        """Test a missing extra directory only loads packaged definitions."""
        registry = build_registry(tmp_path / "absent")

        assert "Patient" in registry

    def test_packaged_duplicate_rejected(self, tmp_path):
        """Test an extra directory may not redefine a packaged type."""
        (tmp_path / "types").mkdir()
        (tmp_path / "types" / "Coding.json").write_text(
            json.dumps({"name": "Coding", "kind": "complex-type", "elements": []}),
            encoding="utf-8",
        )

        with pytest.raises(SchemaError, match="duplicate"):
            build_registry(tmp_path)

    def test_reset_drops_registry(self, fresh_registry):
        """Test the test reset hook clears the cached registry."""
        get_registry()

        registry_module._reset_for_testing()

        assert registry_module._default_registry is None

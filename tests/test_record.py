"""Tests for Record instances and choice values."""
import pytest

from fhircodec.errors import SchemaError
from fhircodec.models.record import ChoiceValue, Record


class TestRecordConstruction:
    """Tests for creating records."""

    def test_resolves_type_name_through_registry(self, registry):
        """Test a type name resolves to the registered schema."""
        patient = Record("Patient")

        assert patient.schema is registry.require("Patient")
        assert patient.resource_type == "Patient"

    def test_unknown_type_name_raises_schema_error(self):
        """Test constructing an unregistered type fails."""
        with pytest.raises(SchemaError):
            Record("Spaceship")

    def test_accepts_initial_fields(self):
        """Test keyword arguments populate fields."""
        patient = Record("Patient", id="p1", gender="female", deceasedBoolean=True)

        assert patient.id == "p1"
        assert patient.gender == "female"
        assert patient.deceasedBoolean is True

    def test_backbone_has_no_resource_type(self):
        """Test nested backbone records are not resources."""
        contact = Record("Patient.Contact", gender="female")

        assert contact.type_name == "Patient.Contact"
        assert contact.resource_type is None


class TestFieldAccess:
    """Tests for attribute and item access."""

    def test_absent_field_reads_none(self):
        """Test unset single-valued fields read as None."""
        assert Record("Patient").gender is None

    def test_repeating_field_reads_as_list(self):
        """Test repeating fields start as a mutable empty list."""
        patient = Record("Patient")

        patient.name.append(Record("HumanName", family="Chalmers"))

        assert patient.name[0].family == "Chalmers"

    def test_item_access_for_keyword_names(self):
        """Test item access works alongside attributes."""
        patient = Record("Patient")

        patient["gender"] = "other"

        assert patient["gender"] == "other"
        assert patient.gender == "other"

    def test_unknown_attribute_raises(self):
        """Test reading and writing undeclared fields fails."""
        patient = Record("Patient")

        with pytest.raises(AttributeError, match="Patient has no field 'nickname'"):
            patient.nickname
        with pytest.raises(AttributeError):
            patient.nickname = "Pete"

    def test_unknown_item_raises_key_error(self):
        """Test item access on undeclared fields raises KeyError."""
        with pytest.raises(KeyError):
            Record("Patient")["nickname"]

    def test_assigning_none_clears_field(self):
        """Test None removes a value."""
        patient = Record("Patient", gender="male")

        patient.gender = None

        assert "gender" not in patient

    def test_del_clears_field(self):
        """Test del removes a value."""
        patient = Record("Patient", gender="male")

        del patient.gender

        assert patient.gender is None

    def test_composite_field_rejects_plain_value(self):
        """Test composite fields take records."""
        with pytest.raises(TypeError, match="takes a CodeableConcept record"):
            Record("Patient", maritalStatus="married")

    def test_composite_field_rejects_wrong_record_type(self):
        """Test composite fields check the record type."""
        with pytest.raises(TypeError):
            Record("Patient", maritalStatus=Record("Coding", code="M"))

    def test_primitive_field_rejects_record(self):
        """Test primitive fields refuse nested records."""
        with pytest.raises(TypeError):
            Record("Patient", gender=Record("Coding", code="male"))

    def test_contained_takes_any_resource(self):
        """Test contained accepts resources and refuses data types."""
        patient = Record("Patient", contained=[Record("Organization", id="o1")])

        assert patient.contained[0].resource_type == "Organization"
        with pytest.raises(TypeError, match="takes a resource"):
            patient.contained = [Record("Coding")]

    def test_repeating_field_requires_list(self):
        """Test repeating fields refuse scalars."""
        with pytest.raises(TypeError, match="assign a list"):
            Record("Patient", name=Record("HumanName"))

    def test_get_returns_default_when_absent(self):
        """Test get() treats empty lists and unknown names as absent."""
        patient = Record("Patient")

        assert patient.get("name", "none") == "none"
        assert patient.get("nickname") is None


class TestChoiceGroups:
    """Tests for choice-group exclusivity."""

    def test_assigning_variant_replaces_sibling(self):
        """Test populating one variant clears the other."""
        patient = Record("Patient", deceasedBoolean=True)

        patient.deceasedDateTime = "2020-01-01"

        assert patient.deceasedBoolean is None
        assert patient.deceasedDateTime == "2020-01-01"
        assert patient.deceased == ChoiceValue("dateTime", "2020-01-01")

    def test_clearing_inactive_variant_keeps_active_one(self):
        """Test assigning None to an inactive variant is a no-op."""
        patient = Record("Patient", deceasedBoolean=True)

        patient.deceasedDateTime = None

        assert patient.deceasedBoolean is True

    def test_assigning_group_takes_choice_value(self):
        """Test the group name accepts a ChoiceValue."""
        observation = Record("Observation")

        observation.value = ChoiceValue("string", "positive")

        assert observation.valueString == "positive"
        assert observation.choice("value").key("value") == "valueString"

    def test_group_rejects_unknown_variant(self):
        """Test a ChoiceValue must name a declared variant."""
        with pytest.raises(ValueError, match="no 'uuid' variant"):
            Record("Patient", deceased=ChoiceValue("uuid", "urn:uuid:x"))

    def test_group_rejects_plain_value(self):
        """Test the group name needs a ChoiceValue."""
        with pytest.raises(TypeError):
            Record("Patient", deceased=True)

    def test_clearing_group(self):
        """Test None clears whichever variant is populated."""
        patient = Record("Patient", deceasedBoolean=False)

        patient.deceased = None

        assert patient.choice("deceased") is None

    def test_choice_rejects_non_group(self):
        """Test choice() only accepts group names."""
        with pytest.raises(KeyError):
            Record("Patient").choice("gender")

    def test_composite_variant_type_checked(self):
        """Test composite variants require matching records."""
        with pytest.raises(TypeError):
            Record("Observation", valueQuantity=Record("Coding"))


class TestRecordProtocol:
    """Tests for equality, iteration and copying."""

    def test_equality_ignores_empty_lists(self):
        """Test a touched empty list does not affect equality."""
        left = Record("Patient", id="p1")
        right = Record("Patient", id="p1")
        right.name

        assert left == right

    def test_records_of_different_types_differ(self):
        """Test equality includes the type."""
        assert Record("Organization", id="x") != Record("Practitioner", id="x")

    def test_records_are_unhashable(self):
        """Test mutable records cannot be dict keys."""
        with pytest.raises(TypeError):
            hash(Record("Patient"))

    def test_iterates_populated_keys_in_declared_order(self):
        """Test iteration yields serialized keys in schema order."""
        patient = Record("Patient", gender="male", deceasedBoolean=False, id="p1")

        assert list(patient) == ["id", "gender", "deceasedBoolean"]

    def test_repr_shows_type_and_fields(self):
        """Test repr names the type and populated fields."""
        assert repr(Record("Patient", id="p1")) == "Patient(id='p1')"

    def test_copy_is_deep(self):
        """Test copies share no nested state."""
        patient = Record("Patient", name=[Record("HumanName", family="Chalmers")])

        clone = patient.copy()
        clone.name[0].family = "Smith"

        assert patient.name[0].family == "Chalmers"
        assert clone != patient

    def test_codec_shortcuts(self, minimal_patient):
        """Test to_/from_ helpers delegate to the codecs."""
        patient = Record.from_dict(minimal_patient)

        assert patient.to_dict() == minimal_patient
        assert Record.from_json(patient.to_json()) == patient
        assert Record.from_xml(patient.to_xml()) == patient

    def test_validate_and_is_valid(self):
        """Test validation helpers report issues on partial records."""
        observation = Record("Observation", status="final")

        issues = observation.validate()

        assert [issue.path for issue in issues] == ["Observation.code"]
        assert not observation.is_valid()

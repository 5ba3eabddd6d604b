"""Tests for shared FHIR helper utilities."""


from fhircodec.models.record import Record
from fhircodec.utils.fhir_helpers import (
    ReferenceKind,
    contained_ids,
    extract_first_coding,
    extract_reference_id,
    iter_codings,
    parse_reference,
)


class TestExtractReferenceId:
    """Tests for extract_reference_id function."""

    def test_extracts_from_urn_uuid(self):
        """Test extraction from urn:uuid format."""
        result = extract_reference_id("urn:uuid:abc-123-def")
        assert result == "abc-123-def"

    def test_extracts_from_resource_reference(self):
        """Test extraction from ResourceType/id format."""
        result = extract_reference_id("Patient/patient-123")
        assert result == "patient-123"

    def test_extracts_from_contained_anchor(self):
        """Test extraction from #anchor format."""
        result = extract_reference_id("#org1")
        assert result == "org1"

    def test_returns_none_for_none(self):
        """Test returns None for None input."""
        result = extract_reference_id(None)
        assert result is None

    def test_returns_none_for_empty_string(self):
        """Test returns None for empty string."""
        result = extract_reference_id("")
        assert result is None

    def test_returns_plain_id_unchanged(self):
        """Test returns plain ID without prefix unchanged."""
        result = extract_reference_id("plain-id-no-prefix")
        assert result == "plain-id-no-prefix"


class TestParseReference:
    """Tests for parse_reference function."""

    def test_relative(self):
        """Test Type/id is relative."""
        target = parse_reference("Patient/p1")

        assert target.kind is ReferenceKind.RELATIVE
        assert target.resource_type == "Patient"
        assert target.resource_id == "p1"
        assert target.version is None

    def test_relative_with_history(self):
        """Test the _history suffix is parsed as a version."""
        target = parse_reference("Observation/bp/_history/3")

        assert target.resource_type == "Observation"
        assert target.resource_id == "bp"
        assert target.version == "3"

    def test_absolute(self):
        """Test a base URL prefix makes the reference absolute."""
        target = parse_reference("https://fhir.example.org/r4/Patient/p1")

        assert target.kind is ReferenceKind.ABSOLUTE
        assert target.resource_type == "Patient"

    def test_urn_has_no_type(self):
        """Test URNs carry no resource type."""
        target = parse_reference("urn:oid:1.2.3")

        assert target.kind is ReferenceKind.URN
        assert target.resource_type is None
        assert target.resource_id == "1.2.3"

    def test_contained(self):
        """Test #anchors are contained references."""
        assert parse_reference("#c1").kind is ReferenceKind.CONTAINED

    def test_unknown_form(self):
        """Test strings in no known form are UNKNOWN."""
        target = parse_reference("patient p1")

        assert target.kind is ReferenceKind.UNKNOWN
        assert target.resource_id == "patient p1"

    def test_lowercase_type_is_unknown(self):
        """Test type names must start with a capital letter."""
        assert parse_reference("patient/p1").kind is ReferenceKind.UNKNOWN


class TestIterCodings:
    """Tests for iter_codings function."""

    def test_plain_code(self):
        """Test code primitives yield a system-less pair."""
        assert list(iter_codings("male", "code")) == [(None, "male")]

    def test_coding(self):
        """Test a Coding yields its system and code."""
        coding = Record("Coding", system="http://loinc.org", code="8480-6")

        assert list(iter_codings(coding, "Coding")) == [("http://loinc.org", "8480-6")]

    def test_codeable_concept_skips_codeless_codings(self):
        """Test codings without a code are skipped."""
        concept = Record(
            "CodeableConcept",
            coding=[
                Record("Coding", system="http://snomed.info/sct", display="no code"),
                Record("Coding", code="M"),
            ],
        )

        assert list(iter_codings(concept, "CodeableConcept")) == [(None, "M")]

    def test_other_types_yield_nothing(self):
        """Test non-coded types yield no pairs."""
        assert list(iter_codings("hello", "string")) == []


class TestExtractFirstCoding:
    """Tests for extract_first_coding function."""

    def test_returns_first_coding(self):
        """Test returns the first Coding record."""
        concept = Record("CodeableConcept", coding=[Record("Coding", code="a"), Record("Coding", code="b")])

        assert extract_first_coding(concept).code == "a"

    def test_returns_none_when_empty(self):
        """Test returns None for a text-only concept."""
        assert extract_first_coding(Record("CodeableConcept", text="Blood")) is None


class TestContainedIds:
    """Tests for contained_ids function."""

    def test_collects_ids(self):
        """Test ids of contained resources are collected."""
        patient = Record(
            "Patient",
            contained=[Record("Organization", id="org1"), Record("Practitioner"), Record("Practitioner", id="pr1")],
        )

        assert contained_ids(patient) == {"org1", "pr1"}

    def test_data_types_have_none(self):
        """Test schemas without a contained field yield an empty set."""
        assert contained_ids(Record("HumanName")) == set()

"""Pytest configuration and fixtures for fhircodec tests."""
import json
from decimal import Decimal
from pathlib import Path

import pytest

from fhircodec.registry import ResourceRegistry, _reset_for_testing, get_registry

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    """Load a JSON fixture by file name, reading decimals as Decimal."""
    with open(FIXTURES_DIR / name, encoding="utf-8") as f:
        return json.load(f, parse_float=Decimal)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def registry() -> ResourceRegistry:
    """Process-wide registry built from the packaged definitions."""
    return get_registry()


@pytest.fixture
def fresh_registry():
    """Drop the process-wide registry before and after the test."""
    _reset_for_testing()
    yield
    _reset_for_testing()


@pytest.fixture
def minimal_patient() -> dict:
    """Smallest Patient document with a populated choice group."""
    return {"resourceType": "Patient", "id": "p1", "gender": "male", "deceasedBoolean": False}


@pytest.fixture
def patient_doc() -> dict:
    """Patient with nested composites, a contained resource and a primitive extension."""
    return load_fixture("patient.json")


@pytest.fixture
def observation_doc() -> dict:
    return load_fixture("observation.json")


@pytest.fixture
def questionnaire_doc() -> dict:
    """QuestionnaireResponse with nested items and typed answers."""
    return load_fixture("questionnaire_response.json")


@pytest.fixture
def coverage_doc() -> dict:
    """CoverageEligibilityRequest with every required field populated."""
    return load_fixture("coverage_eligibility_request.json")


@pytest.fixture
def specimen_doc() -> dict:
    return load_fixture("specimen.json")


@pytest.fixture
def imaging_study_doc() -> dict:
    """ImagingStudy with nested series, performers and instances."""
    return load_fixture("imaging_study.json")


@pytest.fixture
def condition_doc() -> dict:
    """Condition with composite onset[x] and abatement[x] variants."""
    return load_fixture("condition.json")


@pytest.fixture
def practitioner_doc() -> dict:
    return load_fixture("practitioner.json")


@pytest.fixture
def organization_doc() -> dict:
    return load_fixture("organization.json")


@pytest.fixture
def patient_xml() -> str:
    """Patient in FHIR XML form."""
    return (FIXTURES_DIR / "patient.xml").read_text(encoding="utf-8")

"""Record instances."""

from fhircodec.models.record import ChoiceValue, Record

__all__ = [
    "ChoiceValue",
    "Record",
]

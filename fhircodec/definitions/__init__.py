"""Packaged FHIR R4 definition documents and their loader."""

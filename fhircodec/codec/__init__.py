"""JSON and XML codecs and record validation."""

"""Library configuration using pydantic-settings."""

import warnings
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Codec defaults loaded from FHIRCODEC_* environment variables.

    Every decode/validate call accepts keyword overrides for these values,
    so the settings only supply process-wide defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="FHIRCODEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Check Reference.reference target types against the field's allow-list
    strict_references: bool = False

    # Check primitive lexical forms (dates, ids, positiveInt, ...)
    validate_primitives: bool = True

    # Keep unrecognized JSON keys on records that have an extension slot
    preserve_unknown_fields: bool = True

    # Extra directory of definition documents loaded after the packaged ones
    definitions_dir: Path | None = None

    def model_post_init(self, __context) -> None:
        """Warn about a configured definitions directory that is missing."""
        if self.definitions_dir is not None and not self.definitions_dir.is_dir():
            warnings.warn(
                f"FHIRCODEC_DEFINITIONS_DIR {self.definitions_dir} does not exist; "
                "only packaged definitions will be loaded.",
                UserWarning,
                stacklevel=2,
            )


settings = Settings()

"""Error taxonomy for decode, validation and schema configuration failures.

DecodeError and ValidationError are per-document and always recoverable by
the caller. SchemaError is a static configuration defect raised while the
registry is built.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from fhircodec.codec.validation import ValidationIssue


class FhirCodecError(Exception):
    """Base class for all errors raised by fhircodec."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class DecodeError(FhirCodecError):
    """Input document is malformed or cannot be mapped onto the schema."""


class ValidationError(FhirCodecError):
    """Well-formed input violates cardinality, binding or value constraints.

    Args:
        issues: Every issue found in the document, in traversal order.
    """

    def __init__(self, issues: Sequence[ValidationIssue]):
        if not issues:
            raise ValueError("ValidationError requires at least one issue")
        self.issues = list(issues)
        first = self.issues[0]
        message = first.message
        if len(self.issues) > 1:
            message = f"{message} (and {len(self.issues) - 1} more issue(s))"
        super().__init__(message, first.path)

    @property
    def field(self) -> str:
        """Last path segment of the first issue (e.g. 'gender')."""
        segment = self.path.rsplit(".", 1)[-1] if self.path else ""
        return segment.split("[", 1)[0]


class AmbiguousChoiceError(ValidationError):
    """More than one variant of a choice group is populated in a document.

    Args:
        path: Path of the choice slot, e.g. 'Patient.deceased[x]'.
        group: Choice group name, e.g. 'deceased'.
        variants: Serialized keys found for the group.
    """

    def __init__(self, path: str, group: str, variants: Sequence[str]):
        # Local import: validation imports this module at load time
        from fhircodec.codec.validation import IssueCode, ValidationIssue

        self.group = group
        self.variants = tuple(variants)
        issue = ValidationIssue(
            path=path,
            code=IssueCode.AMBIGUOUS_CHOICE,
            message=f"only one of {', '.join(self.variants)} may be present",
        )
        super().__init__([issue])


class SchemaError(FhirCodecError):
    """Static schema defect, such as an unregistered type name."""

"""Terminology lookup hook.

The packaged definitions carry a snapshot of each required binding's codes.
A TerminologyService passed to decode or validation is consulted when a
coded value misses that snapshot, so codes added to a value set later can
still be accepted.
"""

from typing import Iterable, Mapping, Protocol, runtime_checkable


@runtime_checkable
class TerminologyService(Protocol):
    """External code lookup consulted for required-binding misses."""

    def validate_code(self, value_set: str | None, system: str | None, code: str) -> bool | None:
        """Check a code against a value set.

        Returns:
            True if the code is a member, False if it is not, None if the
            service cannot tell (the static table then decides).
        """
        ...


class StaticTerminology:
    """In-memory TerminologyService over supplementary code lists.

    Args:
        value_sets: Extra codes keyed by value set URL. Codes apply to any
            code system the value declares.
    """

    def __init__(self, value_sets: Mapping[str, Iterable[str]] | None = None):
        self._value_sets = {url: frozenset(codes) for url, codes in (value_sets or {}).items()}

    def validate_code(self, value_set: str | None, system: str | None, code: str) -> bool | None:
        if value_set is None or value_set not in self._value_sets:
            return None
        return code in self._value_sets[value_set]

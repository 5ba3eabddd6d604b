"""Resource registry: type name -> record schema.

The registry is built once from the complete set of schemas and is read-only
afterwards. Reloading means building a new registry and swapping it in whole,
so readers never observe a partially-updated type universe.
"""

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator

from fhircodec import config
from fhircodec.constants import ANY_RESOURCE
from fhircodec.definitions.loader import load_definitions
from fhircodec.errors import SchemaError
from fhircodec.schema.record_schema import RecordSchema

logger = logging.getLogger(__name__)


class RegistryBuilder:
    """Collects schemas at startup and freezes them into a ResourceRegistry."""

    def __init__(self) -> None:
        self._schemas: dict[str, RecordSchema] = {}

    def register(self, schema: RecordSchema) -> "RegistryBuilder":
        """Register a schema.

        Args:
            schema: The schema to register.

        Raises:
            SchemaError: If a schema with the same name is already registered.
        """
        if schema.name in self._schemas:
            raise SchemaError(f"duplicate schema for type '{schema.name}'")
        self._schemas[schema.name] = schema
        return self

    def register_all(self, schemas: Iterable[RecordSchema]) -> "RegistryBuilder":
        for schema in schemas:
            self.register(schema)
        return self

    def build(self) -> "ResourceRegistry":
        """Check cross-references and return the frozen registry.

        Raises:
            SchemaError: If any schema references an unregistered type.
        """
        for schema in self._schemas.values():
            for type_name in schema.referenced_types():
                if type_name not in self._schemas:
                    raise SchemaError(
                        f"schema '{schema.name}' references unregistered type '{type_name}'"
                    )
        registry = ResourceRegistry(self._schemas)
        logger.info(
            "Built schema registry: %d types, %d resources",
            len(registry),
            len(registry.resource_types()),
        )
        return registry


class ResourceRegistry:
    """Read-only lookup from type name to record schema."""

    def __init__(self, schemas: dict[str, RecordSchema]):
        self._schemas = MappingProxyType(dict(schemas))

    def lookup(self, type_name: str) -> RecordSchema | None:
        """Get the schema for a type name, None if not registered."""
        return self._schemas.get(type_name)

    def require(self, type_name: str) -> RecordSchema:
        """Get the schema for a type name.

        Raises:
            SchemaError: If the type is not registered.
        """
        schema = self._schemas.get(type_name)
        if schema is None:
            raise SchemaError(f"unregistered type '{type_name}'")
        return schema

    def lookup_resource(self, resource_type: str) -> RecordSchema | None:
        """Get the schema for a resource type, None for data types and unknowns."""
        schema = self._schemas.get(resource_type)
        if schema is None or not schema.is_resource:
            return None
        return schema

    def resource_types(self) -> list[str]:
        """Registered resource type names, sorted."""
        return sorted(name for name, schema in self._schemas.items() if schema.is_resource)

    def is_resource(self, type_name: str) -> bool:
        return type_name == ANY_RESOURCE or self.lookup_resource(type_name) is not None

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)


def build_registry(definitions_dir: Path | None = None) -> ResourceRegistry:
    """Build a registry from packaged definitions plus an optional extra directory."""
    builder = RegistryBuilder().register_all(load_definitions())
    if definitions_dir is not None and definitions_dir.is_dir():
        builder.register_all(load_definitions(definitions_dir))
    return builder.build()


# Module-level storage for the process-wide registry
_default_registry: ResourceRegistry | None = None
_init_lock = threading.Lock()


def get_registry() -> ResourceRegistry:
    """Return the process-wide registry, building it on first use.

    Initialization happens once under a lock; subsequent reads are lock-free.
    """
    global _default_registry
    registry = _default_registry
    if registry is not None:
        return registry
    with _init_lock:
        if _default_registry is None:
            _default_registry = build_registry(config.settings.definitions_dir)
        return _default_registry


def set_registry(registry: ResourceRegistry) -> None:
    """Swap in a wholly rebuilt registry."""
    global _default_registry
    with _init_lock:
        _default_registry = registry


def _reset_for_testing() -> None:
    """Drop the process-wide registry. Internal use in tests only."""
    global _default_registry
    with _init_lock:
        _default_registry = None

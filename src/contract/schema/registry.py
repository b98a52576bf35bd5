"""Registry of every schema reachable from a set of root payload types.

``ensure`` walks reference edges (array items and nested objects) depth
first, deriving each type's schema at most once. ``export`` returns the
``components.schemas`` mapping of an OpenAPI document.
"""

import copy

from loguru import logger

from src.contract.schema.factory import SchemaFactory, qualified_name
from src.core.exceptions import SchemaNameCollisionError
from src.core.types import SchemaDocument, TypeRef


class SchemaRegistry:
    """Collects schema documents for payload types and their dependencies.

    Args:
        factory: The factory used to derive documents.
    """

    def __init__(self, factory: SchemaFactory) -> None:
        self.factory = factory
        self._schemas: dict[type, SchemaDocument] = {}
        self._names: dict[str, type] = {}

    def ensure(self, ref: TypeRef) -> None:
        """Record the schema of ``ref`` and everything it references.

        Unresolvable references are skipped. Calling this again for a type
        already recorded does nothing, which also stops reference cycles.

        Raises:
            SchemaNameCollisionError: If a different type already owns the
                schema name ``ref`` would be exported under.
        """
        cls = self.factory.provider.resolve(ref)
        if cls is None:
            logger.debug("Skipping unresolvable schema reference {}", ref)
            return
        if cls in self._schemas:
            return

        name = self.factory.schema_name(cls)
        owner = self._names.setdefault(name, cls)
        if owner is not cls:
            raise SchemaNameCollisionError(name, qualified_name(owner), qualified_name(cls))

        # Recorded before recursing so cycles terminate
        self._schemas.setdefault(cls, self.factory.build(cls))

        for descriptor in self.factory.declared_properties(cls):
            meta = descriptor.meta
            if meta is None:
                continue
            for edge in (meta.items_ref, meta.ref):
                if edge is not None:
                    self.ensure(edge)

    def schema_name(self, ref: TypeRef) -> str | None:
        """Return the exported name of a registered type, if any."""
        cls = self.factory.provider.resolve(ref)
        if cls is None or cls not in self._schemas:
            return None
        return self.factory.schema_name(cls)

    def export(self) -> dict[str, SchemaDocument]:
        """Return every recorded schema keyed by its component name."""
        return {
            self.factory.schema_name(cls): copy.deepcopy(schema)
            for cls, schema in self._schemas.items()
        }

    def __contains__(self, ref: object) -> bool:
        if not isinstance(ref, type | str):
            return False
        return self.factory.provider.resolve(ref) in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

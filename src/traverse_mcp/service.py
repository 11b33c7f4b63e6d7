"""
In-process diagram registry backed by the diagram store.

The registry is a cache over the store: it is seeded once from
``DiagramStore.load_all`` and every mutation hits the store before memory.
"""

from __future__ import annotations

import logging

from traverse_mcp.models import WalkthroughDiagram
from traverse_mcp.storage import DiagramStore

logger = logging.getLogger("traverse-mcp")


class DiagramService:
    """Registry of id -> diagram with write-through persistence."""

    def __init__(self, store: DiagramStore) -> None:
        self.store = store
        self._diagrams: dict[str, WalkthroughDiagram] = {}
        self._loaded = False

    def load(self) -> int:
        """Rehydrate the registry from the store. Only the first call loads."""
        if not self._loaded:
            self._diagrams = self.store.load_all()
            self._loaded = True
            logger.info("Loaded %d diagram(s) from %s", len(self._diagrams), self.store.path)
        return len(self._diagrams)

    def create(self, diagram: WalkthroughDiagram) -> str:
        """Persist and register *diagram* under a fresh id."""
        diagram_id = self.store.generate_id()
        record = diagram.stamped()
        self.store.save(diagram_id, record)
        self._diagrams[diagram_id] = record
        logger.info("Created diagram %s (%s)", diagram_id, record.summary)
        return diagram_id

    def get(self, diagram_id: str) -> WalkthroughDiagram | None:
        return self._diagrams.get(diagram_id)

    def list(self) -> list[tuple[str, WalkthroughDiagram]]:
        return list(self._diagrams.items())

    def count(self) -> int:
        return len(self._diagrams)

    def delete(self, diagram_id: str) -> bool:
        """Remove a diagram; returns False if it was not registered."""
        if diagram_id not in self._diagrams:
            return False
        self.store.delete(diagram_id)
        del self._diagrams[diagram_id]
        logger.info("Deleted diagram %s", diagram_id)
        return True

    def get_shared_url(self, diagram_id: str) -> str | None:
        return self.store.get_shared_url(diagram_id)

    def save_shared_url(self, diagram_id: str, remote_url: str) -> None:
        self.store.save_shared_url(diagram_id, remote_url)

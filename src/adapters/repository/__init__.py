"""Repository adapters - Document store implementations."""

from .memory import InMemoryDocumentStore
from .postgres import ChangeListener, PostgresDocumentStore, run_migrations

__all__ = ["ChangeListener", "InMemoryDocumentStore", "PostgresDocumentStore", "run_migrations"]

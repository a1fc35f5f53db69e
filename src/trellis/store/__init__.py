"""
Document store, history, migrations and persistence.
"""

from trellis.store.document_store import (
    DocumentState,
    DocumentStore,
    Listener,
    StoreEvent,
)
from trellis.store.history import HistoryManager
from trellis.store.migrations import CURRENT_VERSION, MIGRATIONS, migrate
from trellis.store.persistence import DocumentManager, validate_document_name

__all__ = [
    "CURRENT_VERSION",
    "MIGRATIONS",
    "DocumentManager",
    "DocumentState",
    "DocumentStore",
    "HistoryManager",
    "Listener",
    "StoreEvent",
    "migrate",
    "validate_document_name",
]

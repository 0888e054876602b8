import logging
import threading
from typing import Optional

from marketplace.core.config import get_settings
from marketplace.db.firebase_ops import get_firestore_ops_instance
from marketplace.db.memory_store import InMemoryStore
from marketplace.db.store import EntityStore
from marketplace.services.workflow import WorkflowEngine

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_store: Optional[EntityStore] = None
_engine: Optional[WorkflowEngine] = None


def get_store_instance() -> EntityStore:
    global _store
    with _lock:
        if _store is None:
            backend = get_settings().store_backend
            logger.info("Using '%s' entity store", backend)
            _store = InMemoryStore() if backend == "memory" else get_firestore_ops_instance()
        return _store


def get_workflow_engine() -> WorkflowEngine:
    """The process-wide engine; its entity locks must be shared by every request."""
    global _engine
    store = get_store_instance()
    with _lock:
        if _engine is None:
            _engine = WorkflowEngine(store)
        return _engine

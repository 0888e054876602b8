import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from pydantic import BaseModel as PydanticBaseModel

from marketplace.core.errors import InvalidArgumentError, StorageError
from marketplace.db.store import EntityStore
from marketplace.db.unit_of_work import StagedWrite, UnitOfWork

logger = logging.getLogger(__name__)

_OPERATORS = {
    "==": lambda field_value, value: field_value == value,
}


class InMemoryStore(EntityStore):
    """
    Process-local store with the same commit semantics as the Firestore one.
    Collections keep insertion order.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        with self._lock:
            data = self._collections.get(collection_name, {}).get(document_id)
            data = copy.deepcopy(data)
        if data is None:
            return None
        return self._to_model(collection_name, data, pydantic_model)

    def get_all(self, collection_name: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        with self._lock:
            documents = copy.deepcopy(list(self._collections.get(collection_name, {}).values()))
        return [self._to_model(collection_name, data, pydantic_model) for data in documents]

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        matches = _OPERATORS.get(operator)
        if matches is None:
            raise InvalidArgumentError(f"Unsupported query operator '{operator}'")
        with self._lock:
            documents = [
                copy.deepcopy(data)
                for data in self._collections.get(collection_name, {}).values()
                if matches(data.get(field), value)
            ]
        return [self._to_model(collection_name, data, pydantic_model) for data in documents]

    def commit(self, unit_of_work: UnitOfWork) -> None:
        with self._lock:
            for write in unit_of_work:
                self._check_precondition(write, self._collections.get(write.collection_name, {}).get(write.document_id))

            now = self._timestamp()
            # Previous contents of every touched document; None for documents being created.
            snapshots: Dict[tuple, Optional[Dict[str, Any]]] = {}
            try:
                for write in unit_of_work:
                    current = self._collections.get(write.collection_name, {}).get(write.document_id)
                    snapshots[write.key] = copy.deepcopy(current)
                    self._apply_write(write, now)
            except Exception as exc:
                self._restore(snapshots)
                logger.error("Rolled back %d staged write(s): %s", len(snapshots), exc)
                raise StorageError(f"Storage write failed, transition rolled back: {exc}") from exc

    def _apply_write(self, write: StagedWrite, now: str) -> None:
        collection = self._collections.setdefault(write.collection_name, {})
        document = self._document_for(write, now)
        if write.is_create:
            collection[write.document_id] = document
        else:
            collection[write.document_id].update(document)

    def _restore(self, snapshots: Dict[tuple, Optional[Dict[str, Any]]]) -> None:
        for (collection_name, document_id), previous in snapshots.items():
            collection = self._collections.setdefault(collection_name, {})
            if previous is None:
                collection.pop(document_id, None)
            else:
                collection[document_id] = previous

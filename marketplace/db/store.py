import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel as PydanticBaseModel, ValidationError

from marketplace.core.errors import ConflictError, StorageError
from marketplace.db.unit_of_work import StagedWrite, UnitOfWork

logger = logging.getLogger(__name__)


class EntityStore(ABC):
    """
    Storage interface used by the workflow engine.

    Reads return plain dicts, or pydantic models when `pydantic_model` is given.
    All writes go through commit(), which applies a UnitOfWork atomically and
    rejects it with ConflictError if any record changed since it was read.
    """

    @abstractmethod
    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        ...

    @abstractmethod
    def get_all(self, collection_name: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        ...

    @abstractmethod
    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        ...

    @abstractmethod
    def commit(self, unit_of_work: UnitOfWork) -> None:
        ...

    def _to_model(self, collection_name: str, data: Dict[str, Any], pydantic_model: Optional[type[PydanticBaseModel]]) -> Any:
        if pydantic_model is None:
            return data
        try:
            return pydantic_model(**data)
        except ValidationError as exc:
            logger.error("Corrupt document in '%s': %s", collection_name, exc)
            raise StorageError(f"Stored document in '{collection_name}' does not match {pydantic_model.__name__}") from exc

    @staticmethod
    def _check_precondition(write: StagedWrite, current: Optional[Dict[str, Any]]) -> None:
        if write.is_create:
            if current is not None:
                raise ConflictError(f"Document {write.document_id} already exists in '{write.collection_name}'")
            return
        if current is None:
            raise ConflictError(f"Document {write.document_id} in '{write.collection_name}' was removed concurrently")
        if current.get("version", 0) != write.expected_version:
            raise ConflictError(
                f"Document {write.document_id} in '{write.collection_name}' was modified concurrently "
                f"(expected version {write.expected_version}, found {current.get('version', 0)})"
            )

    @staticmethod
    def _document_for(write: StagedWrite, now: str) -> Dict[str, Any]:
        """The fields to write for a staged write, including store-managed ones."""
        data = dict(write.data)
        data["updated_at"] = now
        if write.is_create:
            data["version"] = 1
            data["created_at"] = now
        else:
            data["version"] = write.expected_version + 1
        return data

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

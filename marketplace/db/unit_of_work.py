from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel as PydanticBaseModel
from pydantic_core import to_jsonable_python


def to_document(value: Any) -> Any:
    """Converts pydantic models, enums and datetimes into plain document values."""
    if isinstance(value, PydanticBaseModel):
        return value.model_dump(mode="json")
    return to_jsonable_python(value)


@dataclass
class StagedWrite:
    collection_name: str
    document_id: str
    data: Dict[str, Any]
    # None means the document must not exist yet.
    expected_version: Optional[int] = None

    @property
    def is_create(self) -> bool:
        return self.expected_version is None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.collection_name, self.document_id)


class UnitOfWork:
    """
    Writes of one workflow transition, staged in memory and handed to
    EntityStore.commit, which applies all of them or none of them.
    """

    def __init__(self):
        self._writes: List[StagedWrite] = []

    def create(self, collection_name: str, document_id: str, record: PydanticBaseModel) -> None:
        data = to_document(record)
        for managed in ("version", "created_at", "updated_at"):
            data.pop(managed, None)
        self._stage(StagedWrite(collection_name, document_id, data))

    def update(self, collection_name: str, document_id: str, updates: Dict[str, Any], expected_version: int) -> None:
        if not updates:
            raise ValueError("updates must not be empty")
        data = {field: to_document(value) for field, value in updates.items()}
        self._stage(StagedWrite(collection_name, document_id, data, expected_version))

    def _stage(self, write: StagedWrite) -> None:
        if any(staged.key == write.key for staged in self._writes):
            raise ValueError(f"Document {write.document_id} in '{write.collection_name}' is already staged")
        self._writes.append(write)

    def __iter__(self) -> Iterator[StagedWrite]:
        return iter(self._writes)

    def __len__(self) -> int:
        return len(self._writes)

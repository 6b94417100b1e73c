"""
Persistence collaborators for edit sessions.

The session manager hands each pending field to ``PersistenceBackend.persist``
exactly once per save. A backend signals the outcome by its return value:

- ``None`` or ``True``: accepted
- ``False`` or raising ``PersistenceError``: rejected (the manager retries)
- an awaitable resolving to one of the above: scheduled, never awaited
"""

from __future__ import annotations

import json
import pathlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..infrastructure.errors import PersistenceError
from ..utils import console


PersistResult = Union[None, bool, Awaitable[Optional[bool]]]


@dataclass(frozen=True)
class PersistRequest:
    """One field value to write for one entity."""
    entity_type: str
    entity_id: str
    field: str
    value: str
    session_id: Optional[str] = None
    revision: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class PersistenceBackend(ABC):
    """Interface for anything that can store field values."""

    @abstractmethod
    def persist(self, request: PersistRequest) -> PersistResult:
        ...


class InMemoryPersistence(PersistenceBackend):
    """
    Dict-backed store that records every request.

    ``fail_next`` makes the following writes raise PersistenceError, which is
    how hosts and tests rehearse the retry path.
    """

    def __init__(self):
        self.records: Dict[tuple[str, str], Dict[str, str]] = {}
        self.requests: List[PersistRequest] = []
        self._failures_remaining = 0
        self._failure_message = "write rejected"

    def fail_next(self, count: int = 1, message: str = "write rejected") -> None:
        self._failures_remaining = count
        self._failure_message = message

    def persist(self, request: PersistRequest) -> PersistResult:
        self.requests.append(request)
        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            raise PersistenceError(
                self._failure_message,
                context={"entity_id": request.entity_id, "field": request.field},
            )
        self.records.setdefault((request.entity_type, request.entity_id), {})[request.field] = request.value
        return True

    def get(self, entity_type: str, entity_id: str, field: str) -> Optional[str]:
        return self.records.get((entity_type, entity_id), {}).get(field)

    def load(self, entity_type: str, entity_id: str) -> Dict[str, str]:
        """All stored fields of one entity (copy)."""
        return dict(self.records.get((entity_type, entity_id), {}))


class CallbackPersistence(PersistenceBackend):
    """
    Adapts a plain callable, sync or async, to the backend interface.

    Example:
        async def put(request):
            await api.patch(f"/forms/{request.entity_id}", {request.field: request.value})

        manager = EditSessionManager(persistence=CallbackPersistence(put))
    """

    def __init__(self, callback: Callable[[PersistRequest], Any]):
        self.callback = callback

    def persist(self, request: PersistRequest) -> PersistResult:
        return self.callback(request)


class JsonFilePersistence(PersistenceBackend):
    """
    Stores each entity as a JSON file under ``storage_dir``.

    Layout: ``<storage_dir>/<entity_type>/<entity_id>.json`` holding
    ``{"fields": {...}, "last_modified": ...}``.
    """

    def __init__(self, storage_dir: pathlib.Path | str = None):
        if storage_dir is None:
            storage_dir = pathlib.Path.home() / ".copilot_sync" / "entities"
        self.storage_dir = pathlib.Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def get_entity_path(self, entity_type: str, entity_id: str) -> pathlib.Path:
        safe_id = "".join(c if c.isalnum() or c in "-_." else "_" for c in entity_id)
        return self.storage_dir / entity_type / f"{safe_id}.json"

    def load(self, entity_type: str, entity_id: str) -> Dict[str, str]:
        path = self.get_entity_path(entity_type, entity_id)
        if not path.exists():
            return {}
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} does not hold a JSON object")
        return data.get("fields", {})

    def persist(self, request: PersistRequest) -> PersistResult:
        path = self.get_entity_path(request.entity_type, request.entity_id)
        try:
            fields = self.load(request.entity_type, request.entity_id)
            fields[request.field] = request.value
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump({"fields": fields, "last_modified": datetime.now().isoformat()}, f, indent=2)
        except (OSError, ValueError) as e:
            raise PersistenceError(
                f"Could not write {path.name}",
                context={"path": str(path)},
                original_error=e,
            )
        console.debug(f"Persisted {request.entity_id}.{request.field}", detail=str(path))
        return True

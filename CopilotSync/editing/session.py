"""
Edit sessions - lifecycle, auto-save and persistence hand-off.

An edit session is one user's focus on one field (or a whole entity) of an
editable entity: a form, a component, a version or a history entry. The
manager owns every moving part of that lifecycle:

- ChangeRecorder: debounces raw input into EditChange records
- AutoSaveScheduler: re-armable save timer per session
- SessionRegistry: the set of live sessions, with change notifications
- One BufferStore per entity, the single authoritative value per field

State machine:

    start_edit_session ──> ACTIVE_CLEAN ──record_change──> ACTIVE_DIRTY
                               ^                               │
                               └──────── save_session ─────────┘
    end_edit_session / cancel_editing (from either) ──> ENDED

Stale session ids are never raised: the call is logged and becomes a no-op.

Usage:
    manager = EditSessionManager(persistence=InMemoryPersistence())
    sid = manager.start_edit_session("form", "user-42", field="bio")
    manager.on_input(sid, "bio", "Hello")
    ... 300ms later the change is recorded, 2s after that it is saved ...
    manager.end_edit_session(sid)
"""

from __future__ import annotations

import asyncio
import inspect
import random
import string
import time
from collections import deque
import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Any, Callable, Optional, Union

from .autosave import AutoSaveScheduler
from .buffers import BufferStore
from .recorder import ChangeRecorder
from ..config.sync_config import CopilotSyncConfig, get_config
from ..infrastructure.errors import PersistenceError, backoff_delay, handle_error
from ..runtime.scheduler import AsyncioScheduler, Scheduler
from ..runtime.telemetry import (
    SessionCancelledEvent,
    SessionEndedEvent,
    SessionSavedEvent,
    SessionSaveFailedEvent,
    SessionStartedEvent,
    TelemetryLog,
)
from ..storage.persistence import PersistenceBackend, PersistRequest
from ..utils import console


class EntityType(str, Enum):
    """Kinds of editable entities."""
    COMPONENT = "component"
    VERSION = "version"
    HISTORY = "history"
    FORM = "form"


class SessionState(str, Enum):
    """Derived lifecycle state of a session."""
    ACTIVE_CLEAN = "active_clean"
    ACTIVE_DIRTY = "active_dirty"
    ENDED = "ended"


_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    """Opaque session id: ``edit_<epoch-ms>_<random>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"edit_{int(time.time() * 1000)}_{suffix}"


@dataclass
class EditSession:
    """One live editing session."""
    id: str
    entity_type: EntityType
    entity_id: str
    field: Optional[str] = None
    is_active: bool = True
    has_unsaved_changes: bool = False
    last_modified: datetime = dataclasses.field(default_factory=datetime.now)
    auto_save_enabled: bool = True

    # Field values at the moment the session first touched them (for cancel)
    originals: dict[str, str] = dataclasses.field(default_factory=dict)

    # Working values recorded but not yet handed to persistence
    pending: dict[str, str] = dataclasses.field(default_factory=dict)

    revision: int = 0
    save_attempts: int = 0

    @property
    def state(self) -> SessionState:
        if not self.is_active:
            return SessionState.ENDED
        if self.has_unsaved_changes:
            return SessionState.ACTIVE_DIRTY
        return SessionState.ACTIVE_CLEAN

    @property
    def original_value(self) -> Optional[str]:
        """Value of the bound field when the session started."""
        if self.field is None:
            return None
        return self.originals.get(self.field)

    @property
    def entity_key(self) -> tuple[str, str]:
        return (self.entity_type.value, self.entity_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "field": self.field,
            "state": self.state.value,
            "has_unsaved_changes": self.has_unsaved_changes,
            "last_modified": self.last_modified.isoformat(),
            "auto_save_enabled": self.auto_save_enabled,
            "pending_fields": sorted(self.pending),
            "revision": self.revision,
        }


@dataclass(frozen=True)
class EditChange:
    """One debounced, committed change to a field."""
    session_id: str
    field: str
    old_value: str
    new_value: str
    timestamp: datetime = dataclasses.field(default_factory=datetime.now)


SessionListener = Callable[[list[EditSession]], None]


class SessionRegistry:
    """
    Live sessions by id.

    Listeners receive the list of active sessions after every change, the
    way a UI would re-render an "unsaved changes" indicator.
    """

    def __init__(self):
        self._sessions: dict[str, EditSession] = {}
        self._listeners: list[SessionListener] = []

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Optional[EditSession]:
        return self._sessions.get(session_id)

    def add(self, session: EditSession) -> None:
        self._sessions[session.id] = session
        self.broadcast()

    def remove(self, session_id: str) -> Optional[EditSession]:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self.broadcast()
        return session

    def values(self) -> list[EditSession]:
        return list(self._sessions.values())

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def broadcast(self) -> None:
        snapshot = [
            dataclasses.replace(s, originals=dict(s.originals), pending=dict(s.pending))
            for s in self._sessions.values() if s.is_active
        ]
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                console.warning("Session listener failed", detail=str(e))


@dataclass
class _SaveBatch:
    """Outcome tracking for one save_session call."""
    session_id: str
    revision: int
    values: dict[str, str]
    automatic: bool
    outstanding: set[str] = dataclasses.field(default_factory=set)
    failures: dict[str, PersistenceError] = dataclasses.field(default_factory=dict)


class EditSessionManager:
    """
    Orchestrates edit sessions over shared entity buffers.

    Args:
        scheduler: Timer source (defaults to the running asyncio loop)
        persistence: Where saved values go; None keeps values in buffers only
        telemetry: Event log (a private one is created when omitted)
        config: Tunables (defaults to the global configuration)
        registry: Session registry, injectable so several views share one
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        persistence: Optional[PersistenceBackend] = None,
        telemetry: Optional[TelemetryLog] = None,
        config: Optional[CopilotSyncConfig] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        self.config = config or get_config()
        self.scheduler = scheduler or AsyncioScheduler()
        self.persistence = persistence
        self.telemetry = telemetry or TelemetryLog()
        self.registry = registry or SessionRegistry()

        timing = self.config.timing
        self.recorder = ChangeRecorder(
            self.scheduler,
            on_commit=self.record_change,
            value_lookup=self._buffer_value,
            debounce_ms=timing.debounce_ms,
        )
        self.autosave = AutoSaveScheduler(self.scheduler, self._on_autosave)

        self._history: deque[EditChange] = deque(maxlen=self.config.history.change_history_cap)
        self._stores: dict[tuple[str, str], BufferStore] = {}
        self._in_flight: set[asyncio.Future] = set()
        # Save batches per session still waiting on persistence outcomes
        self._open_batches: dict[str, int] = {}

    # === Buffers ===

    def buffers(self, entity_type: Union[EntityType, str], entity_id: str) -> BufferStore:
        """The BufferStore for an entity, created on first use."""
        key = (EntityType(entity_type).value, entity_id)
        store = self._stores.get(key)
        if store is None:
            store = BufferStore()
            self._stores[key] = store
        return store

    def ensure_field(
        self,
        entity_type: Union[EntityType, str],
        entity_id: str,
        field: str,
        value: str = "",
    ) -> str:
        """Seed a field with its loaded value unless the buffer already holds one."""
        store = self.buffers(entity_type, entity_id)
        if not store.has(field):
            store.set(field, value)
        return store.get(field)

    def _store_for(self, session: EditSession) -> BufferStore:
        return self.buffers(session.entity_type, session.entity_id)

    def _buffer_value(self, session_id: str, field: str) -> Optional[str]:
        session = self.registry.get(session_id)
        if session is None:
            return None
        return self._store_for(session).get(field)

    # === Lifecycle ===

    def start_edit_session(
        self,
        entity_type: Union[EntityType, str],
        entity_id: str,
        auto_save: Optional[bool] = None,
        field: Optional[str] = None,
    ) -> str:
        """
        Open a session and return its id.

        Duplicate sessions on the same (entity, field) follow
        ``config.sessions.duplicate_sessions``: "allow" opens an independent
        second session, "reuse" hands back the existing one.
        """
        entity_type = EntityType(entity_type)
        if auto_save is None:
            auto_save = self.config.sessions.default_auto_save

        existing = [
            s for s in self.registry.values()
            if s.is_active and s.entity_type == entity_type
            and s.entity_id == entity_id and s.field == field
        ]
        if existing:
            if self.config.sessions.duplicate_sessions == "reuse":
                console.session_event("reuse", existing[0].id)
                return existing[0].id
            console.warning(
                f"Second session opened on {entity_type.value}/{entity_id}"
                + (f".{field}" if field else ""),
                detail=f"existing: {existing[0].id}",
            )

        session_id = generate_session_id()
        while session_id in self.registry:
            session_id = generate_session_id()

        session = EditSession(
            id=session_id,
            entity_type=entity_type,
            entity_id=entity_id,
            field=field,
            auto_save_enabled=auto_save,
        )
        if field is not None:
            session.originals[field] = self.buffers(entity_type, entity_id).get(field)

        self.registry.add(session)
        self.telemetry.emit(SessionStartedEvent(
            session_id=session_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            field=field,
            auto_save=auto_save,
        ))
        console.session_event("start", session_id, detail=f"{entity_type.value}/{entity_id}")
        return session_id

    def on_input(self, session_id: str, field: str, raw_value: str) -> None:
        """Feed one raw keystroke value through the debouncer."""
        if session_id not in self.registry:
            console.warning(f"Input for unknown session {session_id} ignored")
            return
        self.recorder.on_input(session_id, field, raw_value)

    def record_change(self, session_id: str, field: str, old_value: str, new_value: str) -> None:
        """
        Commit one debounced change.

        Writes the working value into the entity's buffer, appends to the
        change history, marks the session dirty and re-arms auto-save.
        """
        session = self.registry.get(session_id)
        if session is None:
            console.warning(f"Change for unknown session {session_id} ignored", detail=field)
            return

        store = self._store_for(session)
        current = store.get(field)
        if new_value == current:
            return

        session.originals.setdefault(field, current)
        store.set(field, new_value)
        self._history.append(EditChange(
            session_id=session_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
        ))

        session.pending[field] = new_value
        session.has_unsaved_changes = True
        session.last_modified = datetime.now()
        session.revision += 1

        if session.auto_save_enabled:
            self.autosave.arm(session_id, self.config.timing.autosave_delay_ms)
        self.registry.broadcast()

    def save_session(self, session_id: str) -> bool:
        """
        Hand a session's pending values to persistence.

        Returns False only for unknown sessions. Asynchronous persistence is
        scheduled, not awaited.
        """
        return self._save(session_id, automatic=False)

    def _on_autosave(self, session_id: str) -> None:
        if session_id not in self.registry:
            return
        self._save(session_id, automatic=True)

    def _save(self, session_id: str, automatic: bool) -> bool:
        session = self.registry.get(session_id)
        if session is None:
            console.warning(f"Save for unknown session {session_id} ignored")
            return False

        self.recorder.flush(session_id)
        self.autosave.disarm(session_id)

        values = dict(session.pending)
        session.pending.clear()
        session.last_modified = datetime.now()
        if self.config.sessions.persistence_mode == "optimistic":
            session.has_unsaved_changes = False
        elif not values and not self._open_batches.get(session_id):
            session.has_unsaved_changes = False
        self.registry.broadcast()

        if not values:
            return True

        self.telemetry.emit(SessionSavedEvent(
            session_id=session_id,
            fields=sorted(values),
            automatic=automatic,
        ))
        console.session_event("save", session_id, detail=", ".join(sorted(values)))

        batch = _SaveBatch(
            session_id=session_id,
            revision=session.revision,
            values=values,
            automatic=automatic,
            outstanding=set(values),
        )
        self._open_batches[session_id] = self._open_batches.get(session_id, 0) + 1
        for name, value in values.items():
            request = PersistRequest(
                entity_type=session.entity_type.value,
                entity_id=session.entity_id,
                field=name,
                value=value,
                session_id=session_id,
                revision=session.revision,
            )
            self._dispatch(batch, request)
        return True

    def _dispatch(self, batch: _SaveBatch, request: PersistRequest) -> None:
        if self.persistence is None:
            self._resolve(batch, request.field, None)
            return

        try:
            result = self.persistence.persist(request)
        except PersistenceError as e:
            self._resolve(batch, request.field, e)
            return
        except Exception as e:
            self._resolve(batch, request.field, PersistenceError(
                f"Persistence raised {type(e).__name__}", original_error=e,
            ))
            return

        if inspect.isawaitable(result):
            future = asyncio.ensure_future(result)
            self._in_flight.add(future)
            future.add_done_callback(partial(self._on_persist_done, batch, request.field))
            return

        self._resolve(batch, request.field, self._rejection(result))

    def _on_persist_done(self, batch: _SaveBatch, field: str, future: asyncio.Future) -> None:
        self._in_flight.discard(future)
        if future.cancelled():
            error: Optional[PersistenceError] = PersistenceError("Persistence write was cancelled")
        elif future.exception() is not None:
            exc = future.exception()
            error = exc if isinstance(exc, PersistenceError) else PersistenceError(
                f"Persistence raised {type(exc).__name__}", original_error=exc,
            )
        else:
            error = self._rejection(future.result())
        self._resolve(batch, field, error)

    @staticmethod
    def _rejection(result: Any) -> Optional[PersistenceError]:
        if result is False:
            return PersistenceError("Persistence rejected the write")
        return None

    def _resolve(self, batch: _SaveBatch, field: str, error: Optional[PersistenceError]) -> None:
        batch.outstanding.discard(field)
        if error is not None:
            batch.failures[field] = error
        if batch.outstanding:
            return
        remaining = self._open_batches.get(batch.session_id, 1) - 1
        if remaining > 0:
            self._open_batches[batch.session_id] = remaining
        else:
            self._open_batches.pop(batch.session_id, None)
        if batch.failures:
            self._handle_save_failure(batch)
        else:
            self._handle_save_success(batch)

    def _handle_save_success(self, batch: _SaveBatch) -> None:
        session = self.registry.get(batch.session_id)
        if session is None:
            return
        session.save_attempts = 0
        if (
            self.config.sessions.persistence_mode == "confirmed"
            and session.revision == batch.revision
            and not session.pending
            and not self._open_batches.get(session.id)
        ):
            session.has_unsaved_changes = False
            self.registry.broadcast()

    def _handle_save_failure(self, batch: _SaveBatch) -> None:
        failed = sorted(batch.failures)
        first_error = batch.failures[failed[0]]
        session = self.registry.get(batch.session_id)

        if session is None:
            console.error(
                f"Save failed after session {batch.session_id} ended",
                detail=f"{', '.join(failed)}: {first_error.message}",
            )
            self.telemetry.emit(SessionSaveFailedEvent(
                session_id=batch.session_id,
                fields=failed,
                error=first_error.message,
                will_retry=False,
            ))
            return

        handle_error(first_error, f"save {batch.session_id}")

        # Newer input for a field supersedes the failed value
        for name in failed:
            session.pending.setdefault(name, batch.values[name])
        session.has_unsaved_changes = True
        session.save_attempts += 1

        timing = self.config.timing
        will_retry = session.auto_save_enabled and session.save_attempts <= timing.retry_max_attempts
        if will_retry:
            delay = backoff_delay(
                session.save_attempts + 1,
                timing.autosave_delay_ms,
                timing.retry_backoff_factor,
            )
            self.autosave.arm(session.id, delay)
        else:
            console.warning(
                f"Changes in session {session.id} remain unsaved",
                detail=f"{session.save_attempts} failed attempts",
            )

        self.telemetry.emit(SessionSaveFailedEvent(
            session_id=session.id,
            fields=failed,
            error=first_error.message,
            attempt=session.save_attempts,
            will_retry=will_retry,
        ))
        self.registry.broadcast()

    def end_edit_session(self, session_id: str, save: bool = True) -> bool:
        """
        End a session, saving dirty state first when ``save`` is set.

        Without ``save`` pending values and debounced input are dropped.
        """
        session = self.registry.get(session_id)
        if session is None:
            console.warning(f"End for unknown session {session_id} ignored")
            return False

        self.autosave.disarm(session_id)
        saved = False
        discarded = False
        if save:
            self.recorder.flush(session_id)
            if session.has_unsaved_changes:
                saved = self._save(session_id, automatic=False)
        else:
            discarded = bool(self.recorder.discard(session_id) or session.pending)
            session.pending.clear()

        self._close(session)
        self.telemetry.emit(SessionEndedEvent(session_id=session_id, saved=saved, discarded=discarded))
        console.session_event("end", session_id, detail="saved" if saved else None)
        return True

    def cancel_editing(self, session_id: str) -> bool:
        """
        Abandon a session and restore every field it touched.

        Values already handed to persistence by an earlier auto-save are not
        rolled back there; only the buffers are restored.
        """
        session = self.registry.get(session_id)
        if session is None:
            console.warning(f"Cancel for unknown session {session_id} ignored")
            return False

        self.autosave.disarm(session_id)
        self.recorder.discard(session_id)

        store = self._store_for(session)
        restored = False
        for name, original in session.originals.items():
            if store.get(name) != original:
                store.set(name, original)
                restored = True

        session.pending.clear()
        session.has_unsaved_changes = False
        self._close(session)
        self.telemetry.emit(SessionCancelledEvent(session_id=session_id, restored=restored))
        console.session_event("cancel", session_id, detail="restored" if restored else None)
        return True

    def _close(self, session: EditSession) -> None:
        self.autosave.disarm(session.id)
        self.recorder.forget(session.id)
        session.is_active = False
        self.registry.remove(session.id)

    def save_all_sessions(self) -> int:
        """Save every session with unsaved changes. Returns how many were saved."""
        count = 0
        for session in self.registry.values():
            if session.has_unsaved_changes or self.recorder.has_pending(session.id):
                if self._save(session.id, automatic=False):
                    count += 1
        return count

    def shutdown(self, save: bool = True) -> int:
        """
        Stop all timers, optionally saving dirty sessions first.

        Sessions stay registered; hosts that are tearing down call this once.

        Returns:
            Number of sessions saved
        """
        saved = self.save_all_sessions() if save else 0
        for session in self.registry.values():
            self.recorder.discard(session.id)
        self.autosave.disarm_all()
        return saved

    # === Queries ===

    def get_session(self, session_id: str) -> Optional[EditSession]:
        return self.registry.get(session_id)

    def get_active_sessions(self) -> list[EditSession]:
        return [s for s in self.registry.values() if s.is_active]

    def get_sessions_by_type(self, entity_type: Union[EntityType, str]) -> list[EditSession]:
        entity_type = EntityType(entity_type)
        return [s for s in self.get_active_sessions() if s.entity_type == entity_type]

    def get_sessions_by_entity(
        self,
        entity_id: str,
        entity_type: Union[EntityType, str, None] = None,
    ) -> list[EditSession]:
        kind = EntityType(entity_type) if entity_type is not None else None
        return [
            s for s in self.get_active_sessions()
            if s.entity_id == entity_id and (kind is None or s.entity_type == kind)
        ]

    def has_unsaved_changes(self, session_id: Optional[str] = None) -> bool:
        """Dirty state of one session, or of any session when no id is given."""
        if session_id is not None:
            session = self.registry.get(session_id)
            if session is None:
                return False
            return session.has_unsaved_changes or self.recorder.has_pending(session_id)
        return any(self.has_unsaved_changes(s.id) for s in self.registry.values())

    def dirty_fields(self, entity_type: Union[EntityType, str], entity_id: str) -> set[str]:
        """Fields of an entity with unsaved or still-debouncing manual edits."""
        fields: set[str] = set()
        for session in self.get_sessions_by_entity(entity_id, entity_type):
            fields.update(session.pending)
            fields.update(self.recorder.pending_fields(session.id))
        return fields

    def get_session_history(self, session_id: str) -> list[EditChange]:
        return [c for c in self._history if c.session_id == session_id]

    def get_history(self) -> list[EditChange]:
        return list(self._history)

    def clear_history(self, session_id: Optional[str] = None) -> None:
        if session_id is None:
            self._history.clear()
            return
        kept = [c for c in self._history if c.session_id != session_id]
        self._history.clear()
        self._history.extend(kept)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Be told about the active session list after every change."""
        return self.registry.subscribe(listener)

    def summary(self) -> str:
        """Human-readable overview of live sessions."""
        sessions = self.get_active_sessions()
        lines = [f"EditSessionManager: {len(sessions)} active"]
        for s in sessions:
            target = f"{s.entity_type.value}/{s.entity_id}" + (f".{s.field}" if s.field else "")
            lines.append(f"  {s.id}: {target} ({s.state.value})")
        return "\n".join(lines)


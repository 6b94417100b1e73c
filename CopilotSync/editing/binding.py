"""
EditableBinding - binds one input control to an edit session.

Host UI toolkits forward their widget events here:

    binding = EditableBinding(manager, "user-42", "bio")
    widget.on("focus", binding.on_focus)
    widget.on("input", lambda e: binding.on_input(e.value))
    widget.on("blur", binding.on_blur)
    widget.on("keydown", lambda e: binding.on_key(e.key, ctrl=e.ctrl, meta=e.meta))
"""

from __future__ import annotations

from typing import Callable, Optional

from .session import EditSessionManager, EntityType
from ..utils import console


class EditableBinding:
    """
    One editable control: focus starts a session, blur ends it with a save,
    Escape cancels and Ctrl/Cmd+S saves immediately.
    """

    def __init__(
        self,
        manager: EditSessionManager,
        entity_id: str,
        field: str,
        entity_type: EntityType | str = EntityType.FORM,
        auto_save: bool = True,
        initial_value: str = "",
    ):
        self.manager = manager
        self.entity_id = entity_id
        self.field = field
        self.entity_type = EntityType(entity_type)
        self.auto_save = auto_save

        self.value = manager.ensure_field(self.entity_type, entity_id, field, initial_value)
        self.session_id: Optional[str] = None

        # Callbacks
        self.on_value_change: Optional[Callable[[str], None]] = None
        self.on_edit_start: Optional[Callable[[], None]] = None
        self.on_edit_end: Optional[Callable[[], None]] = None

    @property
    def is_editing(self) -> bool:
        return self.session_id is not None

    @property
    def has_changes(self) -> bool:
        """Unsaved or still-debouncing input in the current session."""
        return self.is_editing and self.manager.has_unsaved_changes(self.session_id)

    @property
    def css_classes(self) -> set[str]:
        classes = {"editable"}
        if self.is_editing:
            classes.add("editing")
        if self.has_changes:
            classes.add("has-changes")
        return classes

    def _emit(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            console.warning(f"Binding callback failed for {self.field}", detail=str(e))

    def on_focus(self) -> None:
        if self.is_editing:
            return
        self.value = self.manager.buffers(self.entity_type, self.entity_id).get(self.field)
        self.session_id = self.manager.start_edit_session(
            self.entity_type, self.entity_id, auto_save=self.auto_save, field=self.field,
        )
        self._emit(self.on_edit_start)

    def on_input(self, value: str) -> None:
        if not self.is_editing:
            self.on_focus()
        if value == self.value:
            return
        self.value = value
        self.manager.on_input(self.session_id, self.field, value)
        self._emit(self.on_value_change, value)

    def on_blur(self) -> None:
        if not self.is_editing:
            return
        session_id, self.session_id = self.session_id, None
        self.manager.end_edit_session(session_id, save=True)
        self._emit(self.on_edit_end)

    def on_key(self, key: str, ctrl: bool = False, meta: bool = False) -> bool:
        """
        Handle a key press.

        Returns:
            True if the key was consumed (the host should prevent its default)
        """
        if key == "Escape":
            return self.cancel()
        if key.lower() == "s" and (ctrl or meta):
            self.save()
            return True
        return False

    def save(self) -> bool:
        if not self.is_editing:
            return False
        return self.manager.save_session(self.session_id)

    def cancel(self) -> bool:
        """Restore the value from before this editing session and stop editing."""
        if not self.is_editing:
            return False
        session_id, self.session_id = self.session_id, None
        self.manager.cancel_editing(session_id)
        self.value = self.manager.buffers(self.entity_type, self.entity_id).get(self.field)
        self._emit(self.on_value_change, self.value)
        self._emit(self.on_edit_end)
        return True

    def destroy(self) -> None:
        """Control is going away: end any session with a save."""
        if self.is_editing:
            session_id, self.session_id = self.session_id, None
            self.manager.end_edit_session(session_id, save=True)

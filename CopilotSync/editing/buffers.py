"""
Buffer storage for one editable entity.

A buffer is the current text value of one named field. BufferStore is the only
owner of these values; everyone else reads snapshots. Widgets notice updates
by comparing ``version`` and re-reading ``snapshot()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional


CODE_BUFFERS = ("typescript", "html", "scss")


@dataclass
class EditorBuffers:
    """
    Fixed-shape record of code buffers plus any other named fields.

    Supports mapping-style access (``buffers["html"]``) so code and form
    fields are addressed the same way.
    """
    typescript: str = ""
    html: str = ""
    scss: str = ""
    fields: dict[str, str] = field(default_factory=dict)

    def __getitem__(self, name: str) -> str:
        if name in CODE_BUFFERS:
            return getattr(self, name)
        return self.fields.get(name, "")

    def get(self, name: str, default: str = "") -> str:
        if name in CODE_BUFFERS:
            return getattr(self, name)
        return self.fields.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in CODE_BUFFERS or name in self.fields

    def __iter__(self) -> Iterator[str]:
        yield from CODE_BUFFERS
        yield from self.fields

    def to_dict(self) -> dict[str, str]:
        data = {name: getattr(self, name) for name in CODE_BUFFERS}
        data.update(self.fields)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> EditorBuffers:
        return cls(
            typescript=data.get("typescript", ""),
            html=data.get("html", ""),
            scss=data.get("scss", ""),
            fields={k: v for k, v in data.items() if k not in CODE_BUFFERS},
        )

    @property
    def is_empty(self) -> bool:
        return not (self.typescript or self.html or self.scss)


class BufferStore:
    """
    Synchronous key/value holder for an entity's fields.

    No validation and no callbacks. Only EditSessionManager and SyncGate write
    to it.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        # Only fields that were loaded or written; code buffers read as "" until then
        self._values: dict[str, str] = {}
        self._version = 0
        if initial:
            self._values.update({k: str(v) for k, v in initial.items()})

    @property
    def version(self) -> int:
        """Incremented on every write that changes a value."""
        return self._version

    def has(self, name: str) -> bool:
        """True once the field has been loaded or written."""
        return name in self._values

    def get(self, name: str) -> str:
        return self._values.get(name, "")

    def set(self, name: str, text: str) -> None:
        if self.get(name) == text:
            self._values.setdefault(name, text)
            return
        self._values[name] = text
        self._version += 1

    def set_many(self, partial: Mapping[str, str]) -> None:
        changed = False
        for name, text in partial.items():
            if self.get(name) == text:
                self._values.setdefault(name, text)
                continue
            self._values[name] = text
            changed = True
        if changed:
            self._version += 1

    def snapshot(self) -> EditorBuffers:
        """Defensive copy of every buffer."""
        return EditorBuffers.from_dict(dict(self._values))

    def field_names(self) -> list[str]:
        return list(self._values)

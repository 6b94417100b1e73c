"""
Terminal rendering of SyncGate decisions.

One panel per field that would change, titled with the field name and its
line counts, plus the reply's explanation text underneath.
"""

from __future__ import annotations

import io
from typing import Optional

from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from ..editing.sync_gate import FieldDiff, SyncDecision


class DiffView:
    """
    Renders SyncDecisions with rich.

    Args:
        console: Target rich console (a default stdout console when omitted)
        theme: Pygments theme for the diff syntax highlighting
    """

    def __init__(self, console: Optional[Console] = None, theme: str = "monokai"):
        self.console = console or Console()
        self.theme = theme

    def field_panel(self, diff: FieldDiff) -> Panel:
        title = f"Diff: {diff.field} (+{diff.added_lines} -{diff.removed_lines})"
        border = "yellow" if diff.conflict else "green"
        if diff.conflict:
            title += " (unsaved manual edits)"
        syntax = Syntax(diff.unified_diff or "(no textual change)", "diff", theme=self.theme)
        return Panel(syntax, title=title, border_style=border)

    def render(self, decision: SyncDecision) -> RenderableType:
        parts: list[RenderableType] = []
        if decision.apply:
            for diff in decision.diff:
                if diff.has_changes:
                    parts.append(self.field_panel(diff))
        else:
            parts.append(Text("No code changes to apply.", style="dim"))

        if decision.explanation_text:
            parts.append(Panel(Markdown(decision.explanation_text), title="Copilot", border_style="magenta"))
        return Group(*parts)

    def show(self, decision: SyncDecision) -> None:
        self.console.print(self.render(decision))


def render_decision_text(decision: SyncDecision, width: int = 100) -> str:
    """Plain-text rendering, for logs and tests."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=width, color_system=None, force_terminal=False)
    DiffView(console).show(decision)
    return buffer.getvalue()

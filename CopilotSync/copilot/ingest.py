"""
Reply ingestion: copilot text in, confirmable SyncDecision out.
"""

from __future__ import annotations

from typing import Mapping, Optional, Union

from ..editing.buffers import BufferStore, EditorBuffers
from ..editing.fence_parser import CodeFenceParser, FencePolicy
from ..editing.sync_gate import SyncDecision, SyncGate
from ..runtime.telemetry import ReplyClassifiedEvent, TelemetryLog
from ..storage.ui_state import LocalUIState
from ..utils import console


# Reply modes the copilot panel sends prompts in
REPLY_MODES = ("generate", "edit", "explain")


class ReplyIngestor:
    """
    Parses copilot replies and routes them through a SyncGate.

    Args:
        gate: Gate bound to the entity whose buffers replies may change
        parser: Fence parser (defaults to the configured fence policy)
        ui_state: When given, every exchange with a prompt is added to chat history
        telemetry: Event log (defaults to the gate's)
    """

    def __init__(
        self,
        gate: SyncGate,
        parser: Optional[CodeFenceParser] = None,
        ui_state: Optional[LocalUIState] = None,
        telemetry: Optional[TelemetryLog] = None,
    ):
        self.gate = gate
        if parser is None:
            manager = gate.manager
            policy = FencePolicy.from_config(manager.config.fences) if manager is not None else None
            parser = CodeFenceParser(policy)
        self.parser = parser
        self.ui_state = ui_state
        self.telemetry = telemetry or gate.telemetry

    def ingest(
        self,
        reply_text: str,
        current_buffers: Union[EditorBuffers, Mapping[str, str], None] = None,
        prompt: Optional[str] = None,
        mode: str = "edit",
    ) -> SyncDecision:
        """
        Classify a reply and build the decision the confirmation UI shows.

        In "explain" mode code blocks are never offered for apply; the reply
        is treated as prose regardless of its fences.
        """
        if mode not in REPLY_MODES:
            console.warning(f"Unknown reply mode {mode!r}, treating as 'edit'")
            mode = "edit"

        parsed = self.parser.parse(reply_text)
        if self.telemetry is not None:
            self.telemetry.emit(ReplyClassifiedEvent(
                has_code=parsed.has_code,
                buckets=parsed.buckets,
                explanation_chars=len(parsed.explanation_text),
                metadata={"mode": mode},
            ))

        if mode == "explain" or not parsed.has_code:
            decision = SyncDecision(
                apply=False,
                diff=[],
                explanation_text=parsed.explanation_text,
                parsed=parsed,
                base_version=self.gate.store.version,
            )
        else:
            decision = self.gate.reconcile(parsed, current_buffers)

        console.debug(
            "Copilot reply classified",
            detail=f"code={','.join(parsed.buckets) or 'none'} apply={decision.apply}",
        )

        if self.ui_state is not None and prompt is not None:
            self.ui_state.add_exchange(prompt, reply_text, has_code=parsed.has_code)
        return decision


def ingest_reply(
    text: str,
    buffers: Union[EditorBuffers, Mapping[str, str], None] = None,
) -> SyncDecision:
    """
    Side-effect-free ingestion against a detached copy of ``buffers``.

    No telemetry, no history and no conflict detection.
    """
    if isinstance(buffers, EditorBuffers):
        buffers = buffers.to_dict()
    gate = SyncGate(BufferStore(buffers))
    return gate.reconcile(CodeFenceParser().parse(text))

"""Code fence extraction for copilot replies.

Splits a free-form reply into per-language code buckets and the prose around
them. Scanning is fail-open: anything the scanner cannot close cleanly stays
visible as explanation text, nothing raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .buffers import EditorBuffers
from ..config.sync_config import DEFAULT_ALIASES, DEFAULT_BUCKETS, DEFAULT_FALLBACK_TAGS, FenceConfig


FENCE = "```"

_TAG_RE = re.compile(r"[A-Za-z0-9_+#.\-]*")
_AFTER_TAG_RE = re.compile(r"[ \t]*(?:\r?\n)?")
# A tag followed by the end of its line, e.g. "```html\n"
_OPENER_RE = re.compile(r"[A-Za-z0-9_+#][A-Za-z0-9_+#.\-]*[ \t]*\r?\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class FencePolicy:
    """Recognized buckets and the language tags that map onto them."""
    buckets: tuple[str, ...] = tuple(DEFAULT_BUCKETS)
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    fallback_tags: frozenset[str] = frozenset(DEFAULT_FALLBACK_TAGS)

    @classmethod
    def from_config(cls, config: FenceConfig) -> FencePolicy:
        return cls(
            buckets=tuple(config.buckets),
            aliases=dict(config.aliases),
            fallback_tags=frozenset(config.fallback_tags),
        )

    def bucket_for(self, tag: str) -> Optional[str]:
        """Canonical bucket for a fence tag, or None when the tag is not code we track."""
        tag = (tag or "").strip().lower()
        if not tag:
            return None
        if tag in self.buckets:
            return tag
        bucket = self.aliases.get(tag)
        return bucket if bucket in self.buckets else None

    def is_fallback(self, tag: str) -> bool:
        return (tag or "").strip().lower() in self.fallback_tags


@dataclass(frozen=True)
class CodeFence:
    """One recognized fenced block."""
    language: str
    bucket: str
    code: str
    start: int
    end: int


@dataclass
class ParsedReply:
    """
    Result of parsing one reply.

    ``code`` only holds buckets that received non-empty content, so
    ``has_code`` is False exactly when ``code`` is empty.
    """
    code: dict[str, str] = field(default_factory=dict)
    explanation_text: str = ""
    original_text: str = ""
    fences: list[CodeFence] = field(default_factory=list)

    @property
    def has_code(self) -> bool:
        return bool(self.code)

    @property
    def typescript(self) -> str:
        return self.code.get("typescript", "")

    @property
    def html(self) -> str:
        return self.code.get("html", "")

    @property
    def scss(self) -> str:
        return self.code.get("scss", "")

    @property
    def buckets(self) -> list[str]:
        return list(self.code)

    def get(self, bucket: str, default: str = "") -> str:
        return self.code.get(bucket, default)


class CodeFenceParser:
    """
    Stateless parser for fenced code in copilot replies.

    A fence opens with three backticks and an optional tag, and closes at the
    next three-backtick marker that does not itself start a tagged line.
    Blocks whose tag maps to a bucket are lifted out of the text; every other
    block stays in the explanation. Within a bucket the last block wins, except
    that a fallback tag (``javascript``, ``css``) only fills a bucket no other
    block has filled.
    """

    def __init__(self, policy: Optional[FencePolicy] = None):
        self.policy = policy or FencePolicy()

    def parse(self, text: Optional[str]) -> ParsedReply:
        text = text or ""
        code: dict[str, str] = {}
        from_fallback: set[str] = set()  # buckets last filled by a fallback tag
        fences: list[CodeFence] = []
        pieces: list[str] = []
        removed = False
        pos = 0

        while True:
            opener = text.find(FENCE, pos)
            if opener < 0:
                pieces.append(text[pos:])
                break

            tag = _TAG_RE.match(text, opener + len(FENCE)).group(0)
            body_start = _AFTER_TAG_RE.match(text, opener + len(FENCE) + len(tag)).end()
            closer, next_opener = self._find_closer(text, body_start)

            if closer is None:
                if next_opener is None:
                    # Unterminated: the rest of the reply is prose
                    pieces.append(text[pos:])
                    break
                # Another tagged fence opens first; resume scanning there
                pieces.append(text[pos:next_opener])
                pos = next_opener
                continue

            end = closer + len(FENCE)
            bucket = self.policy.bucket_for(tag)
            if bucket is None:
                pieces.append(text[pos:end])
            else:
                pieces.append(text[pos:opener])
                removed = True
                body = text[body_start:closer].strip()
                fallback = self.policy.is_fallback(tag)
                if body and (not fallback or bucket not in code or bucket in from_fallback):
                    code[bucket] = body
                    if fallback:
                        from_fallback.add(bucket)
                    else:
                        from_fallback.discard(bucket)
                    fences.append(CodeFence(tag, bucket, body, opener, end))
            pos = end

        explanation = "".join(pieces)
        if removed:
            explanation = _BLANK_RUN_RE.sub("\n\n", explanation)

        return ParsedReply(
            code=code,
            explanation_text=explanation.strip(),
            original_text=text,
            fences=fences,
        )

    @staticmethod
    def _find_closer(text: str, start: int) -> tuple[Optional[int], Optional[int]]:
        """
        Locate the marker that closes a fence body starting at ``start``.

        Returns (closer_index, None) for a bare marker, (None, opener_index)
        when a tagged opener comes first, and (None, None) when no marker follows.
        """
        idx = text.find(FENCE, start)
        if idx < 0:
            return None, None
        if _OPENER_RE.match(text, idx + len(FENCE)):
            return None, idx
        return idx, None

    # --- Helpers used by the copilot panel ---

    def has_code_fences(self, text: Optional[str]) -> bool:
        """True if the text contains at least one closed fence of any language."""
        text = text or ""
        opener = text.find(FENCE)
        while opener >= 0:
            tag = _TAG_RE.match(text, opener + len(FENCE)).group(0)
            body_start = _AFTER_TAG_RE.match(text, opener + len(FENCE) + len(tag)).end()
            closer, next_opener = self._find_closer(text, body_start)
            if closer is not None:
                return True
            if next_opener is None:
                return False
            opener = next_opener
        return False

    def is_explanation_only(self, text: Optional[str]) -> bool:
        return not self.parse(text).has_code

    @staticmethod
    def to_buffers(parsed: ParsedReply) -> dict[str, str]:
        """Partial buffer update carrying only the buckets present in the reply."""
        return dict(parsed.code)

    @staticmethod
    def merge_with_existing(existing: EditorBuffers, parsed: ParsedReply) -> EditorBuffers:
        merged = existing.to_dict()
        merged.update(parsed.code)
        return EditorBuffers.from_dict(merged)


_default_parser = CodeFenceParser()


def parse_reply(text: Optional[str]) -> ParsedReply:
    """Parse with the default policy."""
    return _default_parser.parse(text)

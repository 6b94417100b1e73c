"""
CopilotSync Configuration System.

Single source of truth for the editing core's tunables:
- Debounce and auto-save timing
- Save retry/backoff policy
- Code fence buckets and language aliases
- History bounds (change ring, chat history)
- Session policies (persistence clearing, duplicate sessions)

Loads from copilot_sync.yaml (if present) with sensible defaults. The file
location can be overridden with COPILOT_SYNC_CONFIG, and individual timing
values with COPILOT_SYNC_DEBOUNCE_MS / COPILOT_SYNC_AUTOSAVE_MS.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional
from pathlib import Path
import yaml
import os

from ..infrastructure.errors import ConfigError
from ..utils import console


DEFAULT_BUCKETS = ["typescript", "html", "scss"]

DEFAULT_ALIASES = {
    "ts": "typescript",
    "tsx": "typescript",
    "javascript": "typescript",
    "js": "typescript",
    "jsx": "typescript",
    "htm": "html",
    "css": "scss",
    "sass": "scss",
    "less": "scss",
}

# Tags from a neighbouring language: they only fill a bucket no native block filled
DEFAULT_FALLBACK_TAGS = ["javascript", "js", "jsx", "css"]

PERSISTENCE_MODES = ("optimistic", "confirmed")
DUPLICATE_POLICIES = ("allow", "reuse")


@dataclass
class TimingConfig:
    """Debounce and auto-save timing, in milliseconds."""
    debounce_ms: int = 300
    autosave_delay_ms: int = 2000

    # Retry policy after a rejected save: delay = autosave_delay_ms * factor**attempt
    retry_backoff_factor: float = 2.0
    retry_max_attempts: int = 3


@dataclass
class FenceConfig:
    """Which fenced languages count as code, and how tags collapse into buckets."""
    buckets: List[str] = field(default_factory=lambda: list(DEFAULT_BUCKETS))
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    fallback_tags: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_TAGS))


@dataclass
class HistoryConfig:
    """Bounds for in-memory and persisted histories."""
    change_history_cap: int = 500
    chat_history_limit: int = 5


@dataclass
class SessionPolicy:
    """Behavioural choices left open by the editing model."""
    persistence_mode: str = "optimistic"  # optimistic, confirmed
    duplicate_sessions: str = "allow"  # allow, reuse
    default_auto_save: bool = True


class CopilotSyncConfig:
    """
    Unified configuration for CopilotSync.

    Loads from copilot_sync.yaml if available, otherwise uses defaults.
    Raises ConfigError when a value is present but unusable.
    """

    def __init__(self, config_path: Optional[Path] = None, data: Optional[dict] = None):
        if config_path is None and os.getenv("COPILOT_SYNC_CONFIG"):
            config_path = Path(os.environ["COPILOT_SYNC_CONFIG"])
        self.config_path = config_path or Path.cwd() / "copilot_sync.yaml"

        if data is None:
            if self.config_path.exists():
                with open(self.config_path) as f:
                    try:
                        data = yaml.safe_load(f) or {}
                    except yaml.YAMLError as e:
                        raise ConfigError(
                            f"Could not parse {self.config_path}",
                            context={"path": str(self.config_path)},
                            original_error=e,
                        )
                console.info(f"Loaded config from {self.config_path}")
            else:
                data = {}
                console.debug(f"No config file at {self.config_path}, using defaults")

        self.timing = self._parse_timing(data.get("timing", {}))
        self.fences = self._parse_fences(data.get("fences", {}))
        self.history = self._parse_history(data.get("history", {}))
        self.sessions = self._parse_sessions(data.get("sessions", {}))

        self._apply_env_overrides()
        self._raw_config = data

    def _parse_timing(self, data: dict) -> TimingConfig:
        """Parse timing configuration."""
        timing = TimingConfig(
            debounce_ms=int(data.get("debounce_ms", 300)),
            autosave_delay_ms=int(data.get("autosave_delay_ms", 2000)),
            retry_backoff_factor=float(data.get("retry_backoff_factor", 2.0)),
            retry_max_attempts=int(data.get("retry_max_attempts", 3)),
        )
        if timing.debounce_ms < 0 or timing.autosave_delay_ms < 0:
            raise ConfigError("Timing values must be non-negative", context=asdict(timing))
        if timing.retry_backoff_factor < 1.0:
            raise ConfigError("retry_backoff_factor must be >= 1.0", context=asdict(timing))
        return timing

    def _parse_fences(self, data: dict) -> FenceConfig:
        """Parse code fence configuration."""
        buckets = [str(b).lower() for b in data.get("buckets", DEFAULT_BUCKETS)]
        aliases = dict(DEFAULT_ALIASES)
        aliases.update({str(k).lower(): str(v).lower() for k, v in data.get("aliases", {}).items()})

        # Aliases pointing at a bucket that is not configured are dropped
        aliases = {tag: bucket for tag, bucket in aliases.items() if bucket in buckets}
        fallback_tags = [str(t).lower() for t in data.get("fallback_tags", DEFAULT_FALLBACK_TAGS)]
        return FenceConfig(buckets=buckets, aliases=aliases, fallback_tags=fallback_tags)

    def _parse_history(self, data: dict) -> HistoryConfig:
        """Parse history bounds."""
        history = HistoryConfig(
            change_history_cap=int(data.get("change_history_cap", 500)),
            chat_history_limit=int(data.get("chat_history_limit", 5)),
        )
        if history.change_history_cap < 1 or history.chat_history_limit < 1:
            raise ConfigError("History bounds must be at least 1", context=asdict(history))
        return history

    def _parse_sessions(self, data: dict) -> SessionPolicy:
        """Parse session policies."""
        policy = SessionPolicy(
            persistence_mode=data.get("persistence_mode", "optimistic"),
            duplicate_sessions=data.get("duplicate_sessions", "allow"),
            default_auto_save=bool(data.get("default_auto_save", True)),
        )
        if policy.persistence_mode not in PERSISTENCE_MODES:
            raise ConfigError(
                f"Unknown persistence_mode: {policy.persistence_mode}",
                context={"allowed": list(PERSISTENCE_MODES)},
            )
        if policy.duplicate_sessions not in DUPLICATE_POLICIES:
            raise ConfigError(
                f"Unknown duplicate_sessions policy: {policy.duplicate_sessions}",
                context={"allowed": list(DUPLICATE_POLICIES)},
            )
        return policy

    def _apply_env_overrides(self) -> None:
        """Environment variables win over the YAML file."""
        overrides = {
            "COPILOT_SYNC_DEBOUNCE_MS": "debounce_ms",
            "COPILOT_SYNC_AUTOSAVE_MS": "autosave_delay_ms",
        }
        for env_name, attr in overrides.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            try:
                setattr(self.timing, attr, int(raw))
            except ValueError as e:
                raise ConfigError(
                    f"{env_name} must be an integer, got {raw!r}",
                    original_error=e,
                )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "timing": asdict(self.timing),
            "fences": asdict(self.fences),
            "history": asdict(self.history),
            "sessions": asdict(self.sessions),
        }


# Global instance for callers that do not pass their own
_config: Optional[CopilotSyncConfig] = None


def get_config(config_path: Optional[Path] = None) -> CopilotSyncConfig:
    """Get or initialize the global configuration."""
    global _config
    if _config is None:
        _config = CopilotSyncConfig(config_path)
    return _config


def reload_config(config_path: Optional[Path] = None) -> CopilotSyncConfig:
    """Reload configuration."""
    global _config
    _config = CopilotSyncConfig(config_path)
    return _config

"""
Console output formatting for CopilotSync.

Provides styled terminal output for editing-session and copilot activity.
"""

import os
import sys
from typing import Optional
from datetime import datetime


class Style:
    """ANSI escape codes for terminal styling."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"


class StatusIcon:
    """Status icons for different operations."""
    SUCCESS = "✓"
    FAILURE = "✗"
    WARNING = "⚠"
    INFO = "ℹ"
    DEBUG = "·"
    EDIT = "✏"
    SAVE = "💾"
    CANCEL = "↩"
    CHAT = "💬"


def _verbose_from_env() -> bool:
    return os.environ.get("COPILOT_SYNC_VERBOSE", "0").lower() in ("1", "true", "yes", "on")


class Console:
    """
    Styled console output for CopilotSync.

    Every component logs through the shared ``console`` instance so that a host
    application can silence or redirect output in one place.
    """

    _enabled = True  # Can disable colors for non-TTY
    _verbose = _verbose_from_env()
    _quiet = False

    @classmethod
    def enable_colors(cls, enabled: bool = True) -> None:
        """Enable or disable colored output."""
        cls._enabled = enabled

    @classmethod
    def set_verbose(cls, verbose: bool = True) -> None:
        """Enable verbose (debug) output."""
        cls._verbose = verbose

    @classmethod
    def set_quiet(cls, quiet: bool = True) -> None:
        """Suppress everything except errors."""
        cls._quiet = quiet

    @classmethod
    def _style(cls, text: str, *styles: str) -> str:
        """Apply styles to text if colors are enabled."""
        if not cls._enabled or not sys.stdout.isatty():
            return text
        style_str = "".join(styles)
        return f"{style_str}{text}{Style.RESET}"

    @classmethod
    def _emit(cls, icon: str, message: str, detail: Optional[str] = None) -> None:
        if detail:
            detail_text = cls._style(f"({detail})", Style.DIM)
            print(f"{icon} {message} {detail_text}")
        else:
            print(f"{icon} {message}")

    # === Status Messages ===

    @classmethod
    def success(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a success message."""
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.GREEN), detail)

    @classmethod
    def error(cls, message: str, detail: Optional[str] = None) -> None:
        """Print an error message."""
        icon = cls._style(StatusIcon.FAILURE, Style.RED, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.RED), detail)

    @classmethod
    def warning(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a warning message."""
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.WARNING, Style.YELLOW)
        cls._emit(icon, cls._style(message, Style.YELLOW), detail)

    @classmethod
    def info(cls, message: str, detail: Optional[str] = None) -> None:
        """Print an info message."""
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.INFO, Style.BLUE)
        cls._emit(icon, message, detail)

    @classmethod
    def debug(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a debug message (verbose mode only)."""
        if cls._quiet or not cls._verbose:
            return
        icon = cls._style(StatusIcon.DEBUG, Style.DIM)
        cls._emit(icon, cls._style(message, Style.DIM), detail)

    # === Editing Activity ===

    @classmethod
    def session_event(cls, action: str, session_id: str, detail: Optional[str] = None) -> None:
        """Log a session lifecycle transition (debug level)."""
        if cls._quiet or not cls._verbose:
            return
        icon = cls._style(StatusIcon.EDIT, Style.CYAN)
        name = cls._style(action, Style.CYAN, Style.BOLD)
        cls._emit(icon, f"{name} {session_id}", detail)

    @classmethod
    def copilot_message(cls, message: str) -> None:
        """Display an explanation coming back from the copilot."""
        if cls._quiet:
            return
        name = cls._style("[COPILOT]:", Style.BOLD, Style.MAGENTA)
        print(f"\n{name} {message}")


# Convenience singleton
console = Console()


def get_current_timestamp() -> str:
    """
    Get current timestamp in ISO format.

    Returns format: YYYY-MM-DD HH:MM:SS
    """
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "Style",
    "StatusIcon",
    "Console",
    "console",
    "get_current_timestamp",
]

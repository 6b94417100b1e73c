#!/usr/bin/env python3
"""
CopilotSync - interactive walkthrough of the editing core.

Simulates a user typing into a form field, auto-save firing, and a copilot
reply being reviewed as a diff before it touches the component buffers.

Usage:
    python scripts/copilot_sync_demo.py
    python scripts/copilot_sync_demo.py --reply-file reply.md
    python scripts/copilot_sync_demo.py --telemetry-dir Outputs/telemetry --yes
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


SAMPLE_REPLY = """Sure! Here is a friendlier button.

```typescript
@Component({ selector: 'app-save-button', templateUrl: './save-button.html' })
export class SaveButtonComponent {
  @Input() label = 'Save changes';
}
```

```html
<button class="save">{{ label }}</button>
```

The label is now an input so the parent can localize it."""


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="CopilotSync: edit sessions and copilot code sync walkthrough",
    )
    parser.add_argument("--reply-file", help="Read the copilot reply from this file")
    parser.add_argument("--telemetry-dir", help="Stream telemetry.jsonl into this directory")
    parser.add_argument("--yes", "-y", action="store_true", help="Apply the diff without asking")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    return parser.parse_args()


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from CopilotSync import (
        EditSessionManager,
        InMemoryPersistence,
        ReplyIngestor,
        SyncGate,
        TelemetryLog,
        get_config,
    )
    from CopilotSync.infrastructure import ConfigError
    from CopilotSync.storage import LocalUIState
    from CopilotSync.utils import console, get_current_timestamp
    from CopilotSync.utils.diff_view import DiffView

    if args.verbose:
        console.set_verbose(True)

    try:
        config = get_config()
    except ConfigError as e:
        console.error(str(e))
        return 1

    console.info(f"CopilotSync walkthrough started {get_current_timestamp()}")

    telemetry = TelemetryLog(Path(args.telemetry_dir) if args.telemetry_dir else None)
    persistence = InMemoryPersistence()
    manager = EditSessionManager(persistence=persistence, telemetry=telemetry, config=config)

    # 1. Typing into a form field
    sid = manager.start_edit_session("form", "user-42", field="bio")
    for prefix in ("H", "He", "Hel", "Hell", "Hello"):
        manager.on_input(sid, "bio", prefix)
        await asyncio.sleep(0.05)

    wait_s = (config.timing.debounce_ms + config.timing.autosave_delay_ms) / 1000 + 0.2
    console.info(f"Waiting {wait_s:.1f}s for debounce and auto-save")
    await asyncio.sleep(wait_s)
    console.success("Auto-saved bio", detail=repr(persistence.get("form", "user-42", "bio")))
    manager.end_edit_session(sid)

    # 2. A copilot reply against a component
    reply = Path(args.reply_file).read_text() if args.reply_file else SAMPLE_REPLY
    manager.ensure_field("component", "save-button", "html", "<button>Save</button>")
    gate = SyncGate(manager=manager, entity_type="component", entity_id="save-button")
    ui_state = LocalUIState(telemetry=telemetry, history_limit=config.history.chat_history_limit)
    ingestor = ReplyIngestor(gate, ui_state=ui_state)

    decision = ingestor.ingest(reply, prompt="Make the save button friendlier")
    if decision.explanation_text:
        console.copilot_message(decision.explanation_text)

    if not decision.apply:
        console.info("Reply carried no code changes")
    else:
        DiffView().show(decision)
        answer = "y" if args.yes else input("Apply these changes? [y/N] ").strip().lower()
        if answer.startswith("y"):
            result = gate.apply(decision)
            console.success("Applied", detail=", ".join(result.applied) or "nothing")
        else:
            gate.cancel(decision)
            console.warning("Changes discarded")

    manager.shutdown()
    summary = telemetry.summary()
    console.info(f"{summary['event_count']} telemetry events", detail=str(summary["event_types"]))
    return 0


def main() -> None:
    """Main entry point."""
    args = parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

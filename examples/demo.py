#!/usr/bin/env python3
"""
crewdesk demo -- route a few requests to whichever providers are installed.

Run:
    python examples/demo.py

Needs at least one provider: a CLI tool on PATH (claude, codex, gemini), a
running Ollama server, or an API key for a cloud provider. Set CREWDESK_CONFIG
to point to your config file, or use the packaged defaults.
"""
from __future__ import annotations

import sys
from pathlib import Path

# Ensure crewdesk is importable when running from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from crewdesk.config import get_config
from crewdesk.errors import CrewDeskError
from crewdesk.orchestrator import Orchestrator
from crewdesk.workflow import format_task_list


DEMO_REQUESTS = [
    "write a short blog post about sourdough starters",
    "explain how does a hash map handle collisions",
    "First research the history of the bicycle, then write a two-line summary.",
]


def _stream(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def main() -> int:
    orchestrator = Orchestrator.from_config(get_config())
    if not orchestrator.is_available():
        print("No providers reachable. Install a CLI tool, start Ollama, or set an API key.")
        return 1

    print(f"Reachable providers: {', '.join(sorted(orchestrator.registry.reachable))}\n")
    for request in DEMO_REQUESTS:
        print("=" * 72)
        print(f"> {request}\n")
        try:
            outcome = orchestrator.handle_request_streaming(request, _stream)
        except CrewDeskError as exc:
            print(f"[failed] {exc}")
            continue
        print("\n")
        for line in format_task_list(outcome.tasks):
            print(f"  {line}")
        print()

    print(orchestrator.status_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())

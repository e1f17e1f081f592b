"""Command line interface for crewdesk."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from crewdesk.cache import ResponseCache
from crewdesk.classifier import classify, decompose
from crewdesk.config import get_config
from crewdesk.errors import CrewDeskError
from crewdesk.models.registry import ProviderRegistry
from crewdesk.orchestrator import Orchestrator
from crewdesk.workflow import format_task_list


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2))


def _stdout_sink(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def cmd_ask(args: argparse.Namespace) -> int:
    try:
        orchestrator = Orchestrator.from_config(get_config(args.config))
        if args.stream and not args.json:
            outcome = orchestrator.handle_request_streaming(args.text, _stdout_sink, override=args.provider)
            sys.stdout.write("\n")
        else:
            outcome = orchestrator.handle_request(args.text, override=args.provider)
    except CrewDeskError as exc:
        print(f"[crewdesk] {exc}", file=sys.stderr)
        return 1

    if args.json:
        _print({
            "response": outcome.response,
            "tasks": [task.to_dict() for task in outcome.tasks],
            "goal": outcome.goal.status.value if outcome.goal else None,
            "session": orchestrator.session.to_dict(),
        })
    elif not args.stream:
        print(outcome.response)
    for line in format_task_list(outcome.tasks):
        print(line, file=sys.stderr)
    return 0


def cmd_providers(args: argparse.Namespace) -> int:
    config = get_config(args.config)
    registry = ProviderRegistry.from_config(config, detect=False)
    reachable = registry.refresh(parallel=args.parallel)
    _print({
        "providers": [
            {
                "name": name,
                "kind": provider.kind,
                "streaming": provider.supports_streaming,
                "reachable": name in reachable,
            }
            for name, provider in registry.providers.items()
        ],
        "team": [
            {
                "name": member.name,
                "role": member.role,
                "specialty": member.specialty.value,
                "provider": member.provider,
                "available": member.available,
            }
            for member in registry.members
        ],
    })
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    analysis = classify(args.text)
    _print({
        "intent": analysis.intent.value,
        "display_name": analysis.intent.display_name,
        "confidence": round(analysis.confidence, 4),
        "keywords": analysis.keywords,
        "complex": analysis.is_complex,
        "fragments": [
            {"text": fragment, "intent": intent.value} for fragment, intent in decompose(args.text)
        ],
    })
    return 0


def cmd_cache(args: argparse.Namespace) -> int:
    cache = ResponseCache.from_config(get_config(args.config))
    if args.cache_cmd == "clear":
        _print({"removed": cache.clear()})
    elif args.cache_cmd == "prune":
        _print({"removed": cache.prune()})
    else:
        stats = cache.stats()
        _print({
            "directory": str(cache.directory),
            "enabled": cache.enabled,
            "total_entries": stats.total_entries,
            "active_entries": stats.active_entries,
            "expired_entries": stats.expired_entries,
            "total_bytes": stats.total_bytes,
        })
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crewdesk", description="Route requests to a team of AI providers")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    ask = sub.add_parser("ask", help="Send a request to the team")
    ask.add_argument("text")
    ask.add_argument("--provider", help="Force a provider (aliases like claude, gpt, local work)")
    ask.add_argument("--stream", action="store_true", help="Print output as it arrives")
    ask.add_argument("--json", action="store_true", help="Print the outcome as JSON")

    providers = sub.add_parser("providers", help="Show configured providers and the team roster")
    providers.add_argument("--parallel", action="store_true", help="Probe providers concurrently")

    classify_cmd = sub.add_parser("classify", help="Show how a request would be classified")
    classify_cmd.add_argument("text")

    cache = sub.add_parser("cache", help="Inspect or clean the response cache")
    cache_sub = cache.add_subparsers(dest="cache_cmd")
    cache_sub.add_parser("stats")
    cache_sub.add_parser("clear")
    cache_sub.add_parser("prune")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "ask":
        code = cmd_ask(args)
    elif args.command == "providers":
        code = cmd_providers(args)
    elif args.command == "classify":
        code = cmd_classify(args)
    elif args.command == "cache":
        code = cmd_cache(args)
    else:
        parser.print_help()
        code = 0
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()

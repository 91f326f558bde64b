#!/usr/bin/env python3
"""
Agent Council

Ask several AI coding CLIs (Codex, Claude Code, Gemini) the same question,
let them rank each other's anonymised answers, and have a chairman
synthesise the final answer.

Usage:
    council.py "question" [--chairman NAME] [--timeout SECONDS] [--json]
    council.py            # interactive REPL
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("council")

SCRIPT_DIR = Path(__file__).parent.resolve()

# Add script directory to path for relative imports (enables running from any directory)
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from agents import filter_available_agents
from config import apply_overrides, find_config_file, load_config
from errors import CouncilError, NoAgentsAvailable
from frontend import (
    EXIT_ERROR, EXIT_OK, run_headless_session, run_interactive_session,
    session_exit_code,
)
from repl import CouncilRepl, agents_table
from utils import set_live_log


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Agent Council: multi-agent consensus for CLI assistants")
    ap.add_argument("question", nargs="*", help="Question to ask (omit for the interactive REPL)")
    ap.add_argument("--chairman", "-c", help="Agent that synthesises the final answer")
    ap.add_argument("--timeout", "-t", type=float, default=None, help="Per-agent timeout in seconds")
    ap.add_argument("--json", action="store_true", help="Print the session as JSON (no live display)")
    ap.add_argument("--config", help="Config file (default: ./council.config.yaml or ~/.council/config.yaml)")
    ap.add_argument("--agents", help="Comma-separated subset of agents to use")
    ap.add_argument(
        "--chairman-fallback", choices=["none", "auto"],
        help="When the chairman cannot run: fail (none) or substitute the best-ranked agent (auto)",
    )
    ap.add_argument("--list-agents", action="store_true", help="Show configured agents and exit")
    ap.add_argument("--live-log", help="Mirror agent output to this file (for tail -f)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return ap


async def run_council(args: argparse.Namespace) -> int:
    cfg = load_config(find_config_file(args.config))
    agent_names = [n.strip() for n in args.agents.split(",") if n.strip()] if args.agents else None
    cfg = apply_overrides(
        cfg,
        chairman=args.chairman,
        timeout=args.timeout,
        chairman_fallback=args.chairman_fallback,
        agent_names=agent_names,
    )

    available, unavailable = filter_available_agents(cfg.agents)
    for agent in unavailable:
        logger.warning(f"Agent '{agent.name}' unavailable: '{agent.command}' not found on PATH")

    console = Console(stderr=args.json)
    if args.list_agents:
        console.print(agents_table(available, cfg.chairman))
        return EXIT_OK
    if not available:
        raise NoAgentsAvailable([a.name for a in unavailable])

    question = " ".join(args.question).strip()
    if not question:
        return await CouncilRepl(cfg, available, unavailable, console=console).run()

    if args.json or not sys.stdout.isatty():
        session = await run_headless_session(question, cfg, available)
        if args.json:
            print(session.to_json())
        elif session.answer:
            print(session.answer)
        return session_exit_code(session)

    session, _ = await run_interactive_session(question, cfg, available, console=console)
    return session_exit_code(session)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    live_log = None
    if args.live_log:
        live_log = open(args.live_log, "a", encoding="utf-8")
        set_live_log(live_log)
    try:
        return asyncio.run(run_council(args))
    except CouncilError as e:
        logger.error(str(e))
        return EXIT_ERROR
    finally:
        if live_log:
            set_live_log(None)
            live_log.close()


if __name__ == "__main__":
    raise SystemExit(main())

"""
Growth Engine CLI -- Unified Command Center

Single entry point for the growth engine modules: engagement scoring,
CTA/content selection, A/B testing, behavioral and psychological triggers,
and the HTTP API.

Usage:
    python -m growth_engine.cli <module> <command> [options]
    python -m growth_engine.cli status
    growth <module> <command> [options]

Examples:
    growth engagement score --duration 240 --scroll 80 --section leadership-assessment
    growth ab list
    growth ab assign --user user-42 --test cta-copy-test
    growth select ctas --score 60 --tier engaged
    growth behavior simulate --duration 400 --scroll 90
    growth api start --port 8780
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import os
import platform
import sys
import traceback
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from growth_engine import __version__

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

API_PORT = int(os.getenv("GROWTH_API_PORT", "8780"))

# ANSI colour codes
_NO_COLOR = bool(os.environ.get("NO_COLOR")) or ("--no-color" in sys.argv)

_RESET = "" if _NO_COLOR else "\033[0m"
_BOLD = "" if _NO_COLOR else "\033[1m"
_DIM = "" if _NO_COLOR else "\033[2m"
_RED = "" if _NO_COLOR else "\033[31m"
_GREEN = "" if _NO_COLOR else "\033[32m"
_CYAN = "" if _NO_COLOR else "\033[36m"

_OK = f"{_GREEN}●{_RESET}"
_FAIL = f"{_RED}●{_RESET}"

# ---------------------------------------------------------------------------
# Module Registry
# ---------------------------------------------------------------------------

# Maps CLI module name -> python module path, description, entry function
# name and subcommands for help
MODULE_REGISTRY: Dict[str, Dict[str, Any]] = {
    "engagement": {
        "module": "growth_engine.engagement",
        "description": "Engagement scoring and classification",
        "entry": "main",
        "commands": ["score", "thresholds"],
        "deps": [],
    },
    "select": {
        "module": "growth_engine.selector",
        "description": "CTA and content selection",
        "entry": "main",
        "commands": ["ctas", "content", "show"],
        "deps": [],
    },
    "ab": {
        "module": "growth_engine.ab_testing",
        "description": "A/B test assignment and metrics",
        "entry": "main",
        "commands": [
            "list", "show", "assign", "record", "results",
            "start", "pause", "resume", "complete", "export",
        ],
        "deps": [],
    },
    "behavior": {
        "module": "growth_engine.behavioral_triggers",
        "description": "Behavioral trigger monitor",
        "entry": "main",
        "commands": ["list", "simulate", "escalation"],
        "deps": [],
    },
    "psych": {
        "module": "growth_engine.psychological_triggers",
        "description": "Psychological trigger selection",
        "entry": "main",
        "commands": ["list", "select", "analytics"],
        "deps": [],
    },
    "api": {
        "module": "growth_engine.api",
        "description": "HTTP API server",
        "entry": None,
        "commands": ["start"],
        "deps": ["fastapi", "uvicorn"],
    },
}

# ---------------------------------------------------------------------------
# Global state (set by _parse_global_args)
# ---------------------------------------------------------------------------

_JSON_OUTPUT = False
_QUIET = False
_VERBOSE = False


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _print(msg: str = "", **kwargs: Any) -> None:
    if not _QUIET:
        print(msg, **kwargs)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


# ---------------------------------------------------------------------------
# Lazy module loader
# ---------------------------------------------------------------------------

def _get_module_entry(name: str) -> Tuple[Any, Callable]:
    """Load a module and return (module, entry_function).

    Raises SystemExit with a friendly message on failure.
    """
    info = MODULE_REGISTRY[name]
    try:
        mod = importlib.import_module(info["module"])
    except ModuleNotFoundError as exc:
        deps = info.get("deps", [])
        _print(f"{_FAIL} Module '{name}' could not be loaded: {exc}")
        if deps:
            _print(f"   Install with: pip install {' '.join(deps)}")
        sys.exit(1)

    entry_fn = getattr(mod, info["entry"], None)
    if entry_fn is None:
        _print(f"{_FAIL} Module '{name}' has no entry point '{info['entry']}'.")
        sys.exit(1)
    return mod, entry_fn


def _print_banner() -> None:
    _print(f"\n{_BOLD}{_CYAN}Growth Engine CLI{_RESET} v{__version__}")
    _print()
    _print(f"  {_BOLD}Usage:{_RESET} growth <module> <command> [options]")
    _print()
    _print(f"  {_BOLD}Modules:{_RESET}")
    for mod_name, info in MODULE_REGISTRY.items():
        _print(f"      {_CYAN}{mod_name:<12}{_RESET} {info['description']}")
    _print(f"\n  {_BOLD}Quick commands:{_RESET}")
    _print(f"      {_CYAN}growth status{_RESET}      Module and data overview")
    _print(f"      {_CYAN}growth version{_RESET}     Version info")
    _print()
    _print(f"  {_BOLD}Global options:{_RESET}")
    _print("      --json       JSON output for status and version")
    _print("      --quiet      Minimal output")
    _print("      --verbose    Debug logging")
    _print("      --no-color   Disable ANSI colours")
    _print()


# ---------------------------------------------------------------------------
# Special commands
# ---------------------------------------------------------------------------

def _collect_status() -> Dict[str, Any]:
    """Importability of each module plus A/B test counts."""
    modules: Dict[str, bool] = {}
    for name, info in MODULE_REGISTRY.items():
        try:
            importlib.import_module(info["module"])
            modules[name] = True
        except ImportError as exc:
            logging.getLogger("growth.cli").debug("Import of %s failed: %s", name, exc)
            modules[name] = False

    from growth_engine.ab_testing import DATA_ROOT, get_engine

    engine = get_engine()
    return {
        "checked_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "data_dir": str(DATA_ROOT),
        "modules": modules,
        "ab_tests": len(engine.list_tests()),
        "ab_active": len(engine.get_active_tests()),
    }


def _cmd_status(args: argparse.Namespace) -> int:
    """Module and data overview."""
    status = _collect_status()
    if _JSON_OUTPUT:
        _print_json(status)
        return 0

    _print(f"\n{_BOLD}{_CYAN}Growth Engine Status{_RESET}")
    _print(f"{_DIM}{'=' * 40}{_RESET}")
    _print(f"  {_DIM}Checked at {status['checked_at']}{_RESET}")
    _print(f"  Data dir: {status['data_dir']}")
    _print()
    for name, ok in status["modules"].items():
        _print(f"  {_OK if ok else _FAIL} {name}")
    _print()
    _print(f"  A/B tests: {status['ab_tests']} ({status['ab_active']} active)")
    _print()
    return 0


def _cmd_version(args: argparse.Namespace) -> int:
    py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    if _JSON_OUTPUT:
        _print_json({"version": __version__, "python": py, "platform": platform.platform()})
        return 0
    _print(f"\n  {_BOLD}Growth Engine CLI{_RESET} v{__version__}")
    _print(f"  Python {py} on {platform.platform()}")
    _print()
    return 0


def _run_api(argv: List[str]) -> int:
    """Start the API server with uvicorn."""
    parser = argparse.ArgumentParser(prog="api", description="Growth Engine API Server")
    sub = parser.add_subparsers(dest="command")
    p_start = sub.add_parser("start", help="Start the API server")
    p_start.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    p_start.add_argument("--port", type=int, default=API_PORT, help=f"Port (default: {API_PORT})")
    p_start.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args(argv or ["start"])

    import uvicorn

    _print(f"\n  {_BOLD}Starting Growth Engine API{_RESET}")
    _print(f"  {_DIM}Host: {args.host}  Port: {args.port}  Reload: {args.reload}{_RESET}\n")
    uvicorn.run(
        "growth_engine.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
    return 0


# ---------------------------------------------------------------------------
# Module delegation
# ---------------------------------------------------------------------------

def _delegate_to_module(module_name: str, argv: List[str]) -> int:
    """Load a module and invoke its CLI entry function.

    sys.argv is rewritten so the module's argparse sees the expected
    arguments, e.g. ``growth ab list`` -> ``['ab_testing', 'list']``.
    """
    info = MODULE_REGISTRY[module_name]
    _, entry_fn = _get_module_entry(module_name)

    old_argv = sys.argv
    sys.argv = [info["module"].split(".")[-1]] + argv
    try:
        entry_fn()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else (1 if exc.code else 0)
    except KeyboardInterrupt:
        _print("\nAborted.")
        return 130
    except Exception as exc:
        if _VERBOSE:
            traceback.print_exc()
        else:
            _print(f"\n{_FAIL} {module_name} error: {exc}")
        return 1
    finally:
        sys.argv = old_argv


# ---------------------------------------------------------------------------
# Main argument parser
# ---------------------------------------------------------------------------

def _parse_global_args(argv: List[str]) -> Tuple[List[str], argparse.Namespace]:
    """Extract global flags from argv before passing to subcommands."""
    global _JSON_OUTPUT, _QUIET, _VERBOSE
    global _RESET, _BOLD, _DIM, _RED, _GREEN, _CYAN, _OK, _FAIL

    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--json", action="store_true", default=False)
    parser.add_argument("--quiet", action="store_true", default=False)
    parser.add_argument("--verbose", action="store_true", default=False)
    parser.add_argument("--no-color", action="store_true", default=False)
    global_ns, remaining = parser.parse_known_args(argv)

    _JSON_OUTPUT = global_ns.json
    _QUIET = global_ns.quiet
    _VERBOSE = global_ns.verbose

    if global_ns.no_color:
        _RESET = _BOLD = _DIM = _RED = _GREEN = _CYAN = ""
        _OK = "[OK]"
        _FAIL = "[FAIL]"

    if _VERBOSE:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    return remaining, global_ns


def main(argv: Optional[List[str]] = None) -> int:
    """Parse argv and dispatch. Returns an exit code (0 ok, 1 error, 2 usage)."""
    if argv is None:
        argv = sys.argv[1:]

    remaining, _ = _parse_global_args(argv)
    if not remaining or remaining[0] in ("--help", "-h", "help"):
        _print_banner()
        return 0

    command = remaining[0].lower()
    sub_argv = remaining[1:]

    special_commands: Dict[str, Callable[[argparse.Namespace], int]] = {
        "status": _cmd_status,
        "version": _cmd_version,
        "--version": _cmd_version,
    }
    if command in special_commands:
        return special_commands[command](argparse.Namespace())

    if command not in MODULE_REGISTRY:
        close = [m for m in MODULE_REGISTRY if m.startswith(command[:2])]
        _print(f"\n{_FAIL} Unknown command: {command}")
        if close:
            _print(f"   Did you mean: {', '.join(close)}?")
        _print("   Run 'growth --help' for available commands.\n")
        return 2

    if command == "api":
        return _run_api(sub_argv)
    return _delegate_to_module(command, sub_argv)


def cli() -> None:
    """Entry point for console_scripts / direct execution."""
    try:
        sys.exit(main() or 0)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(130)


if __name__ == "__main__":
    cli()

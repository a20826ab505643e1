"""plugfuzz CLI — run a fuzzer plugin.

Usage:
    plugfuzz                           List installed plugins
    plugfuzz <plugin> '<json args>'    Run a plugin with its arguments
    plugfuzz --show-config             Print the loaded run configuration
    plugfuzz --version                 Print version

Examples:
    plugfuzz --config ./config.json
    plugfuzz BitFlipFuzzer '{"targetFileLocation": "./exif", "targetSampleDataLocation": "./sample.jpg"}'
"""

from __future__ import annotations

import argparse
import logging
import sys

from plugfuzz import __version__
from plugfuzz.core.config import EngineConfig, get_settings, load_engine_config
from plugfuzz.core.errors import PlugfuzzError
from plugfuzz.core.logging import setup_logging
from plugfuzz.fuzzer.engine import Engine, RunOutcome

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_CYAN = "\033[96m"
_DIM = "\033[2m"


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── Banner ───────────────────────────────────────────────────────────────────

BANNER = rf"""
{_BOLD}{_CYAN}       _             __
 _ __ | |_   _  __ _/ _|_   _ ________
| '_ \| | | | |/ _` | |_| | | |_  /_  /
| |_) | | |_| | (_| |  _| |_| |/ / / /
| .__/|_|\__,_|\__, |_|  \__,_/___/___|
|_|            |___/{_RESET}
  {_DIM}Pluggable mutation fuzzer — v{__version__}{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plugfuzz",
        description="plugfuzz — pluggable mutation fuzzer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to the run configuration (default: $PLUGFUZZ_CONFIG_FILE or ./config.json)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Minimum log level (default: $PLUGFUZZ_LOG_LEVEL or INFO)",
    )
    parser.add_argument("--show-config", action="store_true", help="Print the run configuration and exit")
    parser.add_argument(
        "selection",
        nargs="*",
        metavar="plugin [args]",
        help="Plugin name followed by its argument blob; omit to list plugins",
    )
    return parser


# ── Config command ───────────────────────────────────────────────────────────


def _run_config(config: EngineConfig) -> int:
    """Print the loaded run configuration."""
    print(f"\n{_BOLD}plugfuzz Configuration{_RESET}\n")
    for field_name in EngineConfig.model_fields:
        alias = EngineConfig.model_fields[field_name].alias or field_name
        print(f"  {_DIM}{alias}:{_RESET}  {getattr(config, field_name)}")
    cache_dir = config.cache_dir_path()
    print(f"  {_DIM}(resolved cache dir):{_RESET}  {cache_dir if cache_dir else '(disabled)'}")
    print()
    return EXIT_OK


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"plugfuzz {__version__}")
        return EXIT_OK

    settings = get_settings()
    setup_logging(env=settings.app_env, log_level=args.log_level or settings.log_level)

    if not args.no_banner:
        print(BANNER, file=sys.stderr)

    try:
        config = load_engine_config(args.config or settings.config_file)
    except PlugfuzzError as e:
        logger.error("%s", e.message)
        return EXIT_FATAL

    if args.show_config:
        return _run_config(config)

    try:
        report = Engine(config).run(args.selection)
    except PlugfuzzError as e:
        print(_c(f"Error: {e.message}", _RED), file=sys.stderr)
        return EXIT_FATAL

    if report.outcome is RunOutcome.USAGE_ERROR:
        parser.print_usage(sys.stderr)
        return EXIT_USAGE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

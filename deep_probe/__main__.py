"""CLI entrypoint for deep-probe."""

from __future__ import annotations

import argparse
from importlib import metadata
from pathlib import Path
import sys
from typing import Sequence

from .config import ensure_config_dir, load_config
from .exceptions import ConfigValidationError, ToolRegistryError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deep-probe", description="Deep Probe research assistant TUI"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--base-url",
        help="Override api.base_url from the configuration file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to an alternative config.toml",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("deep-probe")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"deep-probe {version}")
        return 0

    from .app import DeepProbeApp

    try:
        if args.config is None:
            ensure_config_dir()
        overrides = {"api": {"base_url": args.base_url}} if args.base_url else None
        config = load_config(args.config, overrides=overrides)
        app = DeepProbeApp(config=config)
    except (ConfigValidationError, ToolRegistryError) as exc:
        print(f"deep-probe: {exc}", file=sys.stderr)
        return 2
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

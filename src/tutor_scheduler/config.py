"""Command line configuration: defaults, then a YAML file, then flags."""
from __future__ import annotations

import argparse
from typing import Any, Dict, Optional, Sequence

import yaml

from .incremental import DEFAULT_YIELD_EVERY
from .models import SessionMode

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS: Dict[str, Any] = {
    # Input / output
    "snapshot": None,
    "output": None,
    "report": None,

    # Scheduling
    "mode": None,  # None = take the mode from the snapshot settings
    "yield_every": DEFAULT_YIELD_EVERY,

    # Logging
    "log_level": "INFO",
}

# ---------------------------------------------------------------------------
# Config loading
# ---------------------------------------------------------------------------


def load_config_file(path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Tutoring session scheduler")

    p.add_argument("--config", type=str,
                   help="Path to YAML configuration file")

    p.add_argument("--snapshot", type=str,
                   help="Path to the input snapshot JSON")
    p.add_argument("--output", type=str,
                   help="Where to write the result JSON (stdout when omitted)")
    p.add_argument("--report", type=str,
                   help="Optional CSV path for the quota fulfilment table")

    p.add_argument("--mode", choices=[m.value for m in SessionMode],
                   help="lesson (incremental) or interview (first come, first served)")
    p.add_argument("--yield-every", type=int,
                   help="Slots processed between cooperative yields")

    p.add_argument("--log-level", type=str,
                   help="DEBUG, INFO, WARNING, ...")
    return p

# ---------------------------------------------------------------------------
# Settings resolution
# ---------------------------------------------------------------------------


def get_settings(argv: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    settings = DEFAULT_SETTINGS.copy()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Load YAML config first
    if args.config:
        file_cfg = load_config_file(args.config)
        unknown = sorted(set(file_cfg) - set(settings))
        if unknown:
            parser.error(f"Unknown config keys: {', '.join(unknown)}")
        settings.update(file_cfg)

    # CLI overrides
    for key in settings:
        value = getattr(args, key, None)
        if value is not None:
            settings[key] = value

    if not settings["snapshot"]:
        parser.error("a snapshot path is required (--snapshot or 'snapshot' in the config file)")
    if settings["mode"] is not None:
        settings["mode"] = SessionMode(settings["mode"])
    settings["log_level"] = str(settings["log_level"]).upper()
    return settings


__all__ = ["DEFAULT_SETTINGS", "build_parser", "get_settings", "load_config_file"]

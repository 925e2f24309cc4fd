#!/usr/local/bin/python
"""
MoziWatch cinema dataset builder.
- Reads a scraped events file (JSON list of {title, year, event, screenings}).
- Matches every title against TMDb and writes cinema.json for theaters mode.

Usage: build_cinema.py EVENTS.json [OUTPUT.json]
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from _logging import log  # noqa: E402
from mw_platform.cinema_dataset import build_dataset, write_dataset  # noqa: E402
from mw_platform.config_base import load_config, resolve_path  # noqa: E402
from mw_platform.runtime import build_runtime  # noqa: E402


def load_events(path: Path) -> list[dict[str, Any]]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log(f"failed to read {path}: {e}", level="ERROR", module="CINEMA")
        return []
    if isinstance(raw, dict):
        raw = raw.get("events") or raw.get("movies") or []
    return [r for r in raw if isinstance(r, dict)]


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(__doc__)
        return 2

    cfg = load_config()
    rt = build_runtime(load_config)
    events = load_events(Path(args[0]))
    out = Path(args[1]) if len(args) > 1 else resolve_path(str((cfg.get("cinema") or {}).get("dataset_path") or "data/cinema.json"))

    data = build_dataset(events, rt.reconciler, rt.catalog)
    write_dataset(out, data)
    log(f"saved {data['count']} movies to {out} (updated {data['lastUpdated']})", level="SUCCESS", module="CINEMA")
    return 0


if __name__ == "__main__":
    sys.exit(main())

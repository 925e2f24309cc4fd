# MoziWatch test scripts
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

TMDB = "https://api.themoviedb.org/3"


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    return tmp_path


@pytest.fixture()
def load_cfg(config_base: Path) -> Callable[[], dict[str, Any]]:
    """config.json with a test key and a zero-delay retry budget."""
    from mw_platform.config_base import load_config

    (config_base / "config.json").write_text(
        json.dumps(
            {
                "tmdb": {"api_key": "test-key"},
                "metadata": {"backoff_max_retries": 2, "backoff_base_ms": 0, "backoff_max_ms": 0},
            }
        ),
        encoding="utf-8",
    )
    return load_config

# mw_platform/config_base.py
from __future__ import annotations

import copy
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and state files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- TMDb ----------------------------------------------------------------
    "tmdb": {
        "api_key": "",                                  # TMDb v3 API key ($TMDB_API_KEY wins when set)
        "language": "hu-HU",                            # Target locale for titles, overviews and videos
        "fallback_language": "en-US",                   # Video lookup falls back to this locale on an empty result
        "region": "HU",                                 # Region for feeds, certifications and watch providers
        "fallback_region": "US",                        # Used when the region has no certification/provider block
        "provider_ids": [1899, 8, 119, 337, 1773, 2],   # Regional streaming allow-list (HBO Max, Netflix, Prime, Disney+, SkyShowtime, Apple TV+)
        "timeout": 15,                                  # HTTP timeout (seconds)
    },

    # --- Metadata cache / backoff -------------------------------------------
    "metadata": {
        "ttl_hours": 6,                                 # Coarse response cache TTL
        "backoff_max_retries": 4,                       # Retry budget for 429/5xx
        "backoff_base_ms": 500,                         # First retry delay
        "backoff_max_ms": 4000,                         # Retry delay ceiling
    },

    # --- Cinema dataset (theaters mode) -------------------------------------
    "cinema": {
        "dataset_url": "",                              # http(s) URL of cinema.json; empty = use dataset_path
        "dataset_path": "data/cinema.json",             # Relative to CONFIG_BASE unless absolute
        "origin_host": "www.cinemacity.hu",             # Event posters on this host are rewritten to relative paths
        "synthetic_prefix": "cc-",                      # Namespace for ids of entities without a TMDb match
        "min_vote_count": 50,                           # vote_count.gte sent with a minimum rating filter
    },

    # --- Lists (watchlist / favorites) --------------------------------------
    "lists": {
        "local_dir": "lists",                           # Local tier key-value files (relative to CONFIG_BASE)
        "remote_dir": "remote",                         # Remote document store root (relative to CONFIG_BASE)
    },

    # --- Runtime / Diagnostics ----------------------------------------------
    "runtime": {
        "debug": False,                                 # Extra verbose logging (debug level)
        "debug_http": False,                            # uvicorn access log
        "host": "0.0.0.0",
        "port": 8787,
    },
}


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"


def config_path() -> Path:
    return _cfg_file()


def resolve_path(value: str | os.PathLike[str]) -> Path:
    """Absolute paths pass through; relative ones hang off CONFIG_BASE."""
    p = Path(value)
    return p if p.is_absolute() else CONFIG_BASE() / p


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(p: Path, data: Any) -> None:
    """tmp file in the same directory, then replace; readers never see a partial file."""
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json merged over DEFAULT_CFG.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except Exception:
            user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg)

    env_key = (os.getenv("TMDB_API_KEY") or "").strip()
    if env_key:
        cfg["tmdb"]["api_key"] = env_key
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    """
    Write to config.json
    """
    write_json_atomic(_cfg_file(), dict(cfg or {}))

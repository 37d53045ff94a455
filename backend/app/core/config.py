from __future__ import annotations

import os
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel
try:
    from ..app_meta import __version__, __app_name__  # type: ignore
except Exception:  # pragma: no cover
    from app_meta import __version__, __app_name__  # type: ignore


# Load environment variables from .env files without overriding existing env vars.
# Priority: backend/.env first (co-located with app), then project-root/.env as fallback.
from pathlib import Path
_backend_env = Path(__file__).resolve().parents[2] / ".env"
_root_env = Path(__file__).resolve().parents[3] / ".env"
load_dotenv(dotenv_path=str(_backend_env), override=False)
load_dotenv(dotenv_path=str(_root_env), override=False)


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_instance_pairs(value: str | None) -> List[Tuple[str, str]]:
    """Parse 'name=url,name2=url2' into (name, url) pairs; bare URLs use the URL as name."""
    pairs: List[Tuple[str, str]] = []
    for item in _split_csv(value):
        name, sep, url = item.partition("=")
        if not sep:
            name, url = item, item
        name, url = name.strip(), url.strip().rstrip("/")
        if url:
            pairs.append((name or url, url))
    return pairs


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


DEFAULT_EXCLUDED_INSTANCES = [
    "adminforge.de",
    "ehwurscht.at",
    "ggtyler.dev",
    "phoenixthrush.com",
    "piped.yt",
    "private.coffee",
    "privacydev.net",
    "projectsegfau.lt",
]


class Settings(BaseModel):
    # Name is sourced from code, not environment
    app_name: str = __app_name__
    # Version is sourced from code, not environment
    version: str = __version__

    # CORS
    cors_origins: List[str] = _split_csv(os.environ.get("CORS_ORIGINS")) or [
        "http://localhost:3000",
    ]

    # Piped mirrors
    piped_instances_url: str = os.environ.get("PIPED_INSTANCES_URL", "https://piped-instances.kavin.rocks/")
    # Static catalog; when non-empty the public instance list is not fetched
    piped_instances: List[Tuple[str, str]] = _parse_instance_pairs(os.environ.get("PIPED_INSTANCES"))
    piped_extra_instances: List[Tuple[str, str]] = _parse_instance_pairs(
        os.environ.get("PIPED_EXTRA_INSTANCES", "wireway.ch=https://pipedapi.wireway.ch")
    )
    piped_excluded_instances: List[str] = (
        _split_csv(os.environ.get("PIPED_EXCLUDED_INSTANCES")) or list(DEFAULT_EXCLUDED_INSTANCES)
    )
    piped_fallback_url: str = os.environ.get("PIPED_FALLBACK_URL", "https://pipedapi.kavin.rocks").rstrip("/")
    probe_attempts: int = max(1, _int_env("PIPED_PROBE_ATTEMPTS", 5))
    probe_timeout: float = _float_env("PIPED_PROBE_TIMEOUT", 5.0)
    reprobe_interval: float = _float_env("PIPED_REPROBE_INTERVAL", 3600.0)
    # When set (env only) DISABLE_INSTANCE_PROBE=1 skips probing at startup (handled in main)

    # Search and secondary upstream calls
    upstream_timeout: float = _float_env("UPSTREAM_TIMEOUT", 10.0)

    # Persisted stores
    search_cache_file: str = os.environ.get("SEARCH_CACHE_FILE", "./cache/search_cache.json")
    search_weights_file: str = os.environ.get("SEARCH_WEIGHTS_FILE", "./cache/search_weights.json")
    spotify_cache_file: str = os.environ.get("SPOTIFY_CACHE_FILE", "./cache/spotify_search_cache.json")
    # 0 keeps entries forever
    search_cache_ttl: int = max(0, _int_env("SEARCH_CACHE_TTL", 0))

    # Spotify track search
    spotify_search_url: str = os.environ.get("SPOTIFY_SEARCH_URL", "https://api.spotify.com/v1/search")
    spotify_access_token: Optional[str] = os.environ.get("SPOTIFY_ACCESS_TOKEN") or None
    spotify_token_ttl: int = _int_env("SPOTIFY_TOKEN_TTL", 3600)


settings = Settings()

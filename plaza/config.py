"""
plaza.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the site's soft settings (economy bonuses,
session lifetime, rate limits, chat limits, the banned-word list).
Secrets and infrastructure (``DATABASE_URL``) come from the environment.

Usage::

    from plaza.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.site_name)             # "Plaza"
    print(cfg.registration_bonus)    # 100
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PlazaConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field except ``site_name`` has a default so a minimal file is
    enough to boot a development server.
    """

    # Identity
    site_name: str

    # Bootstrap admin: this username (and the very first account) is
    # promoted on registration.
    admin_username: str | None = None
    bootstrap_admin_level: int = 10

    # Economy
    registration_bonus: int = 100
    admin_bonus: int = 10000

    # Sessions
    session_lifetime_hours: int = 24

    # Request throttle (per client address)
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900

    # Chat
    chat_history_size: int = 50
    max_message_length: int = 500
    banned_words: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> PlazaConfig:
    """Read *path* and return a :class:`PlazaConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = PlazaConfig(site_name=raw["site_name"])
    return PlazaConfig(
        site_name=raw["site_name"],
        admin_username=raw.get("admin_username") or None,
        bootstrap_admin_level=int(
            raw.get("bootstrap_admin_level", defaults.bootstrap_admin_level)
        ),
        registration_bonus=int(raw.get("registration_bonus", defaults.registration_bonus)),
        admin_bonus=int(raw.get("admin_bonus", defaults.admin_bonus)),
        session_lifetime_hours=int(
            raw.get("session_lifetime_hours", defaults.session_lifetime_hours)
        ),
        rate_limit_requests=int(raw.get("rate_limit_requests", defaults.rate_limit_requests)),
        rate_limit_window_seconds=int(
            raw.get("rate_limit_window_seconds", defaults.rate_limit_window_seconds)
        ),
        chat_history_size=int(raw.get("chat_history_size", defaults.chat_history_size)),
        max_message_length=int(raw.get("max_message_length", defaults.max_message_length)),
        banned_words=tuple(str(w) for w in raw.get("banned_words") or ()),
    )

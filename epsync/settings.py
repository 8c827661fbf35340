from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def role_env(role: str, suffix: str) -> str:
    """Environment variable name for a static role option, e.g. EPSYNC_SCHEDULER_SERVICE."""
    return f"EPSYNC_{role.upper().replace('-', '_')}_{suffix}"


# Roles of the static mapping; each gets --<role>-node-label and --<role>-service.
STATIC_ROLES = ("scheduler", "controller-manager")


@dataclass(frozen=True)
class Settings:
    # Core
    listen_address: str = os.getenv("EPSYNC_LISTEN_ADDRESS", ":8080")
    log_level: str = os.getenv("EPSYNC_LOG_LEVEL", "info")
    sync_interval_s: int = _env_int("EPSYNC_SYNC_INTERVAL_S", 120)
    shutdown_grace_s: int = _env_int("EPSYNC_SHUTDOWN_GRACE_S", 10)
    request_timeout_s: int = _env_int("EPSYNC_REQUEST_TIMEOUT_S", 30)
    log_format: str = os.getenv("EPSYNC_LOG_FORMAT", "json")
    source: str = os.getenv("EPSYNC_SOURCE", "auto")

    # Label-query source
    enabled_label: str = os.getenv("EPSYNC_ENABLED_LABEL", "endpoints-syncer.io/enabled")
    node_selector_annotation: str = os.getenv(
        "EPSYNC_NODE_SELECTOR_ANNOTATION", "endpoints-syncer.io/node-selector"
    )

    # Event journal (optional)
    events_db: str | None = os.getenv("EPSYNC_EVENTS_DB")
    events_retention: int = _env_int("EPSYNC_EVENTS_RETENTION", 10000)  # rows kept

    # Access logs of the metrics listener are noisy under a scraper.
    access_log: bool = _env_bool("EPSYNC_ACCESS_LOG", False)


settings = Settings()

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


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Cluster access
    namespace: str = os.getenv("RW_NAMESPACE", "default")
    kubeconfig: str = os.getenv("RW_KUBECONFIG", "")
    in_cluster: bool = _env_bool("RW_IN_CLUSTER", False)

    # Service
    db_path: str = os.getenv("RW_DB_PATH", "rollwatch.db")
    log_level: str = os.getenv("RW_LOG_LEVEL", "INFO")

    # Generic waits
    global_poll_interval_s: float = _env_float("RW_GLOBAL_POLL_INTERVAL_S", 1.0)
    global_timeout_s: float = _env_float("RW_GLOBAL_TIMEOUT_S", 300.0)
    global_status_timeout_s: float = _env_float("RW_GLOBAL_STATUS_TIMEOUT_S", 180.0)
    log_timeout_s: float = _env_float("RW_LOG_TIMEOUT_S", 60.0)

    # Readiness waits
    readiness_poll_interval_s: float = _env_float("RW_READINESS_POLL_INTERVAL_S", 1.0)
    readiness_timeout_s: float = _env_float("RW_READINESS_TIMEOUT_S", 600.0)
    # Pods must stay ready for more than this many polls after a rollout.
    readiness_stable_polls: int = _env_int("RW_READINESS_STABLE_POLLS", 10)

    # Deletion waits
    deletion_poll_interval_s: float = _env_float("RW_DELETION_POLL_INTERVAL_S", 1.0)
    deletion_timeout_s: float = _env_float("RW_DELETION_TIMEOUT_S", 300.0)

    # Phase stability: one reconciliation interval (30s) of 1s polls, plus one.
    reconciliation_count: int = _env_int("RW_RECONCILIATION_COUNT", 31)
    stable_phase: str = os.getenv("RW_STABLE_PHASE", "Running")


settings = Settings()

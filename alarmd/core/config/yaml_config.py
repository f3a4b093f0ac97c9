from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from alarmd.config.settings import DEFAULTS
from alarmd.domain.models import RequestClass, is_valid_zone
from alarmd.transport.client_config import HOST, PORT, RECONNECT_DELAY_S, TIMEOUT_S


@dataclass(frozen=True)
class StorageConfig:
    """SQLite database location."""
    path: str = "alarms.db"


@dataclass(frozen=True)
class ScheduleSection:
    """Dispatch-sequence and ticker tuning."""
    fire_repeat: int = DEFAULTS.fire_repeat
    fire_interval_s: float = DEFAULTS.fire_interval_s
    tick_interval_s: float = DEFAULTS.tick_interval_s
    control_queue_size: int = DEFAULTS.control_queue_size
    fallback_message: str = DEFAULTS.fallback_message


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-class hourly ceilings."""
    alarm_per_hour: int = DEFAULTS.hour_limits[RequestClass.ALARM]
    test_per_hour: int = DEFAULTS.hour_limits[RequestClass.TEST]
    window_s: int = DEFAULTS.rate_window_s

    def hour_limits(self) -> Mapping[RequestClass, int]:
        return MappingProxyType({RequestClass.ALARM: self.alarm_per_hour, RequestClass.TEST: self.test_per_hour})


@dataclass(frozen=True)
class PushoverConfigData:
    """Pushover endpoint and credentials."""
    token_app: str
    token_user: str
    url: str = "https://api.pushover.net/1/messages.json"
    timeout_s: float = 5.0
    verify_tls: bool = True


@dataclass(frozen=True)
class TcpClientConfig:
    """Remote-control connection settings used by the control receiver."""
    host: str = HOST
    port: int = PORT
    timeout_s: float = TIMEOUT_S
    reconnect_delay_s: float = RECONNECT_DELAY_S


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    This is the single source of truth for runtime-tunable values. Secrets
    (Pushover tokens) come from the environment, optionally via ``.env``.
    """
    storage: StorageConfig
    timezone: str
    schedule: ScheduleSection
    rate_limits: RateLimitConfig
    pushover: PushoverConfigData
    transport: TcpClientConfig
    log_level: str = "INFO"


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) ALARMD_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    env = os.getenv("ALARMD_CONFIG")
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"`{key}` must be a mapping")
    return value


def _db_path(value: str) -> str:
    if not value.endswith(".db"):
        raise ValueError(f"storage path must end in .db: {value}")
    return value


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML and the environment.

    ``.env`` next to the config file is loaded first (existing environment
    variables win). Then:
    - ``TOKEN_APP`` / ``TOKEN_USER`` override ``pushover.token_app`` /
      ``pushover.token_user``
    - ``LOCATION_SQLITE`` overrides ``storage.path``
    - ``LOG_LEVEL`` overrides ``log_level``

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If required fields are missing or invalid (including missing tokens).
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    load_dotenv(cfg_path.parent / ".env")
    raw = _read_yaml(cfg_path)

    # ---- storage ----
    s = _section(raw, "storage")
    storage = StorageConfig(path=_db_path(str(os.getenv("LOCATION_SQLITE") or s.get("path", "alarms.db"))))

    # ---- timezone ----
    zone = str(raw.get("timezone", DEFAULTS.default_timezone))
    if not is_valid_zone(zone):
        raise ValueError(f"Unknown timezone: {zone}")

    # ---- schedule ----
    sc = _section(raw, "schedule")
    schedule = ScheduleSection(
        fire_repeat=int(sc.get("fire_repeat", DEFAULTS.fire_repeat)),
        fire_interval_s=float(sc.get("fire_interval_s", DEFAULTS.fire_interval_s)),
        tick_interval_s=float(sc.get("tick_interval_s", DEFAULTS.tick_interval_s)),
        control_queue_size=int(sc.get("control_queue_size", DEFAULTS.control_queue_size)),
        fallback_message=str(sc.get("fallback_message", DEFAULTS.fallback_message)),
    )
    if schedule.fire_repeat < 1:
        raise ValueError("schedule.fire_repeat must be at least 1")
    if schedule.control_queue_size < 1:
        raise ValueError("schedule.control_queue_size must be at least 1")

    # ---- rate limits ----
    rl = _section(raw, "rate_limits")
    rate_limits = RateLimitConfig(
        alarm_per_hour=int(rl.get("alarm_per_hour", RateLimitConfig.alarm_per_hour)),
        test_per_hour=int(rl.get("test_per_hour", RateLimitConfig.test_per_hour)),
        window_s=int(rl.get("window_s", DEFAULTS.rate_window_s)),
    )

    # ---- pushover ----
    p = _section(raw, "pushover")
    token_app = os.getenv("TOKEN_APP") or p.get("token_app")
    token_user = os.getenv("TOKEN_USER") or p.get("token_user")
    if not token_app or not token_user:
        raise ValueError("Pushover tokens missing: set TOKEN_APP and TOKEN_USER")
    pushover = PushoverConfigData(
        token_app=str(token_app),
        token_user=str(token_user),
        url=str(p.get("url", PushoverConfigData.url)),
        timeout_s=float(p.get("timeout_s", PushoverConfigData.timeout_s)),
        verify_tls=bool(p.get("verify_tls", True)),
    )

    # ---- transport ----
    t = _section(raw, "transport")
    transport = TcpClientConfig(
        host=str(t.get("host", HOST)),
        port=int(t.get("port", PORT)),
        timeout_s=float(t.get("timeout_s", TIMEOUT_S)),
        reconnect_delay_s=float(t.get("reconnect_delay_s", RECONNECT_DELAY_S)),
    )

    log_level = str(os.getenv("LOG_LEVEL") or raw.get("log_level", "INFO")).upper()

    return AppConfig(
        storage=storage,
        timezone=zone,
        schedule=schedule,
        rate_limits=rate_limits,
        pushover=pushover,
        transport=transport,
        log_level=log_level,
    )

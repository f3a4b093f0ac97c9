from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from alarmd.core.config.yaml_config import AppConfig, load_app_config
from alarmd.core.rate_limiter import RateLimiter
from alarmd.core.state.sqlite_store import SqliteStore
from alarmd.log import setup_logging
from alarmd.notification.dispatcher import NotificationDispatcher
from alarmd.notification.pushover_notifier import PushoverConfig, PushoverTransport
from alarmd.runtime.alarm_actor import AlarmSchedule, ControlHandle, ScheduleConfig
from alarmd.runtime.app_runtime import AppRuntime, AppRuntimeConfig
from alarmd.services.controller import RemoteController


@dataclass(frozen=True)
class AppWiring:
    """Everything the entry point needs to run the service."""
    config: AppConfig
    store: SqliteStore
    schedule: ControlHandle
    controller: RemoteController
    runtime: AppRuntime


def build_dispatcher(cfg: AppConfig, store: SqliteStore) -> NotificationDispatcher:
    limiter = RateLimiter(
        log=store,
        hour_limits=cfg.rate_limits.hour_limits(),
        window_s=cfg.rate_limits.window_s,
    )
    transport = PushoverTransport(
        PushoverConfig(
            url=cfg.pushover.url,
            timeout_s=cfg.pushover.timeout_s,
            verify_tls=cfg.pushover.verify_tls,
        )
    )
    return NotificationDispatcher(
        limiter=limiter,
        log=store,
        transport=transport,
        token_app=cfg.pushover.token_app,
        token_user=cfg.pushover.token_user,
    )


def build_schedule_config(cfg: AppConfig) -> ScheduleConfig:
    s = cfg.schedule
    return ScheduleConfig(
        fire_repeat=s.fire_repeat,
        fire_interval_s=s.fire_interval_s,
        tick_interval_s=s.tick_interval_s,
        control_queue_size=s.control_queue_size,
        fallback_message=s.fallback_message,
    )


def build_app_system(
    config_path: Optional[str] = None,
    restart_hook: Optional[Callable[[], None]] = None,
) -> AppWiring:
    cfg = load_app_config(config_path)
    setup_logging(cfg.log_level)

    # --- STATE ---
    store = SqliteStore(cfg.storage.path, default_zone=cfg.timezone)
    store.seed_phrases()

    # --- NOTIFICATIONS ---
    dispatcher = build_dispatcher(cfg, store)

    # --- ALARM ACTOR ---
    schedule = AlarmSchedule.init(store, dispatcher, build_schedule_config(cfg))

    # --- CONTROLLER ---
    controller = RemoteController(store=store, schedule=schedule, dispatcher=dispatcher)
    if restart_hook is not None:
        controller.restart_hook = restart_hook

    # --- RUNTIME ---
    runtime = AppRuntime(
        cfg=AppRuntimeConfig(
            control_host=cfg.transport.host,
            control_port=cfg.transport.port,
            connect_timeout_s=cfg.transport.timeout_s,
            reconnect_delay_s=cfg.transport.reconnect_delay_s,
        ),
        controller=controller,
        schedule=schedule,
    )

    return AppWiring(config=cfg, store=store, schedule=schedule, controller=controller, runtime=runtime)

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
from threading import Event, Thread

import requests
import uvicorn

from . import kube_ops
from .api import create_app
from .db import EventLog
from .errors import ConfigError
from .logs import LOG_FORMATS, configure_logging
from .reconciler import Reconciler
from .runtime import SyncState
from .scheduler import Scheduler
from .settings import STATIC_ROLES, Settings, role_env, settings
from .sources import RoleConfig, build_source, validate_roles

logger = logging.getLogger("epsync")

LOG_LEVELS = {"trace": "debug", "debug": "debug", "info": "info", "warn": "warning", "warning": "warning", "error": "error"}
COMMANDS = ("run", "status", "events")


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def parse_listen_address(value: str) -> tuple[str, int]:
    """Parse 'host:port' or ':port' (all interfaces)."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        raise ConfigError(f"malformed listen address {value!r}, expected [host]:port")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"malformed listen address {value!r}, port must be a number") from None
    if not 0 <= port_num <= 65535:
        raise ConfigError(f"malformed listen address {value!r}, port out of range")
    return host.strip("[]") or "0.0.0.0", port_num


def log_level(value: str) -> str:
    try:
        return LOG_LEVELS[value.strip().lower()]
    except KeyError:
        raise ConfigError(f"unknown log level {value!r}") from None


def roles_from_args(args: argparse.Namespace) -> list[RoleConfig]:
    roles: list[RoleConfig] = []
    for role in STATIC_ROLES:
        attr = role.replace("-", "_")
        roles.append(
            RoleConfig(
                role=role,
                service_ref=getattr(args, f"{attr}_service") or "",
                node_selector=getattr(args, f"{attr}_node_label") or "",
            )
        )
    return roles


def build_parser(cfg: Settings = settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="epsync", description="Node Endpoints Syncer")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run the syncer and its metrics listener (default)")
    s_run.add_argument("--listen-address", default=cfg.listen_address, help="The address to listen on for HTTP metrics requests.")
    s_run.add_argument("--log-level", default=cfg.log_level, help="debug|info|warn|error")
    s_run.add_argument("--log-format", choices=LOG_FORMATS, default=cfg.log_format, help="Log line format")
    s_run.add_argument("--sync-interval", type=int, default=cfg.sync_interval_s, help="Seconds between sync cycles")
    s_run.add_argument("--shutdown-grace", type=int, default=cfg.shutdown_grace_s,
                       help="Seconds the listener and the in-flight cycle get to finish on shutdown")
    s_run.add_argument("--request-timeout", type=int, default=cfg.request_timeout_s,
                       help="Seconds before a single Kubernetes API call is abandoned")
    s_run.add_argument("--source", choices=["auto", "labels", "static"], default=cfg.source,
                       help="Where managed services come from (auto: static if any --<role>-service is set)")
    s_run.add_argument("--enabled-label", default=cfg.enabled_label, help="Label marking services to manage (value 'true')")
    s_run.add_argument("--node-selector-annotation", default=cfg.node_selector_annotation,
                       help="Service annotation holding the node label selector")
    s_run.add_argument("--events-db", default=cfg.events_db, help="SQLite file for the sync event journal (disabled if unset)")
    s_run.add_argument("--events-retention", type=int, default=cfg.events_retention,
                       help="Newest journal rows to keep; older ones are pruned")
    s_run.add_argument("--kubeconfig", default=None, help="Path to a kubeconfig (default: $KUBECONFIG, ~/.kube/config, in-cluster)")
    for role in STATIC_ROLES:
        s_run.add_argument(f"--{role}-node-label", default=os.getenv(role_env(role, "NODE_LABEL"), ""),
                           help=f"node label selector for {role}")
        s_run.add_argument(f"--{role}-service", default=os.getenv(role_env(role, "SERVICE"), ""),
                           help=f"service for {role}, as namespace/name")

    s_status = sub.add_parser("status", help="Show the last sync cycle of a running instance")
    s_status.add_argument("--api", default="http://localhost:8080", help="Listener base URL")

    s_ev = sub.add_parser("events", help="Show sync events of a running instance")
    s_ev.add_argument("--api", default="http://localhost:8080", help="Listener base URL")
    s_ev.add_argument("--limit", type=int, default=20)

    return p


def parse_args(argv: list[str] | None = None, cfg: Settings = settings) -> argparse.Namespace:
    """Parse the command line; without a command, `run` is assumed."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in COMMANDS + ("-h", "--help"):
        argv.insert(0, "run")
    return build_parser(cfg).parse_args(argv)


def check_run_args(args: argparse.Namespace) -> None:
    if args.sync_interval <= 0:
        raise ConfigError(f"--sync-interval must be a positive number of seconds, got {args.sync_interval}")
    if args.shutdown_grace < 0:
        raise ConfigError(f"--shutdown-grace must not be negative, got {args.shutdown_grace}")
    if args.request_timeout <= 0:
        raise ConfigError(f"--request-timeout must be a positive number of seconds, got {args.request_timeout}")
    if args.events_retention < 1:
        raise ConfigError(f"--events-retention must be at least 1, got {args.events_retention}")


def shutdown(server, server_thr: Thread, scheduler: Scheduler, grace: float) -> bool:
    """Stop the listener and wait for the in-flight cycle, each for at most `grace` seconds.

    Returns False when something was still running when the wait ran out.
    """
    server.should_exit = True
    server_thr.join(grace + 1)
    drained = True
    if server_thr.is_alive():
        logger.warning("HTTP listener did not drain within %ss", grace)
        drained = False
    if not scheduler.join(grace):
        logger.warning("sync cycle still running after %ss, exiting anyway", grace)
        drained = False
    return drained


def run(args: argparse.Namespace, cfg: Settings = settings) -> int:
    try:
        level = log_level(args.log_level)
        configure_logging(level, args.log_format)
    except ConfigError as e:
        print(f"epsync: {e}", file=sys.stderr)
        return 2

    # Configuration problems end the process before anything is served.
    try:
        check_run_args(args)
        host, port = parse_listen_address(args.listen_address)
        roles = roles_from_args(args)
        if args.source != "labels":
            validate_roles(roles)
        core = kube_ops.core_api(args.kubeconfig)
        source = build_source(args.source, core, cfg, roles, args.request_timeout)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    events = EventLog(args.events_db, max_rows=args.events_retention) if args.events_db else None
    state = SyncState()
    stop = Event()

    reconciler = Reconciler(core, source, events=events, request_timeout=args.request_timeout)
    scheduler = Scheduler(reconciler, interval_s=args.sync_interval, stop_event=stop, on_cycle=state.record)

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(state, events),
            host=host,
            port=port,
            log_level=level,
            log_config=None,
            access_log=cfg.access_log,
            timeout_graceful_shutdown=args.shutdown_grace,
        )
    )
    server_thr = Thread(target=server.run, name="epsync-http", daemon=True)

    def _on_signal(signum, frame) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    server_thr.start()
    scheduler.start()
    stop.wait()

    shutdown(server, server_thr, scheduler, args.shutdown_grace)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.cmd == "run":
        return run(args)

    base = args.api.rstrip("/")

    if args.cmd == "status":
        r = requests.get(f"{base}/status", timeout=10)
        _print(r.json())
        return 0 if r.ok and r.json().get("ok") else 1

    if args.cmd == "events":
        r = requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

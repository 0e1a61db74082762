"""
Entry point wiring all components.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from deepbook_janitor.app import JanitorContext, report_user_orders, run_forever
from deepbook_janitor.config.config import Settings
from deepbook_janitor.config.pools import load_pool_registry
from deepbook_janitor.core.errors import ConfigError, CredentialFormatError
from deepbook_janitor.core.types import PoolConfig
from deepbook_janitor.infra.logging_cfg import build_logger
from deepbook_janitor.infra.sui_rpc import SuiRpcGateway
from deepbook_janitor.monitoring.metrics import JanitorMetrics, start_metrics_server


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="deepbook_janitor", description="Clean up expired DeepBook v3 orders.")
    parser.add_argument("--dry-run", action="store_true", help="scan and plan batches, submit nothing")
    parser.add_argument("--pool", action="append", default=[], metavar="NAME",
                        help="restrict the pass to this registry pool (repeatable)")
    parser.add_argument("--once", action="store_true", help="run a single pass even if a loop interval is set")
    parser.add_argument("--config", default=None, help="JSON config file (default: config.json if present)")
    parser.add_argument("--user-orders", action="store_true",
                        help="list the open orders of SUI_USER_ADDRESS (or the signer) and their rebate, then exit")
    return parser.parse_args(argv)


def build_context(settings: Settings, log: logging.Logger) -> JanitorContext:
    """Decode credentials and build the shared components. Raises before any network I/O."""
    signer = None
    if settings.private_key:
        signer = settings.resolve_signer()
    elif not settings.dry_run:
        raise ConfigError("Missing SUI_PRIVATE_KEY (or privateKey in the JSON config)")

    if signer and settings.user_address and settings.user_address.lower() != signer.address:
        log.warning(json.dumps({
            "event": "user_address_mismatch",
            "configured": settings.user_address,
            "derived": signer.address,
        }))

    gateway = SuiRpcGateway(settings.rpc_url, timeout=settings.http_timeout)
    return JanitorContext(
        settings=settings,
        gateway=gateway,
        signer=signer,
        logger=log,
        metrics=JanitorMetrics(),
    )


async def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = Settings.load(args.config)
    except ConfigError as exc:
        logging.getLogger("janitor").error(json.dumps({"event": "config_error", "error": str(exc)}))
        return 1
    if args.dry_run or args.user_orders:
        settings = replace(settings, dry_run=True)
    if args.once:
        settings = replace(settings, loop_interval_sec=0.0)

    log = build_logger(
        "janitor",
        level=getattr(logging, settings.log_level, logging.INFO),
        file_path=settings.log_file,
        json_console=settings.json_logs,
    )

    try:
        registry = load_pool_registry(settings.pools_file, strict=settings.strict_registry)
        pools = registry.select(args.pool or settings.pools, settings.pool_id)
        jctx = build_context(settings, log)
    except (ConfigError, CredentialFormatError) as exc:
        log.error(json.dumps({"event": "startup_failed", "error": str(exc)}))
        return 1

    log.info(json.dumps({
        "event": "startup",
        "network": settings.network,
        "pools": [p.name for p in pools],
        "skipped_pools": [s.name for s in registry.skipped],
        "registry_partial": registry.is_partial,
        "signer": jctx.signer.address if jctx.signer else None,
        "dry_run": jctx.dry_run,
        "call_style": settings.call_style,
    }))
    if args.user_orders:
        return await _user_orders(jctx, pools)

    if start_metrics_server(jctx.metrics, settings.metrics_port):
        log.info(json.dumps({"event": "metrics_server_started", "port": settings.metrics_port}))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    try:
        await run_forever(jctx, pools, stop)
    except asyncio.CancelledError:
        log.info("Shutdown signal received, cleaning up...")
    finally:
        await jctx.gateway.close()
        log.info("Shutdown complete")
    return 0


async def _user_orders(jctx: JanitorContext, pools: List[PoolConfig]) -> int:
    owner = jctx.settings.user_address or (jctx.signer.address if jctx.signer else None)
    try:
        if not owner:
            jctx.logger.error(json.dumps({"event": "startup_failed", "error": "--user-orders needs SUI_USER_ADDRESS or a key"}))
            return 1
        await report_user_orders(jctx, pools, owner)
    finally:
        await jctx.gateway.close()
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nJanitor stopped by user")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()

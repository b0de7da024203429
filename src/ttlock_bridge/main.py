from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
import logging
import signal
import sys
from pathlib import Path

import dotenv
import uvloop

from ttlock_bridge.const import TTLOCK_DEBUG, TTLOCK_VERSION
from ttlock_bridge.correlation import correlation_context
from ttlock_bridge.exceptions import ConfigError
from ttlock_bridge.logging_abstraction import get_logger, set_package_level
from ttlock_bridge.mqtt.client import TTLockBridge
from ttlock_bridge.structs import BridgeEnv, LockManagerProtocol

logger = get_logger(__name__)

# Suppress verbose MQTT library warnings
mqtt_logger = logging.getLogger("mqtt")
mqtt_logger.setLevel(logging.ERROR)
mqtt_logger.propagate = False

BRIDGE_START_TASK_NAME = "TTLockBridge_START"


async def load_manager(target: str) -> LockManagerProtocol:
    """Import and call a lock manager factory given as ``package.module:factory``.

    The factory may be a plain or an async callable.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"lock manager must be given as module:factory, got {target!r}")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"cannot load lock manager {target!r}: {e}") from e

    manager = factory()
    if inspect.isawaitable(manager):
        manager = await manager
    if not isinstance(manager, LockManagerProtocol):
        raise ConfigError(f"{target!r} did not return a lock manager")
    return manager


async def run_bridge(manager: LockManagerProtocol, env: BridgeEnv) -> None:
    """Run the bridge until SIGINT/SIGTERM or until the broker session ends."""
    bridge = TTLockBridge(manager, env)
    loop = asyncio.get_running_loop()
    start_task = asyncio.create_task(bridge.start(), name=BRIDGE_START_TASK_NAME)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, start_task.cancel)
    logger.debug("Signal handlers configured for SIGINT & SIGTERM")

    try:
        await start_task
    except asyncio.CancelledError:
        logger.info("TTLock bridge cancelled, shutting down...")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            _ = loop.remove_signal_handler(sig)
        await bridge.stop()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TTLock MQTT bridge")
    _ = parser.add_argument(
        "--manager",
        required=True,
        help="Lock manager factory as module:callable",
    )
    _ = parser.add_argument("--options", help="Add-on options file (YAML or JSON)", default=None, type=Path)
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> BridgeEnv:
    """Environment (optionally from a dotenv file), then the options file on top."""
    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            raise ConfigError(f"environment file not found: {env_path}")
        if dotenv.load_dotenv(env_path, override=True):
            logger.info("Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})

    settings = BridgeEnv.from_env()
    if args.options:
        settings = settings.with_options_file(args.options.expanduser().resolve())
    return settings


async def _main(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    manager = await load_manager(args.manager)
    await run_bridge(manager, settings)


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    with correlation_context("main"):
        logger.info("Starting TTLock bridge", extra={"version": TTLOCK_VERSION})
        args = parse_cli(argv)
        if args.debug or TTLOCK_DEBUG:
            set_package_level(logging.DEBUG)
            logger.info("Debug logging enabled")

        try:
            uvloop.run(_main(args))
        except ConfigError as e:
            logger.error("%s", e)
            return 2
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except Exception:
            logger.exception("Fatal error in main loop")
            return 1
        logger.info("TTLock bridge shutdown complete")
        return 0


if __name__ == "__main__":
    sys.exit(main())

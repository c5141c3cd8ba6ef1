#!/usr/bin/env python3

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from chargeamps_sync.config import Config, load_config
from chargeamps_sync.discovery import discover
from chargeamps_sync.engine import DeviceSyncEngine
from chargeamps_sync.exceptions import ChargerSyncError
from chargeamps_sync.implementations import InMemoryStatePublisher, LoggingEventEmitter
from chargeamps_sync.logging_utils import get_logger, setup_root_logging
from chargeamps_sync.transport import create_http_session
from chargeamps_sync.web import WebServer

logger = get_logger("chargeamps_sync.main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Synchronize ChargeAmps chargers with a local host"
    )
    parser.add_argument(
        "-c",
        "--config",
        default="chargeamps_config.yaml",
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List the charge points owned by the account and exit",
    )
    parser.add_argument(
        "--type",
        dest="device_type",
        help="Only list devices of this type (LUNA, AURA, HALO)",
    )
    return parser.parse_args(argv)


async def list_owned_devices(config: Config, device_type: Optional[str]) -> None:
    async with create_http_session() as http:
        devices = await discover(http, config.account, device_type)
    for device in devices:
        print(f"{device['id']}\t{device['type']}\t{device['name']}")


async def run(config: Config) -> None:
    """Start one engine per configured device and run until signalled."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover
            logger.debug(f"Signal handler for {sig} not supported here")

    engines: List[DeviceSyncEngine] = []
    sessions = []
    server: Optional[WebServer] = None
    try:
        for device_config in config.devices:
            http = create_http_session()
            sessions.append(http)
            engine = DeviceSyncEngine.from_config(
                device_config,
                config.account,
                http,
                InMemoryStatePublisher(),
                LoggingEventEmitter(),
            )
            try:
                await engine.start()
            except ChargerSyncError as e:
                logger.error(f"Device {device_config.name} not started: {e}")
                continue
            engines.append(engine)

        if not engines:
            logger.error("No device could be started")
            return

        if config.web.enabled:
            server = WebServer(engines, host=config.web.host, port=config.web.port)
            await server.start()

        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        if server is not None:
            await server.stop()
        for engine in engines:
            await engine.stop()
        for http in sessions:
            await http.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:  # pragma: no cover
                logger.debug(f"Signal handler for {sig} not supported here")


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point: load configuration, set up logging and run the engines."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ChargerSyncError as e:
        setup_root_logging()
        logger.error(f"Cannot start: {e}")
        return 1

    setup_root_logging(config)

    try:
        if args.list_devices:
            asyncio.run(list_owned_devices(config, args.device_type))
        else:
            asyncio.run(run(config))
    except ChargerSyncError as e:
        logger.error(f"Stopped: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

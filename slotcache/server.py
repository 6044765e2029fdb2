#!/usr/bin/env python3
"""
SlotCache Server Entry Point

This is the main entry point for starting the SlotCache server.

Usage:
    python -m slotcache.server                       # Default settings (0.0.0.0:7171)
    python -m slotcache.server --port 8080           # Custom port
    python -m slotcache.server --capacity 2          # Custom eviction bound
    python -m slotcache.server --slots 100           # Custom slot space size
    python -m slotcache.server --log-path data.log   # Custom operation log
    python -m slotcache.server --debug               # Enable debug logging

Environment Variables:
    SLOTCACHE_HOST              - Server bind address
    SLOTCACHE_PORT              - Server port
    SLOTCACHE_CAPACITY          - Maximum resident keys
    SLOTCACHE_SLOT_SPACE_SIZE   - Number of slots in the slot table
    SLOTCACHE_LOG_PATH          - Operation log file
    SLOTCACHE_DEBUG             - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys

from .cache.engine import CacheEngine
from .cache.sequencer import CommandSequencer
from .config.settings import settings
from .exceptions import ShutdownTimeoutError, SlotCacheError
from .network.tcp_server import KVServer


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="SlotCache: bounded in-memory key-value cache with an operation log",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--capacity",
        type=int,
        default=settings.CAPACITY,
        help="Maximum number of resident keys",
    )

    parser.add_argument(
        "--slots",
        type=int,
        default=settings.SLOT_SPACE_SIZE,
        help="Size of the slot space (must be >= capacity)",
    )

    parser.add_argument(
        "--log-path",
        type=str,
        default=settings.LOG_PATH,
        help="Operation log file used for recovery",
    )

    parser.add_argument(
        "--queue-size",
        type=int,
        default=settings.QUEUE_SIZE,
        help="Maximum queued commands (0 = unbounded)",
    )

    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=settings.SHUTDOWN_TIMEOUT,
        help="Seconds to drain queued commands on shutdown",
    )

    parser.add_argument(
        "--successor-lookup",
        action="store_true",
        default=settings.SUCCESSOR_LOOKUP,
        help="Resolve GET through ring ownership instead of exact key match",
    )

    parser.add_argument(
        "--no-fsync",
        action="store_true",
        help="Do not fsync the operation log after every write",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def build_server(args: argparse.Namespace) -> KVServer:
    """Wire engine, sequencer and server from parsed arguments."""
    engine = CacheEngine(
        capacity=args.capacity,
        slot_space_size=args.slots,
        log_path=args.log_path,
        fsync=settings.FSYNC and not args.no_fsync,
        successor_lookup=args.successor_lookup,
    )
    sequencer = CommandSequencer(engine, queue_size=args.queue_size)
    return KVServer(host=args.host, port=args.port, sequencer=sequencer)


def main(argv=None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    # Setup logging
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        server = build_server(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)
    except SlotCacheError as e:
        logger.error(f"Cannot start cache engine: {e}")
        sys.exit(2)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        try:
            await server.stop(timeout=args.shutdown_timeout)
        except ShutdownTimeoutError as e:
            logger.warning(str(e))

    shutdown_tasks = []

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: shutdown_tasks.append(loop.create_task(shutdown(s)))
            )

    # Log startup info
    logger.info("Starting SlotCache server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Capacity: {args.capacity}")
    logger.info(f"  Slots: {args.slots}")
    logger.info(f"  Operation log: {args.log_path}")
    logger.info(f"  Successor lookup: {args.successor_lookup}")

    # Run the server
    try:
        loop.run_until_complete(server.start())
        # start() returns as soon as the listener closes; finish draining
        if shutdown_tasks:
            loop.run_until_complete(asyncio.gather(*shutdown_tasks))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        try:
            loop.run_until_complete(server.stop(timeout=args.shutdown_timeout))
        except ShutdownTimeoutError as e:
            logger.warning(str(e))
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()

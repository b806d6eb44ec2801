#!/usr/bin/env python3
"""
Build Worker Entry Point.

Runs the build orchestration core in one process:

    - local runner workers executing in-process stages
    - cluster monitor reconciling cluster builds (when configured)

and stops them gracefully on SIGTERM/SIGINT: running local stages are
interrupted and finalize as restarting. On the next start, local builds
whose job went away with the old process are re-created from the stored
stage, data and build options (LocalBuildRecovery).

Usage:
    STORAGE_BACKEND=postgres python worker_main.py

Environment Variables:
    STORAGE_BACKEND, POSTGRES_* - engine store
    BUILD_JOB_RUNNERS, ENGINE_TYPES, LOCAL_RUNNER_* - routing and workers
    CLUSTER_* - remote scheduler (optional)
    PLATFORM_CALLBACK_URL - build event callbacks (optional)
"""

import asyncio
import signal
import sys
from datetime import datetime, timezone

from config import get_config
from core.service_factory import create_build_services
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType

# Module-level logger
logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "BuildWorker")


async def run_worker() -> None:
    """Start services, wait for a shutdown signal, stop services."""
    config = get_config()
    services = await create_build_services(config)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(signum: int) -> None:
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        shutdown.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, request_shutdown, signum)

    await services.start()
    logger.info(f"🚀 Build worker running since {datetime.now(timezone.utc).isoformat()}")
    try:
        await shutdown.wait()
    finally:
        await services.stop()
        logger.info(f"Build worker shutdown complete at {datetime.now(timezone.utc).isoformat()}")


def main():
    """Entry point for the build worker."""
    try:
        asyncio.run(run_worker())
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

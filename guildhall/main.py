"""
Guildhall - Application Entry Point
===================================

Bootstrap
---------
- Config validation
- Database initialization
- Event bus
- ConfigManager initialization
- Service container initialization
- Graceful shutdown

Commands
--------
    python -m guildhall.main init-db           # create tables
    python -m guildhall.main init-db --reset   # drop and recreate tables
    python -m guildhall.main check             # database health check
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from guildhall.core.config.config import Config
from guildhall.core.config.manager import ConfigManager
from guildhall.core.database.service import DatabaseService
from guildhall.core.event.bus import EventBus
from guildhall.core.logging.logger import get_logger, shutdown_logging
from guildhall.core.services.container import ServiceContainer

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def startup(database_url: Optional[str] = None) -> ServiceContainer:
    """Initialize all infrastructure and return the wired service container."""
    logger.info("========== GUILDHALL INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize(database_url)
        logger.info("Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    try:
        ConfigManager.initialize()
        logger.info("Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Initialize service container
    try:
        container = ServiceContainer(
            config_manager=ConfigManager,
            event_bus=EventBus(),
            logger=get_logger("guildhall.core.services.container"),
        )
        await container.initialize()
        logger.info("Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def shutdown(container: Optional[ServiceContainer]) -> None:
    """Gracefully shut down services and infrastructure."""
    logger.info("========== GUILDHALL SHUTDOWN START ==========")

    if container is not None:
        try:
            await container.shutdown()
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Commands
# ============================================================================

async def _init_db(database_url: Optional[str], reset: bool = False) -> int:
    container: Optional[ServiceContainer] = None
    try:
        container = await startup(database_url)
        if reset:
            logger.warning("Dropping all guildhall tables")
            await DatabaseService.drop_tables()
        await DatabaseService.create_tables()
        return 0
    finally:
        await shutdown(container)


async def _check(database_url: Optional[str]) -> int:
    container: Optional[ServiceContainer] = None
    try:
        container = await startup(database_url)
        healthy = await DatabaseService.health_check()
        services = await container.health_check()
        logger.info(
            "Health check finished",
            extra={"database_healthy": healthy, **services},
        )
        return 0 if healthy and services["all_services_available"] else 1
    finally:
        await shutdown(container)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guildhall", description="Guildhall guild service")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    init_db = commands.add_parser("init-db", help="Create database tables")
    init_db.add_argument(
        "--reset",
        action="store_true",
        help="Drop existing tables first (destroys all data)",
    )
    commands.add_parser("check", help="Check database connectivity and service wiring")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "init-db":
        command = _init_db(args.database_url, reset=args.reset)
    else:
        command = _check(args.database_url)

    try:
        return asyncio.run(command)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as exc:
        logger.critical(f"Fatal error: {exc}", exc_info=True)
        return 1
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())

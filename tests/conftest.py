"""
Pytest Configuration and Fixtures for Guildhall Tests
=====================================================

Purpose
-------
Centralized fixtures for the Guildhall test suite: database lifecycle,
wired services, seed helpers and mocks.

Responsibilities
----------------
- Point DatabaseService at a throwaway database per test
  (SQLite file by default, PostgreSQL testcontainer with GUILDHALL_TEST_POSTGRES=1)
- Build the service container on a fresh EventBus
- Seed characters and presence rows for scenarios
- Mocks for unit tests

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests go through DatabaseService exactly like production code
- Environment is fixed before any guildhall import so Config loads test values
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from types import SimpleNamespace
from typing import AsyncGenerator, Generator, Optional

import pytest
import pytest_asyncio
from sqlalchemy import delete, select, update

from guildhall.core.config.manager import ConfigManager
from guildhall.core.database.service import DatabaseService
from guildhall.core.event.bus import EventBus
from guildhall.core.logging.logger import clear_log_context, get_logger
from guildhall.core.services.container import ServiceContainer
from guildhall.database.models.core.character import Character, OnlineCharacter
from guildhall.database.models.social import Guild, GuildMember, GuildRank

logger = get_logger(__name__)

USE_POSTGRES = os.environ.get("GUILDHALL_TEST_POSTGRES") == "1"


# ============================================================================
# CONFIG FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """YAML defaults loaded, overrides cleared around every test."""
    ConfigManager.initialize()
    ConfigManager.clear_overrides()
    yield ConfigManager
    ConfigManager.clear_overrides()
    clear_log_context()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_url() -> Generator[Optional[str], None, None]:
    """
    PostgreSQL testcontainer URL when GUILDHALL_TEST_POSTGRES=1, else None.

    Scope: session (container persists across all tests)
    """
    if not USE_POSTGRES:
        yield None
        return

    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    try:
        yield container.get_connection_url()
    finally:
        logger.info("Stopping PostgreSQL testcontainer...")
        container.stop()


@pytest_asyncio.fixture
async def database(tmp_path, postgres_url) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService with a clean schema.

    Scope: function (clean slate per test)
    """
    url = postgres_url or f"sqlite+aiosqlite:///{tmp_path / 'guildhall.db'}"

    await DatabaseService.initialize(url)
    if postgres_url:
        await DatabaseService.drop_tables()
    await DatabaseService.create_tables()

    yield

    await DatabaseService.shutdown()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


@pytest_asyncio.fixture
async def services(
    database, config_manager, event_bus
) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired service container on the test database."""
    container = ServiceContainer(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.container"),
    )
    await container.initialize()
    yield container
    await container.shutdown()


# ============================================================================
# SEED HELPERS
# ============================================================================


async def create_character(
    name: str,
    account_id: int,
    level: int = 20,
    vocation: int = 4,
    online: bool = False,
) -> Character:
    """Insert a character (and optionally its presence row) and commit."""
    async with DatabaseService.get_transaction() as session:
        character = Character(
            name=name, account_id=account_id, level=level, vocation=vocation
        )
        session.add(character)
        await session.flush()
        if online:
            session.add(OnlineCharacter(player_id=character.id))
    return character


async def set_online(character_id: int, online: bool = True) -> None:
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            delete(OnlineCharacter).where(OnlineCharacter.player_id == character_id)
        )
        if online:
            session.add(OnlineCharacter(player_id=character_id))


@pytest.fixture
def seed_character():
    """Factory fixture: ``await seed_character("Thorin", account_id=1)``."""
    return create_character


async def set_member_rank(character_id: int, guild_id: int, level: int) -> None:
    """Move an existing member to the guild's rank with `level`."""
    async with DatabaseService.get_transaction() as session:
        rank_id = (
            await session.execute(
                select(GuildRank.id).where(
                    GuildRank.guild_id == guild_id, GuildRank.level == level
                )
            )
        ).scalar_one()
        await session.execute(
            update(GuildMember)
            .where(GuildMember.character_id == character_id)
            .values(rank_id=rank_id)
        )


async def drop_membership(character_id: int) -> None:
    """Delete a membership row behind the services' back."""
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            delete(GuildMember).where(GuildMember.character_id == character_id)
        )


async def set_guild_stats(guild_id: int, level: int, points: int) -> None:
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            update(Guild).where(Guild.id == guild_id).values(level=level, points=points)
        )


@pytest_asyncio.fixture
async def ravens(services, seed_character) -> SimpleNamespace:
    """
    Thorin (account 1) founds "Ravens"; Balin (account 2) and Dwalin
    (account 3) are unaffiliated.
    """
    thorin = await seed_character("Thorin", account_id=1, level=50, vocation=8, online=True)
    balin = await seed_character("Balin", account_id=2, level=30, vocation=6)
    dwalin = await seed_character("Dwalin", account_id=3, level=25, vocation=4)

    created = await services.guild.create_guild(1, "Ravens", "Thorin", motd="Welcome")

    return SimpleNamespace(
        guild_id=created["id"],
        thorin=thorin,
        balin=balin,
        dwalin=dwalin,
    )


async def join(
    services: ServiceContainer,
    guild_name: str,
    inviter_account: int,
    player_name: str,
    player_account: int,
) -> None:
    """Invite and accept in one step."""
    await services.guild_invite.invite_player(inviter_account, guild_name, player_name)
    await services.guild_invite.accept_invite(player_account, guild_name)


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config

from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select, update
from contextlib import asynccontextmanager

from dailybot.config import Config
from dailybot.database.models import Base, TrackedPlayer, DailyMap
from dailybot.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """Session that commits on success and rolls back on any exception."""
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Roster operations
    async def get_tracked_players(self, active_only: bool = True) -> List[TrackedPlayer]:
        """Get all tracked players"""
        async with self.get_session() as session:
            query = select(TrackedPlayer).order_by(TrackedPlayer.id)
            if active_only:
                query = query.where(TrackedPlayer.is_active == True)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def upsert_tracked_player(self, osu_id: int, username: Optional[str] = None,
                                    discord_id: Optional[int] = None) -> TrackedPlayer:
        """Track a player, reactivating and updating an existing row if present"""
        async with self.transaction() as session:
            result = await session.execute(
                select(TrackedPlayer).where(TrackedPlayer.osu_id == osu_id)
            )
            player = result.scalar_one_or_none()
            if player is None:
                player = TrackedPlayer(osu_id=osu_id, username=username, discord_id=discord_id)
                session.add(player)
            else:
                player.is_active = True
                if username is not None:
                    player.username = username
                if discord_id is not None:
                    player.discord_id = discord_id
            await session.flush()
            return player

    async def deactivate_tracked_player(self, osu_id: int) -> bool:
        """Stop tracking a player. Returns False if the player was unknown"""
        async with self.transaction() as session:
            result = await session.execute(
                update(TrackedPlayer)
                .where(TrackedPlayer.osu_id == osu_id, TrackedPlayer.is_active == True)
                .values(is_active=False)
            )
            return result.rowcount > 0

    # Schedule operations
    async def get_daily_maps(self) -> List[DailyMap]:
        """Get every scheduled map ordered by start time"""
        async with self.get_session() as session:
            result = await session.execute(
                select(DailyMap).order_by(DailyMap.starts_at, DailyMap.id)
            )
            return list(result.scalars().all())

    async def add_daily_map(self, beatmap_id: int, starts_at: datetime, ends_at: datetime,
                            required_mods: str = '', freemod: bool = False,
                            requester: Optional[str] = None, title: Optional[str] = None,
                            beatmapset_id: Optional[int] = None,
                            max_combo: Optional[int] = None) -> DailyMap:
        """Schedule a daily map"""
        if ends_at <= starts_at:
            raise ValueError("ends_at must be after starts_at")

        async with self.transaction() as session:
            daily_map = DailyMap(
                beatmap_id=beatmap_id,
                beatmapset_id=beatmapset_id,
                title=title,
                max_combo=max_combo,
                required_mods=required_mods,
                freemod=freemod,
                starts_at=starts_at,
                ends_at=ends_at,
                requester=requester
            )
            session.add(daily_map)
            await session.flush()
            self.logger.info(f"Scheduled daily map {beatmap_id} from {starts_at} to {ends_at}")
            return daily_map

    async def set_map_message_id(self, daily_map_id: int, message_id: Optional[int]):
        """Remember the announcement message of a scheduled map"""
        async with self.transaction() as session:
            await session.execute(
                update(DailyMap)
                .where(DailyMap.id == daily_map_id)
                .values(message_id=message_id)
            )

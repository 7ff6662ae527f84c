from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, BigInteger, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class TrackedPlayer(Base):
    __tablename__ = 'tracked_players'

    id = Column(Integer, primary_key=True)
    osu_id = Column(BigInteger, unique=True, nullable=False, index=True)
    discord_id = Column(BigInteger, nullable=True, index=True)
    username = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)

    # Metadata
    added_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<TrackedPlayer(osu_id={self.osu_id}, username='{self.username}', active={self.is_active})>"

class DailyMap(Base):
    __tablename__ = 'daily_maps'

    id = Column(Integer, primary_key=True)
    beatmap_id = Column(BigInteger, nullable=False, index=True)
    beatmapset_id = Column(BigInteger, nullable=True)
    title = Column(String(300), nullable=True)
    max_combo = Column(Integer, nullable=True)

    # Qualification
    required_mods = Column(String(40), default='')  # e.g. "HDHR", empty for nomod
    freemod = Column(Boolean, default=False)

    # Schedule, stored as naive UTC
    starts_at = Column(DateTime, nullable=False, index=True)
    ends_at = Column(DateTime, nullable=False)

    requester = Column(String(100), nullable=True)
    message_id = Column(BigInteger, nullable=True)  # Announcement message in the MOTD channel

    created_at = Column(DateTime, default=func.now())

    __table_args__ = (UniqueConstraint('beatmap_id', 'starts_at'),)

    def __repr__(self):
        return f"<DailyMap(beatmap_id={self.beatmap_id}, starts_at={self.starts_at}, mods='{self.required_mods}')>"

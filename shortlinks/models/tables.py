"""
Database models.

Design principles:
  - Links are mutable (visit counter, destination edits) and deleted lazily
    once their quota or expiry is observed
  - analytics is append-only (no updates/deletes from the service)
  - users holds operator accounts; sessions are never persisted
"""

import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Entity tables
# ---------------------------------------------------------------------------

class Link(Base):
    __tablename__ = "links"

    code = Column(String(64), primary_key=True)
    link = Column(Text, nullable=False)                      # destination URL
    creator = Column(String(255), nullable=False, default="")  # "" = anonymous
    visits = Column(Integer, nullable=False, default=0)
    created = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Lifecycle limits: either one reached means the next lookup evicts
    max_visits = Column("maxVisits", Integer, nullable=True)
    expires = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_links_creator_created", "creator", "created"),
    )


class User(Base):
    __tablename__ = "users"

    name = Column(String(255), primary_key=True)
    password_hash = Column(String(255), nullable=False)      # bcrypt
    secret = Column(String(64), nullable=False)              # base32 TOTP secret
    admin = Column(Boolean, nullable=False, default=False)


# ---------------------------------------------------------------------------
# Event tables (append-only)
# ---------------------------------------------------------------------------

class AnalyticsEvent(Base):
    """One row per successful redirect when analytics capture is on."""
    __tablename__ = "analytics"

    timestamp = Column(DateTime(timezone=True), primary_key=True, default=_utcnow)
    ip = Column(String(255), primary_key=True, default="")   # "" when IP capture is off
    code = Column(String(64), nullable=False, index=True)
    useragent = Column(Text, nullable=True)
    referer = Column(Text, nullable=True)
    geo_country = Column("geoCountry", String(8), nullable=True)
    geo_city = Column("geoCity", String(255), nullable=True)

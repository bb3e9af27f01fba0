"""
Database models for the FuelEU compliance service

Tables:
- routes: voyage routes and the baseline flag
- ship_compliance: one compliance balance per ship and year
- bank_entries: append-only banking ledger
- pools / pool_members: persisted compliance pools
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from fueleu.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class RouteRecord(Base):
    """Voyage route"""

    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(String(50), nullable=False, unique=True)
    vessel_type = Column(String(50), nullable=False, default="")
    fuel_type = Column(String(50), nullable=False, default="")
    year = Column(Integer, nullable=False)
    ghg_intensity = Column(Float, nullable=False)
    fuel_consumption = Column(Float, nullable=False, default=0.0)
    distance = Column(Float, nullable=False, default=0.0)
    total_emissions = Column(Float, nullable=False, default=0.0)
    is_baseline = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_routes_is_baseline", "is_baseline"),
        Index("idx_routes_year", "year"),
    )


class ShipComplianceRecord(Base):
    """Compliance balance of a ship for a reporting year"""

    __tablename__ = "ship_compliance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ship_id = Column(String(50), nullable=False)
    year = Column(Integer, nullable=False)
    cb_gco2eq = Column(Float, nullable=False)
    computed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("ship_id", "year", name="uq_ship_compliance_ship_year"),
    )


class BankEntryRecord(Base):
    """Banking ledger entry (BANK or APPLY)"""

    __tablename__ = "bank_entries"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(36), nullable=False, unique=True)
    ship_id = Column(String(50), nullable=False)
    year = Column(Integer, nullable=False)
    amount_gco2eq = Column(Float, nullable=False)
    kind = Column(String(10), nullable=False)  # BANK, APPLY
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_bank_entries_ship_year", "ship_id", "year"),
    )


class PoolRecord(Base):
    """Compliance pool"""

    __tablename__ = "pools"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(String(36), nullable=False, unique=True)
    year = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    members = relationship(
        "PoolMemberRecord",
        back_populates="pool",
        cascade="all, delete-orphan",
        order_by="PoolMemberRecord.ship_id",
    )


class PoolMemberRecord(Base):
    """Ship balance before and after pooling"""

    __tablename__ = "pool_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pool_seq = Column(Integer, ForeignKey("pools.seq", ondelete="CASCADE"), nullable=False)
    ship_id = Column(String(50), nullable=False)
    cb_before = Column(Float, nullable=False)
    cb_after = Column(Float, nullable=False)

    pool = relationship("PoolRecord", back_populates="members")

    __table_args__ = (
        UniqueConstraint("pool_seq", "ship_id", name="uq_pool_members_pool_ship"),
    )

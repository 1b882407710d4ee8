from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Enum, ForeignKey, Index, Table, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


class BookingStatus(StrEnum):
    ACCEPTED = "accepted"
    PENDING = "pending"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


event_type_hosts = Table(
    "event_type_hosts",
    Base.metadata,
    Column("event_type_id", ForeignKey("event_types.id"), primary_key=True),
    Column("user_id", ForeignKey("users.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    calendar_accounts: Mapped[list["CalendarAccount"]] = relationship(back_populates="user")


class EventType(Base):
    __tablename__ = "event_types"
    __table_args__ = (
        CheckConstraint(
            "seats_per_time_slot IS NULL OR seats_per_time_slot >= 1",
            name="chk_event_types_seats",
        ),
        Index("idx_event_types_team", "team_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # NULL means one booking takes the whole slot
    seats_per_time_slot: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    users: Mapped[list["User"]] = relationship(secondary=event_type_hosts)
    bookings: Mapped[list["Booking"]] = relationship(back_populates="event_type")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_bookings_time"),
        UniqueConstraint("uid", name="uq_bookings_uid"),
        Index("idx_bookings_user_start", "user_id", "start_time"),
        Index("idx_bookings_event_type", "event_type_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type_id: Mapped[int] = mapped_column(ForeignKey("event_types.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=BookingStatus.ACCEPTED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    event_type: Mapped["EventType"] = relationship(back_populates="bookings")
    attendees: Mapped[list["Attendee"]] = relationship(back_populates="booking")


class Attendee(Base):
    __tablename__ = "attendees"
    __table_args__ = (Index("idx_attendees_booking", "booking_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    booking: Mapped["Booking"] = relationship(back_populates="attendees")


class SelectedSlot(Base):
    """A temporary hold on one host's slot while a booking form is being filled in."""

    __tablename__ = "selected_slots"
    __table_args__ = (
        CheckConstraint("slot_utc_start_date < slot_utc_end_date", name="chk_selected_slots_time"),
        UniqueConstraint(
            "user_id",
            "slot_utc_start_date",
            "slot_utc_end_date",
            "uid",
            name="uq_selected_slots",
        ),
        Index("idx_selected_slots_uid", "uid"),
        Index("idx_selected_slots_release_at", "release_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    event_type_id: Mapped[int] = mapped_column(ForeignKey("event_types.id"), nullable=False)
    slot_utc_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    slot_utc_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    is_seated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    release_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class CalendarAccount(Base):
    __tablename__ = "calendar_accounts"
    __table_args__ = (Index("idx_calendar_accounts_user", "user_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    external_user_uri: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    user: Mapped["User"] = relationship(back_populates="calendar_accounts")

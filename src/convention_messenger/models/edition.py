"""
Conventions, their editions, volunteer teams and organizers.

These tables belong to the event-management side of the application; the
messenger reads them to know who is in which team and who may see what.
"""
from sqlalchemy import String, DateTime, Boolean, ForeignKey, UUID, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from datetime import datetime
from convention_messenger.database.base import Base
from convention_messenger.utils.timestamps import utcnow
import uuid


class Convention(Base):
    __tablename__ = "conventions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Convention(id={self.id!r}, name={self.name!r})>"


class Edition(Base):
    """One occurrence of a convention (e.g. the 2026 edition)."""
    __tablename__ = "editions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    convention_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conventions.id"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Edition(id={self.id!r}, name={self.name!r})>"


class Team(Base):
    """A volunteer team of an edition (e.g. "Logistics")."""
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    edition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("editions.id"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Team(id={self.id!r}, name={self.name!r})>"


class ConventionOrganizer(Base):
    """
    A user organizing a convention. `can_manage_volunteers` grants volunteer
    management on every edition of the convention.
    """
    __tablename__ = "convention_organizers"
    __table_args__ = (
        UniqueConstraint("convention_id", "user_id", name="uq_convention_organizers_convention_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    convention_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conventions.id"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    can_manage_volunteers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class EditionOrganizer(Base):
    """
    Attaches a convention organizer to one edition, optionally with
    edition-scoped volunteer management rights.
    """
    __tablename__ = "edition_organizers"
    __table_args__ = (
        UniqueConstraint("edition_id", "organizer_id", name="uq_edition_organizers_edition_organizer"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    edition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("editions.id"),
        nullable=False,
        index=True
    )

    organizer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("convention_organizers.id"),
        nullable=False,
        index=True
    )

    can_manage_volunteers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

from sqlalchemy import Boolean, DateTime, ForeignKey, UUID, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from datetime import datetime
from enum import Enum as PyEnum
from convention_messenger.database.base import Base
from convention_messenger.utils.timestamps import utcnow
import uuid


class ApplicationStatus(PyEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class VolunteerApplication(Base):
    """
    A user's application to volunteer at an edition. Only ACCEPTED applications
    put the user into team conversations.
    """
    __tablename__ = "volunteer_applications"
    __table_args__ = (
        UniqueConstraint("edition_id", "user_id", name="uq_volunteer_applications_edition_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    edition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("editions.id"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, name="application_status"),
        default=ApplicationStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<VolunteerApplication(id={self.id!r}, user_id={self.user_id!r}, status={self.status.value!r})>"


class ApplicationTeamAssignment(Base):
    """Places an application in a team, as a leader or a regular member."""
    __tablename__ = "application_team_assignments"
    __table_args__ = (
        UniqueConstraint("application_id", "team_id", name="uq_application_team_assignments_application_team"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("volunteer_applications.id"),
        nullable=False,
        index=True
    )

    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teams.id"),
        nullable=False,
        index=True
    )

    is_leader: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

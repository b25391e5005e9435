from sqlalchemy import String, DateTime, ForeignKey, Index, UUID, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from datetime import datetime
from enum import Enum as PyEnum
from convention_messenger.database.base import Base
from convention_messenger.utils.timestamps import utcnow
import uuid


class ConversationType(PyEnum):
    """Kind of conversation; decides which uniqueness rule applies."""
    TEAM_GROUP = "TEAM_GROUP"                            # every member of a team
    TEAM_LEADER_PRIVATE = "TEAM_LEADER_PRIVATE"          # one member + all leaders of the team
    VOLUNTEER_TO_ORGANIZERS = "VOLUNTEER_TO_ORGANIZERS"  # one volunteer + volunteer managers
    ORGANIZERS_GROUP = "ORGANIZERS_GROUP"                # every organizer of an edition
    ARTIST_APPLICATION = "ARTIST_APPLICATION"            # artist + organizers about a show application


def _only(conversation_type: ConversationType) -> dict:
    # Partial-index predicate, spelled for both supported dialects.
    clause = text(f"type = '{conversation_type.name}'")
    return {"postgresql_where": clause, "sqlite_where": clause}


class Conversation(Base):
    """
    A conversation container. Created on demand by the provisioning services and
    never deleted by them; membership lives in ConversationParticipant rows.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        # at most one group conversation per team
        Index("uq_conversations_team_group", "edition_id", "team_id", unique=True,
              **_only(ConversationType.TEAM_GROUP)),
        # at most one private conversation per (team, participant set)
        Index("uq_conversations_leader_private", "edition_id", "team_id", "participant_key", unique=True,
              **_only(ConversationType.TEAM_LEADER_PRIVATE)),
        # one volunteer-to-organizers conversation per volunteer
        Index("uq_conversations_volunteer_to_organizers", "edition_id", "participant_key", unique=True,
              **_only(ConversationType.VOLUNTEER_TO_ORGANIZERS)),
        Index("uq_conversations_organizers_group", "edition_id", unique=True,
              **_only(ConversationType.ORGANIZERS_GROUP)),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True
    )

    edition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("editions.id"),
        nullable=False,
        index=True
    )

    team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teams.id"),
        nullable=True,
        index=True
    )

    show_application_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("show_applications.id"),
        nullable=True,
        unique=True
    )

    type: Mapped[ConversationType] = mapped_column(
        SQLEnum(ConversationType, name="conversation_type"),
        nullable=False,
        index=True
    )

    # sha256 of the sorted participant ids a private conversation was created for
    participant_key: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    # bumped when a message is posted; drives listing order
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    # --- Relationships ---
    # Used to insert a conversation together with its first participants.
    # Never lazy-loaded: reads go through the repositories.
    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, type={self.type.value!r}, team_id={self.team_id!r})>"


class ConversationParticipant(Base):
    """
    A user's membership in a conversation.

    `left_at IS NULL` means active. Leaving keeps the row; rejoining reactivates
    it so `last_read_at` (read position) survives.
    """
    __tablename__ = "conversation_participants"
    __table_args__ = (
        Index(
            "uq_conversation_participants_active",
            "conversation_id", "user_id",
            unique=True,
            postgresql_where=text("left_at IS NULL"),
            sqlite_where=text("left_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    last_read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    left_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="participants",
        lazy="raise"
    )

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    def __repr__(self) -> str:
        return (
            f"<ConversationParticipant(conversation_id={self.conversation_id!r}, "
            f"user_id={self.user_id!r}, left_at={self.left_at!r})>"
        )

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ideaboard.domain.catalog import SUGGESTION_STATUSES, VOTE_VALUES, sql_in
from ideaboard.infrastructure.db.base import Base, TimestampMixin, utc_now


class Suggestion(TimestampMixin, Base):
    __tablename__ = "suggestions"
    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in(SUGGESTION_STATUSES)})", name="status"),
        CheckConstraint("progress_percent BETWEEN 0 AND 100", name="progress_percent"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        default="open",
        server_default="open",
        nullable=False,
    )
    progress_percent: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    upvotes_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    downvotes_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    # Set exactly once by promotion; null means unpromoted.
    backlog_item_id: Mapped[int | None] = mapped_column(
        ForeignKey(
            "backlog_items.id",
            ondelete="RESTRICT",
            use_alter=True,
            name="fk_suggestions_backlog_item_id_backlog_items",
        ),
        unique=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class SuggestionVote(Base):
    __tablename__ = "suggestion_votes"
    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "suggestion_id",
            "user_id",
            name="uq_suggestion_votes_project_suggestion_user",
        ),
        CheckConstraint(f"vote IN ({sql_in(VOTE_VALUES)})", name="vote"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    suggestion_id: Mapped[int] = mapped_column(
        ForeignKey("suggestions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    vote: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )

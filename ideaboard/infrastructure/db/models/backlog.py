from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from ideaboard.domain.catalog import (
    BACKLOG_ORIGINS,
    BACKLOG_PRIORITIES,
    BACKLOG_STAGES,
    STACKS,
    sql_in,
)
from ideaboard.infrastructure.db.base import Base, TimestampMixin


class BacklogItem(TimestampMixin, Base):
    __tablename__ = "backlog_items"
    __table_args__ = (
        # NULL suggestion ids never collide, so manual items are unconstrained.
        UniqueConstraint(
            "project_id",
            "suggestion_id",
            name="uq_backlog_items_project_suggestion",
        ),
        CheckConstraint(f"origin_type IN ({sql_in(BACKLOG_ORIGINS)})", name="origin_type"),
        CheckConstraint(f"stage IN ({sql_in(BACKLOG_STAGES)})", name="stage"),
        CheckConstraint(f"priority IN ({sql_in(BACKLOG_PRIORITIES)})", name="priority"),
        CheckConstraint("progress_percent BETWEEN 0 AND 100", name="progress_percent"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    origin_type: Mapped[str] = mapped_column(String(16), nullable=False)
    suggestion_id: Mapped[int | None] = mapped_column(
        ForeignKey("suggestions.id", ondelete="SET NULL"),
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text)
    stage: Mapped[str] = mapped_column(
        String(16), default="todo", server_default="todo", nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(16), default="medium", server_default="medium", nullable=False
    )
    progress_percent: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )


class BacklogTask(TimestampMixin, Base):
    __tablename__ = "backlog_tasks"
    __table_args__ = (CheckConstraint(f"stack IN ({sql_in(STACKS)})", name="stack"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    backlog_item_id: Mapped[int] = mapped_column(
        ForeignKey("backlog_items.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    stack: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_done: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    done_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    order_index: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

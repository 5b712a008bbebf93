from typing import Optional, TYPE_CHECKING
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import DateTime, Column


if TYPE_CHECKING:
    from .users import User

HABIT_KINDS = ("boolean", "counter", "timer")
CHECKIN_STATUSES = ("done", "skip")


class Habit(SQLModel, table=True):
    """
    User habits. Deleting a habit only deactivates it so check-in history survives.
    """
    __tablename__ = "habits"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    user: "User" = Relationship(back_populates="habits")

    title: str = Field(max_length=200)

    # Kind: boolean, counter, timer
    kind: str = Field(default="boolean", max_length=20)
    counter_target: Optional[int] = None
    counter_step: Optional[int] = None
    timer_duration: Optional[int] = None  # seconds

    sort_order: int = Field(default=0, index=True)

    # Metadata
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.kind,
            "counterTarget": self.counter_target,
            "counterStep": self.counter_step,
            "timerDuration": self.timer_duration,
            "sort_order": self.sort_order,
            "active": self.active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Checkin(SQLModel, table=True):
    """
    One row per (user, habit, local calendar day). No row means "none".
    """
    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "habit_id", "checkin_date", name="uq_checkins_user_habit_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    habit_id: int = Field(index=True, foreign_key="habits.id")

    checkin_date: date = Field(index=True)
    status: str = Field(max_length=10)  # done | skip

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

from typing import Optional, List, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, UniqueConstraint, Relationship
from sqlalchemy import BigInteger, DateTime, Column
from ..config import settings


if TYPE_CHECKING:
    from .habit import Habit


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tg_user_id", name="uq_users_tg_user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tg_user_id: int = Field(index=True, sa_type=BigInteger)

    first_name: Optional[str] = Field(default=None, max_length=200)
    username: Optional[str] = Field(default=None, max_length=200)
    language_code: Optional[str] = Field(default=None, max_length=16)

    user_timezone: Optional[str] = Field(default=None, index=True)

    # Entitlements: "free" | "premium"
    plan: str = Field(default="free", max_length=20)
    trial_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    # Check-in rewards
    xp: int = Field(default=0)
    level: int = Field(default=1)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    # --- Relationships ---
    habits: List["Habit"] = Relationship(back_populates="user")

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    @property
    def is_trial(self) -> bool:
        if not self.trial_until:
            return False
        until = self.trial_until
        if until.tzinfo is None:
            # SQLite hands back naive datetimes
            until = until.replace(tzinfo=timezone.utc)
        return until > datetime.now(timezone.utc)

    @property
    def is_premium(self) -> bool:
        """Premium plan, whitelisted account or an active trial."""
        if self.plan == "premium":
            return True
        if self.tg_user_id in settings.premium_ids:
            return True
        return self.is_trial

    @property
    def effective_plan(self) -> str:
        return "premium" if self.is_premium else (self.plan or "free")

"""Account identity: the credential record a user logs in with."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from restodesk.models.base import BaseModel

# is_active values
ACCOUNT_DISABLED = 0
ACCOUNT_ACTIVE = 1
ACCOUNT_AUTO_DISABLED = 2


class Account(BaseModel):
    """Login identity keyed by email.

    The matching display attributes live in Profile under the same email.
    Accounts are never deleted, only deactivated through is_active.
    """

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[int] = mapped_column(Integer, default=ACCOUNT_ACTIVE, nullable=False)
    is_setup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    restaurant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True
    )

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.email}>"

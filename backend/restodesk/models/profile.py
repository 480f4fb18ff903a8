"""Profile: display attributes for an account, keyed by the same email."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from restodesk.models.account import ACCOUNT_ACTIVE
from restodesk.models.base import BaseModel


class Profile(BaseModel):
    """Registration details shown to the account owner.

    Written in the same transaction as the Account so the two stay in sync.
    """

    __tablename__ = "profiles"

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    contact_number: Mapped[str] = mapped_column(String(32), nullable=False)
    restaurant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[int] = mapped_column(Integer, default=ACCOUNT_ACTIVE, nullable=False)

    def __repr__(self) -> str:
        return f"<Profile {self.email}>"

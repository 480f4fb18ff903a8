"""Restaurant owned by an account."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from restodesk.models.base import BaseModel


class Restaurant(BaseModel):
    __tablename__ = "restaurants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    gps_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    cuisine: Mapped[str] = mapped_column(String(100), nullable=False)
    min_order_time: Mapped[int] = mapped_column(Integer, nullable=False)
    max_order_time: Mapped[int] = mapped_column(Integer, nullable=False)
    staff_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Restaurant {self.name}>"

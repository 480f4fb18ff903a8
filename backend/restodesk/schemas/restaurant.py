"""Pydantic schemas for restaurants."""

from uuid import UUID

from pydantic import Field

from restodesk.schemas.auth import EMAIL_PATTERN
from restodesk.schemas.base import CamelModel


class RestaurantCreate(CamelModel):
    restaurant_name: str = Field(..., min_length=1, max_length=255)
    restaurant_contact_number: str = Field(..., min_length=1, max_length=32)
    restaurant_address: str = Field(..., min_length=1, max_length=500)
    cuisine: str = Field(..., min_length=1, max_length=100)
    min_order_time: int = Field(..., ge=0)
    max_order_time: int = Field(..., ge=0)
    staff_count: int = Field(default=0, ge=0)
    logo_url: str | None = Field(default=None, max_length=1024)
    restaurant_email: str | None = Field(default=None, max_length=320, pattern=EMAIL_PATTERN)
    restaurant_gps_address: str | None = Field(default=None, max_length=500)


class RestaurantView(CamelModel):
    id: UUID
    restaurant_name: str
    restaurant_contact_number: str
    restaurant_address: str
    cuisine: str
    min_order_time: int
    max_order_time: int
    staff_count: int
    logo_url: str | None = None
    restaurant_email: str | None = None
    restaurant_gps_address: str | None = None
    is_active: bool

    @classmethod
    def from_model(cls, restaurant) -> "RestaurantView":
        return cls(
            id=restaurant.id,
            restaurant_name=restaurant.name,
            restaurant_contact_number=restaurant.contact_number,
            restaurant_address=restaurant.address,
            cuisine=restaurant.cuisine,
            min_order_time=restaurant.min_order_time,
            max_order_time=restaurant.max_order_time,
            staff_count=restaurant.staff_count,
            logo_url=restaurant.logo_url,
            restaurant_email=restaurant.email,
            restaurant_gps_address=restaurant.gps_address,
            is_active=restaurant.is_active,
        )

"""Restaurant records and their link to the owning account."""

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restodesk.core.exceptions import ConflictError, conflict_from_integrity_error
from restodesk.models.account import Account
from restodesk.models.profile import Profile
from restodesk.models.restaurant import Restaurant
from restodesk.schemas.restaurant import RestaurantCreate

logger = logging.getLogger(__name__)


class RestaurantService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def register_restaurant(self, account: Account, data: RestaurantCreate) -> Restaurant:
        """Create a restaurant and mark the owner's setup complete.

        The restaurant insert, the account link and the profile's restaurant
        name are committed together or not at all.
        """
        if account.restaurant_id is not None:
            raise ConflictError("Account already has a restaurant", field="restaurant")

        conditions = [Restaurant.contact_number == data.restaurant_contact_number]
        if data.restaurant_email:
            conditions.append(Restaurant.email == data.restaurant_email)
        existing = await self.session.execute(select(Restaurant.id).where(or_(*conditions)))
        if existing.first() is not None:
            raise ConflictError(
                "Restaurant with this contact number or email already exists",
                field="restaurantContactNumber",
            )

        restaurant = Restaurant(
            name=data.restaurant_name,
            contact_number=data.restaurant_contact_number,
            address=data.restaurant_address,
            cuisine=data.cuisine,
            min_order_time=data.min_order_time,
            max_order_time=data.max_order_time,
            staff_count=data.staff_count,
            logo_url=data.logo_url,
            email=data.restaurant_email,
            gps_address=data.restaurant_gps_address,
            is_active=True,
        )
        try:
            self.session.add(restaurant)
            await self.session.flush()
            if not await self._claim_setup(account, restaurant):
                await self.session.rollback()
                raise ConflictError("Account already has a restaurant", field="restaurant")
            await self.session.execute(
                update(Profile)
                .where(Profile.email == account.email)
                .values(restaurant_name=restaurant.name)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise conflict_from_integrity_error(e) from e

        await self.session.refresh(restaurant)
        await self.session.refresh(account)
        logger.info(
            f"Restaurant registered: {restaurant.name}",
            extra={"account_id": str(account.id), "restaurant_id": str(restaurant.id)},
        )
        return restaurant

    async def _claim_setup(self, account: Account, restaurant: Restaurant) -> bool:
        """Link the restaurant only if the account is still unlinked.

        Concurrent registrations for one account both pass the early check;
        the conditional UPDATE lets exactly one of them take the link.
        """
        result = await self.session.execute(
            update(Account)
            .where(Account.id == account.id, Account.restaurant_id.is_(None))
            .values(restaurant_id=restaurant.id, is_setup=True)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def list_restaurants(self) -> list[Restaurant]:
        result = await self.session.execute(
            select(Restaurant).where(Restaurant.is_active.is_(True)).order_by(Restaurant.created_at)
        )
        return list(result.scalars().all())

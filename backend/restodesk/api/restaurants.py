"""Restaurant API endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from restodesk.api.deps import CurrentAccount, get_current_account, get_restaurant_service
from restodesk.core.responses import success_response
from restodesk.schemas.restaurant import RestaurantCreate, RestaurantView
from restodesk.services.restaurants import RestaurantService

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_restaurant(
    request: RestaurantCreate,
    current: CurrentAccount = Depends(get_current_account),
    restaurants: RestaurantService = Depends(get_restaurant_service),
) -> JSONResponse:
    """Create the caller's restaurant and complete account setup.

    Returns 409 if the account already owns a restaurant or the contact
    number / email is taken.
    """
    restaurant = await restaurants.register_restaurant(current.account, request)
    return success_response(
        RestaurantView.from_model(restaurant),
        "Restaurant registered successfully",
        status.HTTP_201_CREATED,
    )


@router.get("")
async def list_restaurants(
    _current: CurrentAccount = Depends(get_current_account),
    restaurants: RestaurantService = Depends(get_restaurant_service),
) -> JSONResponse:
    items = await restaurants.list_restaurants()
    return success_response(
        [RestaurantView.from_model(r) for r in items],
        "Restaurants fetched",
    )

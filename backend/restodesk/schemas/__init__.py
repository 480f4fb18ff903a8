# Restodesk Schemas
from restodesk.schemas.auth import (
    AccountView,
    LoginRequest,
    LoginResult,
    ProfileView,
    RegisterRequest,
    RegisterResult,
    UserProfileView,
)
from restodesk.schemas.restaurant import RestaurantCreate, RestaurantView

__all__ = [
    "AccountView",
    "LoginRequest",
    "LoginResult",
    "ProfileView",
    "RegisterRequest",
    "RegisterResult",
    "RestaurantCreate",
    "RestaurantView",
    "UserProfileView",
]

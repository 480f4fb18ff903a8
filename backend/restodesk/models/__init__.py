# Restodesk Models
from restodesk.models.account import Account
from restodesk.models.base import BaseModel
from restodesk.models.profile import Profile
from restodesk.models.restaurant import Restaurant
from restodesk.models.token_blacklist import TokenBlacklist

__all__ = [
    "Account",
    "BaseModel",
    "Profile",
    "Restaurant",
    "TokenBlacklist",
]

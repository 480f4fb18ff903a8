# Restodesk Services
from restodesk.services.accounts import AccountService
from restodesk.services.notifications import EmailNotifier
from restodesk.services.otp import OtpService, OtpStore
from restodesk.services.restaurants import RestaurantService
from restodesk.services.revocation import RevocationLedger
from restodesk.services.tokens import TokenService

__all__ = [
    "AccountService",
    "EmailNotifier",
    "OtpService",
    "OtpStore",
    "RestaurantService",
    "RevocationLedger",
    "TokenService",
]

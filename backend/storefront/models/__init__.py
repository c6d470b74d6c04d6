# Storefront Models
from storefront.models.base import BaseModel
from storefront.models.revoked_token import RevokedToken
from storefront.models.user import User

__all__ = [
    "BaseModel",
    "RevokedToken",
    "User",
]

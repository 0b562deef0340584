from taskauth.models.refresh_token import RefreshToken
from taskauth.models.user import User

__all__ = ["RefreshToken", "User"]

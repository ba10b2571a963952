from .tokens import TokenVerifier, bearer_token, create_access_token

__all__ = [
    "TokenVerifier",
    "bearer_token",
    "create_access_token",
]

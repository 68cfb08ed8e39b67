from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from .auth import decode_access_token
from .config import RATE_LIMIT_STORAGE_URI

def user_or_remote_address(request: Request) -> str:
    """Rate-limit key: the signed-in user's id, else the client address"""
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        claims = decode_access_token(authorization[7:].strip())
        if claims:
            return f"user:{claims['sub']}"
    return get_remote_address(request)

limiter = Limiter(key_func=user_or_remote_address, storage_uri=RATE_LIMIT_STORAGE_URI)

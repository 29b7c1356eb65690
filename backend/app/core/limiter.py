"""Rate limiter singleton — import from here to avoid circular deps."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request


def _caller_key(request: Request) -> str:
    """Limit per bearer token, falling back to the client address."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer ") and len(auth) > 7:
        return f"token:{auth[7:]}"
    return get_remote_address(request)


limiter = Limiter(key_func=_caller_key)

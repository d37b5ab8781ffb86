# /ledgerbot/utils/rate_limiter.py

from fastapi import Request
from slowapi import Limiter

from ledgerbot.config.settings import settings
from ledgerbot.utils.request_utils import get_remote_address

# Every chat user reaches us through the same transport adapter, so limiting
# by client address alone would throttle all users together. The adapter
# names the user in USER_KEY_HEADER; requests without it fall back to the
# client address.

USER_KEY_HEADER = "X-Ledgerbot-User"


def get_rate_limit_key(request: Request) -> str:
    user_key = request.headers.get(USER_KEY_HEADER, "").strip()
    if user_key:
        return f"user:{user_key}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.rate_limit_per_minute > 0,
)

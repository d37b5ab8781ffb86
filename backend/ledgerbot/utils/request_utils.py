# /ledgerbot/utils/request_utils.py
from fastapi import Request

FORWARDED_FOR_HEADER = "X-Forwarded-For"


def get_remote_address(request: Request) -> str:
    """
    Client IP used for rate limiting and audit logs.
    Behind the reverse proxy the first X-Forwarded-For hop is the real client.
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"

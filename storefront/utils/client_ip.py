# storefront/utils/client_ip.py
from typing import Mapping

ANONYMOUS = "anonymous"


def get_client_ip(headers: Mapping[str, str]) -> str:
    # Proxy headers in order of trust: Cloudflare, nginx/Vercel, generic chain
    for name in ("cf-connecting-ip", "x-real-ip"):
        value = (headers.get(name) or "").strip()
        if value:
            return value

    forwarded = headers.get("x-forwarded-for") or ""
    # first ip in list is original client
    first = forwarded.split(",")[0].strip()
    return first or ANONYMOUS

# storefront/utils/api.py
from typing import Dict, Optional, Sequence

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


def rate_limit_headers(request: Request) -> Dict[str, str]:
    # Set by the rate_limited() dependency on routes that sit behind a bucket
    result = getattr(request.state, "rate_limit", None)
    return result.headers() if result is not None else {}


def json_response(request: Request, content, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=rate_limit_headers(request))


async def read_json(request: Request):
    # None for an empty or malformed body; callers decide how strict to be
    try:
        return await request.json()
    except ValueError:
        return None


def add_method_not_allowed_route(
    router: APIRouter, path: str, allowed: str, dependencies: Optional[Sequence] = None
):
    """Answer every other method on `path` with 405 once `dependencies` have run.

    Routes behind a rate-limit bucket pass it here so wrong-method calls are
    counted and carry the X-RateLimit-* headers like any other response.
    """
    async def method_not_allowed():
        raise HTTPException(status_code=405, detail="Method Not Allowed", headers={"Allow": allowed})

    router.add_api_route(
        path,
        method_not_allowed,
        methods=[m for m in ALL_METHODS if m != allowed],
        dependencies=dependencies,
        include_in_schema=False,
    )

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

DEFAULT_ORIGIN = "http://127.0.0.1:8080"


def _resolve_origin(origin: str | None, allowed_origins: set[str] | None) -> str | None:
    # An empty allow-list reflects whichever origin asked.
    if not allowed_origins:
        return origin or DEFAULT_ORIGIN
    if origin and origin in allowed_origins:
        return origin
    return None


def apply_cors_response(
    request: Request,
    response: Response,
    allowed_origins: set[str] | None,
) -> Response:
    origin = _resolve_origin(request.headers.get("origin"), allowed_origins)
    if origin:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        response.headers["Vary"] = "Origin"
    return response


def cors_preflight_response(request: Request, allowed_origins: set[str] | None) -> Response:
    return apply_cors_response(request, Response(status_code=204), allowed_origins)


def preflight_route(path: str, allowed_origins: set[str] | None) -> Route:
    async def preflight(request: Request) -> Response:
        return cors_preflight_response(request, allowed_origins)

    return Route(path, preflight, methods=["OPTIONS"])


def cors_error_response(
    request: Request,
    allowed_origins: set[str] | None,
    message: str,
    status_code: int,
) -> Response:
    return apply_cors_response(
        request,
        JSONResponse({"error": message}, status_code=status_code),
        allowed_origins,
    )

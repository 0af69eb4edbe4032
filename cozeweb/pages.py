from __future__ import annotations

from datetime import datetime
from pathlib import Path

from starlette.requests import Request
from starlette.responses import FileResponse, HTMLResponse, PlainTextResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles
from starlette.templating import Jinja2Templates

from .constants import LOGGER, TEMPLATES_DIR

templates = Jinja2Templates(directory=TEMPLATES_DIR)


def render_page(
    request: Request,
    name: str,
    context: dict[str, object],
    *,
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def error_page(request: Request, message: str, *, status_code: int) -> HTMLResponse:
    return render_page(request, "error.html", {"error": message}, status_code=status_code)


def timestamp_to_datetime(timestamp: int | float) -> str:
    try:
        return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "invalid date"


def format_expires_in(expires_in: int) -> str:
    return f"{expires_in} ({timestamp_to_datetime(expires_in)})"


def _not_found() -> Response:
    return PlainTextResponse("Not Found", status_code=404)


def _serve_file(path: Path, media_type: str | None = None) -> Response:
    if not path.is_file():
        return _not_found()
    return FileResponse(path, media_type=media_type)


def page_routes(web_root: str | Path) -> list:
    """Home page, chat page, root images, favicon and ``/assets``."""
    root = Path(web_root)
    assets_dir = root / "assets"

    async def home(request: Request) -> Response:
        del request
        return _serve_file(root / "index.html", "text/html")

    async def chat(request: Request) -> Response:
        del request
        return _serve_file(root / "chat-sdk.html", "text/html")

    async def image(request: Request) -> Response:
        image_id = request.path_params.get("image_id")
        filename = "image.png" if image_id is None else f"image_{image_id}.png"
        return _serve_file(root / filename, "image/png")

    async def favicon(request: Request) -> Response:
        del request
        return _serve_file(assets_dir / "coze.png", "image/png")

    routes: list = [
        Route("/", home, methods=["GET"]),
        Route("/chat", chat, methods=["GET"]),
        Route("/image.png", image, methods=["GET"]),
        Route("/image_{image_id:int}.png", image, methods=["GET"]),
        Route("/favicon.ico", favicon, methods=["GET"]),
    ]
    if assets_dir.is_dir():
        routes.append(Mount("/assets", app=StaticFiles(directory=assets_dir), name="assets"))
    else:
        LOGGER.warning("Assets directory %s not found; /assets is disabled.", assets_dir)
    return routes

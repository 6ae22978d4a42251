"""Browser-to-desktop deep link pages."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from api.dependencies import get_settings
from api.helpers import render_redirect_page
from core.config import Settings

router = APIRouter(prefix="/desktop", tags=["desktop"])


@router.get("/{path:path}", response_class=HTMLResponse)
async def open_in_desktop(
    path: str,
    request: Request,
    settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    """
    Open `{scheme}://{path}` in the desktop app.

    Shared links (e.g. to a profile) point here so they work from any browser.
    The query string is passed through unchanged.
    """
    url = f"{settings.desktop_scheme}://{quote(path, safe='/')}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return HTMLResponse(
        render_redirect_page(url, title="Opening app", message="Opening the app..."),
    )

"""API helper utilities."""
from api.helpers.redirect_page import render_redirect_page
from api.helpers.upload import read_upload_body

__all__ = [
    "read_upload_body",
    "render_redirect_page",
]

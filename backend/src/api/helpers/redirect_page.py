"""HTML pages that hand a browser over to the desktop app's URL scheme."""
from jinja2 import Environment, StrictUndefined

# Autoescaping covers every substituted value, including the URL attributes
_jinja_env = Environment(undefined=StrictUndefined, autoescape=True)

_PAGE_TEMPLATE = _jinja_env.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta http-equiv="refresh" content="0; url={{ url }}">
<title>{{ title }}</title>
</head>
<body>
<p>{{ message }}</p>
<p><a href="{{ url }}">Open the app</a> if it did not open automatically.</p>
</body>
</html>
""",
)


def render_redirect_page(url: str, title: str, message: str) -> str:
    """
    Render a page that immediately navigates to url.

    A plain 3xx to a custom scheme is dropped by several browsers, so the hand-off
    goes through a meta refresh with a clickable fallback link.
    """
    return _PAGE_TEMPLATE.render(url=url, title=title, message=message)

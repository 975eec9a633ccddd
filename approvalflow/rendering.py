"""HTML confirmation pages shown to the approver after a callback."""

from __future__ import annotations

from html import escape
from typing import Optional

_STYLE = (
    "body { font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; "
    "padding: 20px; }"
    ".card { border-radius: 8px; padding: 30px; text-align: center; }"
    ".success { background-color: #d4edda; border: 1px solid #c3e6cb; color: #155724; }"
    ".error { background-color: #f8d7da; border: 1px solid #f5c6cb; color: #721c24; }"
    ".info { margin-top: 20px; font-size: 14px; color: #666; }"
)


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head>"
        f"<title>{escape(title)}</title>"
        f"<style>{_STYLE}</style>"
        f"</head><body>{body}</body></html>"
    )


def render_success_page(
    title: str, message: str, suspension_duration: Optional[str] = None
) -> str:
    info = ""
    if suspension_duration:
        info = (
            "<p class='info'>Workflow was suspended for: "
            f"<strong>{escape(suspension_duration)}</strong></p>"
        )
    body = (
        "<div class='card success'>"
        f"<h1>&#10003; {escape(title)}</h1>"
        f"<p>{escape(message)}</p>"
        f"{info}"
        "</div>"
    )
    return _page(title, body)


def render_error_page(message: str) -> str:
    body = (
        "<div class='card error'>"
        "<h1>&#10007; Error</h1>"
        f"<p>{escape(message)}</p>"
        "</div>"
    )
    return _page("Error", body)

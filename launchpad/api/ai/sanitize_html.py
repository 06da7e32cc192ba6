"""
sanitize_html.py
================

Strips or whitelists HTML in user- and AI-authored text before it is stored
or rendered. AI replies are markdown; ``render_markdown`` converts them with
**markdown** and then passes the result through **bleach**.

Public API
----------
sanitize_html(text: str) -> str
render_markdown(text: str) -> str
cleanse_json(value: Any) -> Any   # recursively sanitises str leaves
"""

from __future__ import annotations

import logging
from typing import Any

import bleach
import markdown

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Configuration – the formatting subset chat bubbles can show
# --------------------------------------------------------------------------- #

ALLOWED_TAGS = [
    "b",
    "i",
    "strong",
    "em",
    "u",
    "br",
    "p",
    "ul",
    "ol",
    "li",
    "span",
    "a",
    "code",
    "pre",
    "blockquote",
    "h3",
    "h4",
]
ALLOWED_ATTRIBUTES: dict[str, list[str]] = {
    "a": ["href", "title", "target", "rel"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]


def sanitize_html(text: str) -> str:
    """
    Return a sanitised HTML fragment safe for insertion into the DOM.

    Disallowed tags and attributes are stripped, which also removes any
    ``<script>`` element or event-handler attribute.
    """
    return bleach.clean(
        text,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )


def render_markdown(text: str) -> str:
    """Markdown (as written by the AI investor) to safe HTML."""
    if not text:
        return ""
    return sanitize_html(markdown.markdown(text))


def cleanse_json(value: Any) -> Any:
    """
    Walk a nested dict / list and sanitise every string leaf::

        safe_dict = cleanse_json(raw_json_dict)
    """
    if isinstance(value, str):
        return sanitize_html(value)
    if isinstance(value, list):
        return [cleanse_json(v) for v in value]
    if isinstance(value, dict):
        return {k: cleanse_json(v) for k, v in value.items()}
    return value

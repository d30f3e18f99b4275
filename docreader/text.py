"""Plain-text extraction and word tokenization for RSVP."""

from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup, Comment

WHITESPACE_RE = re.compile(r"\s+")

HTML_MARKERS = ("<head>", "<body>", "<title>", "<meta ", "<!doctype ")


def normalize_whitespace(text: str) -> str:
    if not text:
        return ""
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_html_for_reading(markup: str) -> str:
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    return normalize_whitespace(soup.get_text(separator=" "))


def tokenize_words(text: str) -> List[str]:
    return [w for w in WHITESPACE_RE.split(text or "") if w.strip()]


def looks_like_html(head: str) -> bool:
    if len(head) <= 50:
        return False
    start = head.strip().lower()
    return start.startswith("<!doctype html") or start.startswith("<html") or any(
        marker in start for marker in HTML_MARKERS
    )

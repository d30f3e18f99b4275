"""Reading documents from local storage and preparing them for the surface.

Everything here does blocking file I/O; the session runs it through
``asyncio.to_thread`` and only touches view state with the result.
"""

from __future__ import annotations

import enum
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import BinaryIO, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from .errors import ContentUnreadable, DecodeFailed, PermissionDenied
from .mht import decode_mht
from .text import clean_html_for_reading, looks_like_html, normalize_whitespace

logger = logging.getLogger(__name__)

SNIFF_BYTES = 1024
MHT_EXTENSIONS = (".mht", ".mhtml")


class ContentKind(str, enum.Enum):
    HTML = "html"
    TEXT = "text"


@dataclass(frozen=True)
class LoadedContent:
    kind: ContentKind
    body: str
    base_dir: Optional[str] = None
    is_mht: bool = False
    failed: bool = False


def resolve_path(identity: str) -> str:
    if identity.startswith("file:"):
        return url2pathname(urlparse(identity).path)
    return os.path.expanduser(identity)


def display_name_for(identity: str) -> str:
    return os.path.basename(resolve_path(identity)) or identity


class FileContentSource:
    """Documents the user picked from the local filesystem."""

    def open_stream(self, identity: str) -> BinaryIO:
        path = resolve_path(identity)
        try:
            return open(path, "rb")
        except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
            raise PermissionDenied(f"Cannot open {path}: {e.strerror or e}") from e
        except OSError as e:
            raise ContentUnreadable(f"Cannot open {path}: {e}") from e

    def read_bytes(self, identity: str) -> bytes:
        with self.open_stream(identity) as stream:
            try:
                return stream.read()
            except OSError as e:
                raise ContentUnreadable(f"Error reading file: {e}") from e

    def read_text(self, identity: str) -> str:
        return self.read_bytes(identity).decode("utf-8", errors="replace")


def is_html_source(identity: str, raw: bytes) -> bool:
    name = os.path.basename(resolve_path(identity)).lower()
    if ".htm" in name:
        return True
    mime, _ = mimetypes.guess_type(name)
    if mime and mime.startswith("text/html"):
        return True
    return looks_like_html(raw[:SNIFF_BYTES].decode("utf-8", errors="ignore"))


def is_mht_source(identity: str) -> bool:
    return resolve_path(identity).lower().endswith(MHT_EXTENSIONS)


def load_content(source: FileContentSource, identity: str) -> LoadedContent:
    """Load a document for display. PermissionDenied propagates; read errors degrade."""
    base_dir = os.path.dirname(resolve_path(identity)) or None
    try:
        raw = source.read_bytes(identity)
    except ContentUnreadable as e:
        logger.error("Text fallback error for %s", identity, exc_info=True)
        return LoadedContent(ContentKind.TEXT, f"Error reading file: {e}", base_dir, failed=True)

    if is_mht_source(identity):
        try:
            markup = decode_mht(raw)
        except DecodeFailed as e:
            logger.warning("MHT decode failed for %s: %s", identity, e)
            text = raw.decode("utf-8", errors="replace")
            return LoadedContent(
                ContentKind.TEXT,
                f"Failed to decode archive: {e}\n\nRaw content:\n{text}",
                base_dir,
                failed=True,
            )
        return LoadedContent(ContentKind.HTML, markup, base_dir, is_mht=True)

    text = raw.decode("utf-8", errors="replace")
    if is_html_source(identity, raw):
        return LoadedContent(ContentKind.HTML, text, base_dir)
    return LoadedContent(ContentKind.TEXT, text, base_dir)


def render_failure_content(source: FileContentSource, identity: str, description: str) -> LoadedContent:
    """What to show when the surface could not render the document."""
    base_dir = os.path.dirname(resolve_path(identity)) or None
    try:
        raw = source.read_text(identity)
    except (PermissionDenied, ContentUnreadable) as e:
        raw = f"Error reading file: {e}"
    body = f"Failed to load: {description or 'Unknown'}\n\nRaw content:\n{raw}"
    return LoadedContent(ContentKind.TEXT, body, base_dir, failed=True)


def reading_text(source: FileContentSource, identity: str, content: LoadedContent) -> str:
    """Plain text of what is on screen, for tokenizing.

    Rendered HTML is not scraped; the underlying source is re-read and stripped.
    A failed load shows raw source, so that is re-read and stripped as well.
    """
    if content.kind is ContentKind.TEXT and not content.failed:
        return normalize_whitespace(content.body)

    try:
        raw = source.read_bytes(identity)
    except (PermissionDenied, ContentUnreadable) as e:
        logger.warning("Re-reading source for %s failed (%s); using loaded body", identity, e)
        return _strip_if_markup(content.body, content.kind is ContentKind.HTML)

    if content.is_mht or is_mht_source(identity):
        try:
            return clean_html_for_reading(decode_mht(raw))
        except DecodeFailed as e:
            logger.warning("MHT decode failed for %s while extracting text: %s", identity, e)

    text = raw.decode("utf-8", errors="replace")
    return _strip_if_markup(text, content.kind is ContentKind.HTML or is_html_source(identity, raw))


def _strip_if_markup(text: str, is_html: bool) -> str:
    if is_html or looks_like_html(text[:SNIFF_BYTES]):
        return clean_html_for_reading(text)
    return normalize_whitespace(text)

"""MHT/MHTML archives: pull the HTML document out of the MIME envelope."""

from __future__ import annotations

import email
from email import policy

from .errors import DecodeFailed


def decode_mht(raw: bytes) -> str:
    """Return the first text/html part, with transfer encoding and charset undone."""
    try:
        message = email.message_from_bytes(raw, policy=policy.default)
    except Exception as e:  # the parser is lenient, but malformed headers can still raise
        raise DecodeFailed(f"Not a MIME archive: {e}") from e

    for part in message.walk():
        if part.is_multipart() or part.get_content_type() != "text/html":
            continue
        try:
            return part.get_content()
        except (LookupError, UnicodeDecodeError):
            payload = part.get_payload(decode=True) or b""
            return payload.decode("utf-8", errors="replace")

    raise DecodeFailed("No text/html part found in archive")

"""Base64 and data-URI helpers for image artifacts."""

from __future__ import annotations

import base64
import binascii
import re

__all__ = ["b64_decode", "b64_encode", "data_uri", "split_data_uri"]

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def b64_encode(image: bytes) -> str:
    return base64.b64encode(image).decode("ascii")


def b64_decode(text: str) -> bytes:
    """Decode standard base64, raising ``ValueError`` on malformed input."""

    try:
        return base64.b64decode(text.strip(), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc


def data_uri(image: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{b64_encode(image)}"


def split_data_uri(text: str, default_mime: str) -> tuple[bytes, str]:
    """Return ``(image, mime_type)`` for a data URI or a bare base64 string."""

    match = _DATA_URI.match(text.strip())
    if match is None:
        return b64_decode(text), default_mime
    return b64_decode(match.group("data")), match.group("mime")

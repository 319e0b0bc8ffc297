from __future__ import annotations

import base64
import binascii
import re

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?);base64,(?P<payload>.*)$", re.DOTALL)


def decode_data_url(value: str) -> tuple[str, bytes]:
    """
    Accepts `data:<mime>;base64,<payload>` or a bare base64 string (treated as PNG).
    Raises ValueError when the input cannot be decoded.
    """
    s = (value or "").strip()
    if not s:
        raise ValueError("empty image data")

    if s.startswith("data:"):
        m = _DATA_URL_RE.match(s)
        if not m:
            raise ValueError("malformed data URL")
        mime = m.group("mime") or "application/octet-stream"
        payload = m.group("payload")
    else:
        mime = "image/png"
        payload = s

    try:
        data = base64.b64decode(re.sub(r"\s+", "", payload), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc
    if not data:
        raise ValueError("empty image data")
    return mime, data


def encode_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

"""Screenshot encoding helpers."""

from __future__ import annotations

import base64


def encode_png_base64(data: bytes) -> str:
    """Encode PNG bytes to base64 string."""

    return base64.b64encode(data).decode("utf-8")


def png_data_url(data: bytes) -> str:
    return f"data:image/png;base64,{encode_png_base64(data)}"

"""Vector-to-bitmap conversion for images the image model cannot ingest."""

import io
import re
import xml.etree.ElementTree as ET
from typing import Tuple

from PIL import Image

SVG_MIME = "image/svg+xml"
FALLBACK_SIZE = (1024, 1024)

_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


def _parse_length(value: str | None) -> float | None:
    # Percentages and physical units (mm, em, ...) do not give a pixel size
    if not value:
        return None
    match = _LENGTH_RE.match(value)
    return float(match.group(1)) if match else None


def natural_size(svg: bytes) -> Tuple[int, int]:
    """Return the pixel size an SVG declares, or ``FALLBACK_SIZE``.

    ``width``/``height`` attributes win; otherwise the ``viewBox`` extent is
    used.
    """
    try:
        root = ET.fromstring(svg)
    except ET.ParseError:
        return FALLBACK_SIZE

    width = _parse_length(root.get("width"))
    height = _parse_length(root.get("height"))
    if width and height:
        return round(width), round(height)

    view_box = (root.get("viewBox") or "").replace(",", " ").split()
    if len(view_box) == 4:
        try:
            vb_width, vb_height = float(view_box[2]), float(view_box[3])
        except ValueError:
            return FALLBACK_SIZE
        if vb_width > 0 and vb_height > 0:
            return round(vb_width), round(vb_height)

    return FALLBACK_SIZE


def svg_to_png(svg: bytes) -> bytes:
    """Rasterise *svg* at its natural size onto an opaque white canvas."""
    import cairosvg  # needs the system cairo library, so imported on demand

    width, height = natural_size(svg)
    rendered = cairosvg.svg2png(bytestring=svg, output_width=width, output_height=height)

    with Image.open(io.BytesIO(rendered)) as layer:
        layer = layer.convert("RGBA")
        canvas = Image.new("RGB", layer.size, (255, 255, 255))
        canvas.paste(layer, mask=layer.getchannel("A"))

    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()


def sniff_mime(content: bytes, declared: str) -> str:
    """Return the media type of *content*, trusting *declared* only for images."""
    if declared.startswith("image/"):
        return declared
    head = content[:512].lstrip()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
        return SVG_MIME
    try:
        with Image.open(io.BytesIO(content)) as img:
            return Image.MIME.get(img.format or "", declared)
    except (OSError, ValueError):
        return declared

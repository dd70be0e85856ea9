"""
reimburse_engines.signature -- Stroke-to-image signature capture.

Responsibility:
    Rasterize pointer/touch strokes (polylines of canvas coordinates) into
    one opaque image artifact.  The artifact is a monochrome PNG, black
    ink on white, sized like the signing canvas.

Architecture position:
    Engines -- pure calculation, zero I/O (encoding happens in memory).
    Implements the ``SignatureCapture`` protocol from
    ``reimburse_kernel.domain``.

Invariants enforced:
    - Deterministic: identical strokes produce identical bytes.
    - Points outside the canvas are clipped, never wrapped.
"""

from __future__ import annotations

import io
from collections.abc import Sequence

from PIL import Image, ImageDraw

from reimburse_kernel.domain.collaborators import Point, Stroke
from reimburse_kernel.exceptions import ValidationError

CANVAS_WIDTH = 300
CANVAS_HEIGHT = 120

# 1-bit mode: 0 is ink, 1 is paper.
INK = 0
PAPER = 1


class StrokeRasterizer:
    """Draws strokes onto a monochrome canvas and encodes it as PNG."""

    def __init__(
        self,
        width: int = CANVAS_WIDTH,
        height: int = CANVAS_HEIGHT,
        line_width: int = 2,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Canvas dimensions must be positive")
        self.width = width
        self.height = height
        self.line_width = max(1, line_width)

    def capture(self, strokes: Sequence[Stroke]) -> bytes:
        """Rasterize ``strokes``; a stroke with one point draws a dot.

        Raises:
            ValidationError: no stroke contains a point.
        """
        if not any(len(s) for s in strokes):
            raise ValidationError("Signature has no strokes")

        image = Image.new("1", (self.width, self.height), PAPER)
        draw = ImageDraw.Draw(image)
        for stroke in strokes:
            points = [self._to_pixel(p) for p in stroke]
            if len(points) == 1:
                self._dot(draw, *points[0])
            elif points:
                draw.line(points, fill=INK, width=self.line_width)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def _to_pixel(self, point: Point) -> tuple[int, int]:
        x, y = point
        return round(float(x)), round(float(y))

    def _dot(self, draw: ImageDraw.ImageDraw, x: int, y: int) -> None:
        half = self.line_width // 2
        left, top = x - half, y - half
        draw.rectangle(
            (left, top, left + self.line_width - 1, top + self.line_width - 1),
            fill=INK,
        )

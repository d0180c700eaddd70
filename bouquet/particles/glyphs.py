# bouquet/particles/glyphs.py
import logging
import math
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import requests
from PySide6.QtCore import QByteArray, QObject, Signal
from PySide6.QtGui import QColor, QFont, QFontDatabase, QImage, QPainter, QPainterPath

from .formations import sample_surface

logger = logging.getLogger(__name__)

DEFAULT_FAMILY = "Helvetica"
GLYPH_PIXEL_SIZE = 64

# World units: em height and extrusion depth of the text
TEXT_SIZE = 3.0
TEXT_DEPTH = 0.4

DOWNLOAD_TIMEOUT = 10.0


class FontLoadError(RuntimeError):
    """The font could not be fetched, registered or turned into outlines."""


def fetch_font_data(source: str, timeout: float = DOWNLOAD_TIMEOUT) -> bytes:
    """Raw font bytes from an http(s) URL or a local file."""
    if source.startswith(("http://", "https://")):
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FontLoadError(f"Could not download font {source}: {e}") from e
        return response.content

    try:
        return Path(source).read_bytes()
    except OSError as e:
        raise FontLoadError(f"Could not read font {source}: {e}") from e


class FontLoader(QObject):
    """
    Owns the font used for text formations.

    `load()` is blocking. `load_async()` fetches the bytes on a worker thread
    and registers the font back on the GUI thread, then emits `loaded(QFont)`
    or `failed(str)`. The font is loaded once and cached on the instance.
    """

    loaded = Signal(object)
    failed = Signal(str)
    _fetched = Signal(object, str)

    def __init__(self, source: Optional[str] = None, family: str = DEFAULT_FAMILY, parent=None):
        super().__init__(parent)
        self.source = source
        self.family = family
        self.font: Optional[QFont] = None
        self._font_id = -1
        self._fetched.connect(self._on_fetched)

    def load(self) -> QFont:
        if self.font is not None:
            return self.font
        data = fetch_font_data(self.source) if self.source else None
        return self._register(data)

    def load_async(self):
        if self.font is not None or not self.source:
            self._finish(None, "")
            return
        threading.Thread(target=self._fetch_in_background, name="font-loader", daemon=True).start()

    def dispose(self):
        if self._font_id != -1:
            QFontDatabase.removeApplicationFont(self._font_id)
            self._font_id = -1
        self.font = None

    def _fetch_in_background(self):
        try:
            data = fetch_font_data(self.source)
        except FontLoadError as e:
            self._fetched.emit(None, str(e))
        else:
            self._fetched.emit(data, "")

    def _on_fetched(self, data, error: str):
        self._finish(data, error)

    def _finish(self, data, error: str):
        if error:
            self.failed.emit(error)
            return
        try:
            font = self.font if self.font is not None else self._register(data)
        except FontLoadError as e:
            self.failed.emit(str(e))
        else:
            self.loaded.emit(font)

    def _register(self, data: Optional[bytes]) -> QFont:
        if data is None:
            font = QFont(self.family)
        else:
            font_id = QFontDatabase.addApplicationFontFromData(QByteArray(data))
            if font_id == -1:
                raise FontLoadError(f"Unsupported font data from {self.source}")
            families = QFontDatabase.applicationFontFamilies(font_id)
            if not families:
                QFontDatabase.removeApplicationFont(font_id)
                raise FontLoadError(f"Font {self.source} has no families")
            self._font_id = font_id
            font = QFont(families[0])

        font.setBold(True)
        font.setPixelSize(GLYPH_PIXEL_SIZE)
        self.font = font
        logger.info("Font loaded: %s", font.family())
        return font


def text_path(text: str, font: QFont) -> QPainterPath:
    path = QPainterPath()
    path.addText(0, 0, font, text)
    return path


def rasterise_path(path: QPainterPath) -> Tuple[np.ndarray, Tuple[float, float]]:
    """
    Boolean (rows, cols) coverage mask of a filled path, one cell per path
    unit, plus the offset that moves path coordinates onto the mask grid.
    """
    rect = path.boundingRect()
    if rect.isEmpty():
        raise FontLoadError("Path has no outline")

    width = math.ceil(rect.width()) + 2
    height = math.ceil(rect.height()) + 2
    offset = (1 - rect.left(), 1 - rect.top())
    image = QImage(width, height, QImage.Format.Format_Grayscale8)
    image.fill(0)

    painter = QPainter(image)
    painter.setRenderHint(QPainter.Antialiasing)
    painter.translate(*offset)
    painter.fillPath(path, QColor(255, 255, 255))
    painter.end()

    pixels = np.frombuffer(image.constBits(), dtype=np.uint8)
    pixels = pixels.reshape(height, image.bytesPerLine())[:, :width]
    return pixels > 127, offset


def path_outline(path: QPainterPath, offset: Tuple[float, float] = (0.0, 0.0)) -> List[np.ndarray]:
    """Closed outlines of every subpath (curves flattened), shifted by `offset`, each (n, 2)."""
    outlines = []
    for polygon in path.toSubpathPolygons():
        points = np.array([(polygon[i].x(), polygon[i].y()) for i in range(polygon.size())], dtype=float)
        if len(points) >= 3:
            outlines.append(points + offset)
    return outlines


def _quads(p0, p1, p2, p3) -> np.ndarray:
    """Split (n, 3) quad corners into (2n, 3, 3) triangles."""
    first = np.stack([p0, p1, p2], axis=1)
    second = np.stack([p0, p2, p3], axis=1)
    return np.concatenate([first, second])


def _outline_walls(outlines: Sequence[np.ndarray], cell: float, depth: float) -> List[np.ndarray]:
    walls = []
    for points in outlines:
        if not np.allclose(points[0], points[-1]):
            points = np.vstack([points, points[:1]])
        a, b = points[:-1], points[1:]
        keep = np.any(a != b, axis=1)
        a, b = a[keep] * cell, b[keep] * cell
        if len(a) == 0:
            continue
        f = np.full(len(a), depth / 2)

        def corner(p, z):
            return np.stack([p[:, 0], -p[:, 1], z], axis=1)

        walls.append(_quads(corner(a, f), corner(b, f), corner(b, -f), corner(a, -f)))
    return walls


def extrude_mask(
    mask: np.ndarray,
    cell: float,
    depth: float,
    outlines: Optional[Sequence[np.ndarray]] = None,
) -> np.ndarray:
    """
    Triangulated solid built from a coverage mask: every covered cell gives a
    front and a back square. Side walls follow `outlines` (polylines in mask
    grid units, x right, y down) when given; otherwise each cell gets a wall
    where its neighbour cell is empty. The result is centred on its bounding
    box.
    """
    mask = np.asarray(mask, dtype=bool)
    rows, cols = np.nonzero(mask)
    if len(rows) == 0:
        raise ValueError("Mask is empty")

    n = len(rows)
    x0 = cols * cell
    x1 = x0 + cell
    y0 = -rows * cell
    y1 = y0 - cell
    zf = np.full(n, depth / 2)
    zb = -zf

    def corner(x, y, z):
        return np.stack([x, y, z], axis=1)

    parts = [
        _quads(corner(x0, y0, zf), corner(x1, y0, zf), corner(x1, y1, zf), corner(x0, y1, zf)),
        _quads(corner(x0, y0, zb), corner(x0, y1, zb), corner(x1, y1, zb), corner(x1, y0, zb)),
    ]

    if outlines is not None:
        parts.extend(_outline_walls(outlines, cell, depth))
    else:
        padded = np.pad(mask, 1)
        walls = {
            "left": ~padded[rows + 1, cols],
            "right": ~padded[rows + 1, cols + 2],
            "top": ~padded[rows, cols + 1],
            "bottom": ~padded[rows + 2, cols + 1],
        }
        for side, open_ in walls.items():
            if not open_.any():
                continue
            a0, a1, b0, b1 = x0[open_], x1[open_], y0[open_], y1[open_]
            f, b = zf[open_], zb[open_]
            if side == "left":
                parts.append(_quads(corner(a0, b0, f), corner(a0, b1, f), corner(a0, b1, b), corner(a0, b0, b)))
            elif side == "right":
                parts.append(_quads(corner(a1, b0, f), corner(a1, b1, f), corner(a1, b1, b), corner(a1, b0, b)))
            elif side == "top":
                parts.append(_quads(corner(a0, b0, f), corner(a1, b0, f), corner(a1, b0, b), corner(a0, b0, b)))
            else:
                parts.append(_quads(corner(a0, b1, f), corner(a1, b1, f), corner(a1, b1, b), corner(a0, b1, b)))

    triangles = np.concatenate(parts)
    vertices = triangles.reshape(-1, 3)
    center = (vertices.min(axis=0) + vertices.max(axis=0)) / 2
    return triangles - center


def build_text_mesh(text: str, font: QFont, size: float = TEXT_SIZE, depth: float = TEXT_DEPTH) -> np.ndarray:
    """Extruded text: faces from the rasterised glyphs, walls along the vector outline."""
    path = text_path(text, font)
    try:
        mask, offset = rasterise_path(path)
    except FontLoadError as e:
        raise FontLoadError(f"Font {font.family()!r} produced no outline for {text!r}") from e

    pixel_size = font.pixelSize() if font.pixelSize() > 0 else GLYPH_PIXEL_SIZE
    # Outlines too degenerate to trace fall back to walls around the mask cells
    outlines = path_outline(path, offset) or None
    return extrude_mask(mask, size / pixel_size, depth, outlines)


def text_positions(
    text: str,
    font: QFont,
    count: int,
    size: float = TEXT_SIZE,
    depth: float = TEXT_DEPTH,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Points spread over the surface of the extruded text."""
    return sample_surface(build_text_mesh(text, font, size, depth), count, rng)

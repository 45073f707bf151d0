"""Geometry and pixel data model shared by the detectors and analyzers.

Two coordinate spaces are in play:

* **pixel space** – integer positions inside a :class:`PixelBuffer`.
* **layer space** – the page layer the caller draws on (PDF points when the
  page comes from PyMuPDF).

:class:`TableBox` is used in both; :class:`RectBounds` and :class:`Anchor`
always live in layer space.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

import numpy as np

logger = logging.getLogger(__name__)

_CHANNELS = 4

# Brightness (0–255) below which a pixel counts as dark.
DARK_THRESHOLD = 180


class RegionKind(Enum):
    """What kind of visual structure a label refers to."""

    TABLE = "table"
    FIGURE = "figure"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: "str | RegionKind") -> "RegionKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown region kind '{value}'; expected one of "
                f"{', '.join(k.value for k in cls)}"
            ) from None


@dataclass(frozen=True)
class PixelBuffer:
    """An immutable RGBA raster.

    ``data`` has shape ``(height, width, 4)`` and dtype ``uint8``.  Use the
    ``from_*`` constructors rather than building one directly; they validate
    the sample count against the declared dimensions.
    """

    width: int
    height: int
    data: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        expected = (self.height, self.width, _CHANNELS)
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Pixel buffer dimensions must be non-negative, got {self.width}x{self.height}"
            )
        if self.data.shape != expected:
            raise ValueError(
                f"Pixel buffer shape {self.data.shape} does not match declared "
                f"{self.width}x{self.height} RGBA ({expected})"
            )
        # Own a private read-only copy; the caller keeps a writable array.
        data = np.array(self.data, dtype=np.uint8, copy=True)
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_rgba(
        cls,
        samples: "bytes | bytearray | Sequence[int] | np.ndarray",
        width: int,
        height: int,
    ) -> "PixelBuffer":
        """Build a buffer from flat (or already shaped) RGBA samples.

        Raises
        ------
        ValueError
            If the number of samples is not ``width * height * 4``.
        """
        if isinstance(samples, (bytes, bytearray, memoryview)):
            arr = np.frombuffer(bytes(samples), dtype=np.uint8)
        else:
            arr = np.asarray(samples)
        expected = width * height * _CHANNELS
        if arr.size != expected:
            raise ValueError(
                f"Pixel buffer declares {width}x{height} RGBA ({expected} samples) "
                f"but {arr.size} samples were supplied"
            )
        arr = np.clip(arr, 0, 255).astype(np.uint8)
        return cls(width=width, height=height, data=arr.reshape(height, width, _CHANNELS))

    @classmethod
    def from_image(cls, img: Any) -> "PixelBuffer":
        """Build a buffer from a Pillow image (any mode)."""
        rgba = img.convert("RGBA")
        arr = np.asarray(rgba, dtype=np.uint8)
        return cls(width=rgba.width, height=rgba.height, data=arr)

    @classmethod
    def from_pixmap(cls, pix: Any) -> "PixelBuffer":
        """Build a buffer from a ``fitz.Pixmap``.

        Pixmaps without an alpha channel get an opaque one.
        """
        n = pix.n
        arr = np.frombuffer(pix.samples, dtype=np.uint8)
        stride = pix.stride
        arr = arr.reshape(pix.height, stride)[:, : pix.width * n]
        arr = arr.reshape(pix.height, pix.width, n)
        if n == _CHANNELS:
            rgba = arr
        elif n == 3:
            alpha = np.full((pix.height, pix.width, 1), 255, dtype=np.uint8)
            rgba = np.concatenate([arr, alpha], axis=2)
        elif n == 1:
            rgba = np.repeat(arr, 3, axis=2)
            alpha = np.full((pix.height, pix.width, 1), 255, dtype=np.uint8)
            rgba = np.concatenate([rgba, alpha], axis=2)
        else:
            raise ValueError(f"Unsupported pixmap with {n} components")
        return cls(width=pix.width, height=pix.height, data=rgba)

    # ------------------------------------------------------------------
    # Pixel queries
    # ------------------------------------------------------------------

    def brightness(self) -> np.ndarray:
        """Mean of R, G and B per pixel; alpha is ignored."""
        return self.data[:, :, :3].astype(np.float32).mean(axis=2)

    def dark_mask(self, threshold: float) -> np.ndarray:
        """Boolean ``(height, width)`` mask of pixels darker than *threshold*."""
        return self.brightness() < threshold

    def crop(self, rect: "PixelRect") -> "PixelBuffer":
        """Return the sub-buffer covered by *rect* (clamped to the buffer)."""
        x0 = max(0, min(self.width, rect.x0))
        x1 = max(x0, min(self.width, rect.x1))
        y0 = max(0, min(self.height, rect.y0))
        y1 = max(y0, min(self.height, rect.y1))
        return PixelBuffer(width=x1 - x0, height=y1 - y0, data=self.data[y0:y1, x0:x1])


@dataclass(frozen=True)
class PixelRect:
    """Half-open integer window ``[x0, x1) × [y0, y1)`` inside a buffer."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class TableBox:
    """``{left, top, right, bottom}`` with ``right > left`` and ``bottom > top``.

    Build instances through :meth:`checked` so a degenerate box turns into
    ``None`` at the production site.
    """

    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def checked(
        cls, left: float, top: float, right: float, bottom: float
    ) -> "TableBox | None":
        if right > left and bottom > top:
            return cls(left, top, right, bottom)
        logger.debug(
            "Rejected degenerate box (%.1f, %.1f, %.1f, %.1f)", left, top, right, bottom
        )
        return None

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def translate(self, dx: float, dy: float) -> "TableBox":
        return TableBox(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)


@dataclass(frozen=True)
class RectBounds:
    """Final result in layer coordinates."""

    left: float
    top: float
    width: float
    height: float

    @classmethod
    def from_box(cls, box: TableBox) -> "RectBounds":
        return cls(
            left=box.left,
            top=box.top,
            width=max(0.0, box.right - box.left),
            height=max(0.0, box.bottom - box.top),
        )

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def to_dict(self) -> dict[str, float]:
        return {
            "left": round(self.left, 2),
            "top": round(self.top, 2),
            "width": round(self.width, 2),
            "height": round(self.height, 2),
        }


@dataclass(frozen=True)
class Anchor:
    """Layer-space box of the label that seeded the search."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class TextNode:
    """A positioned run of text from the page's text layer."""

    text: str
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass
class LineSet:
    """Detected ruling lines: row indices and column indices, ascending."""

    horizontal: list[int] = field(default_factory=list)
    vertical: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.horizontal and not self.vertical


@dataclass(frozen=True)
class ColumnRegion:
    """Contiguous run of active columns (or rows) in the density fallback."""

    start: int
    end: int
    density: float

    @property
    def length(self) -> int:
        return self.end - self.start + 1


"""
Region model for capture segmentation.

Bounds are in source-image pixel coordinates with a top-left origin.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RegionKind(Enum):
    """What a segmented region holds."""

    PHOTO = "photo"
    TEXT = "text"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def intersect(self, other: "Rect") -> Optional["Rect"]:
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Rect(left, top, right - left, bottom - top)

    def union(self, other: "Rect") -> "Rect":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        right = max(self.right, other.right)
        bottom = max(self.bottom, other.bottom)
        return Rect(left, top, right - left, bottom - top)

    def pad(self, margin: int, max_width: int, max_height: int) -> "Rect":
        """Grow by margin on every side, clamped to the image."""
        left = max(0, self.x - margin)
        top = max(0, self.y - margin)
        right = min(max_width, self.right + margin)
        bottom = min(max_height, self.bottom + margin)
        return Rect(left, top, max(1, right - left), max(1, bottom - top))

    def scaled(self, factor: float) -> "Rect":
        return Rect(
            int(round(self.x * factor)),
            int(round(self.y * factor)),
            int(round(self.width * factor)),
            int(round(self.height * factor)),
        )


@dataclass(frozen=True)
class Region:
    """A typed rectangle produced by one segmentation pass."""

    kind: RegionKind
    bounds: Rect

    @property
    def area(self) -> int:
        return self.bounds.area

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "x": self.bounds.x,
            "y": self.bounds.y,
            "width": self.bounds.width,
            "height": self.bounds.height,
        }

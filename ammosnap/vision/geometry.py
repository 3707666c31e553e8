"""Rectangles and anchored placement."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AnchorX(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class AnchorY(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class BoundingRect:
    """Axis-aligned rectangle.

    Coordinates may be negative for screen-space rects; rects used to crop an
    image must lie inside it (see :meth:`contains`).
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Negative rect size: {self.width}x{self.height}")

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center_x(self) -> int:
        return self.x + self.width // 2

    @property
    def center_y(self) -> int:
        return self.y + self.height // 2

    @property
    def area(self) -> int:
        return self.width * self.height

    def intersection(self, other: "BoundingRect") -> Optional["BoundingRect"]:
        """Overlapping region, or ``None`` when the overlap has no area."""

        x = max(self.left, other.left)
        y = max(self.top, other.top)
        x_overlap = min(self.right, other.right) - x
        y_overlap = min(self.bottom, other.bottom) - y
        if x_overlap > 0 and y_overlap > 0:
            return BoundingRect(x, y, x_overlap, y_overlap)
        return None

    def contains(self, other: "BoundingRect") -> bool:
        return (
            other.left >= self.left
            and other.top >= self.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def translate(self, dx: int, dy: int) -> "BoundingRect":
        return BoundingRect(self.x + dx, self.y + dy, self.width, self.height)

    @classmethod
    def anchored(
        cls,
        x: int,
        y: int,
        width: int,
        height: int,
        anchor_x: AnchorX = AnchorX.LEFT,
        anchor_y: AnchorY = AnchorY.TOP,
    ) -> "BoundingRect":
        """Rect of ``width`` x ``height`` whose anchor point sits at ``(x, y)``."""

        anchor_x = AnchorX(anchor_x)
        anchor_y = AnchorY(anchor_y)
        if anchor_x is AnchorX.CENTER:
            left = x - width // 2
        elif anchor_x is AnchorX.RIGHT:
            left = x - width
        else:
            left = x
        if anchor_y is AnchorY.CENTER:
            top = y - height // 2
        elif anchor_y is AnchorY.BOTTOM:
            top = y - height
        else:
            top = y
        return cls(left, top, width, height)


__all__ = ["AnchorX", "AnchorY", "BoundingRect"]

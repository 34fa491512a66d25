"""Geometry primitives for rectangle packing.

Coordinates are integer cells. A placement occupies every cell from its
``bottom_left`` up to and including its ``top_right`` corner.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class Point(BaseModel):
    """Integer cell coordinate."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0, description="Column of the cell")
    y: int = Field(ge=0, description="Row of the cell")

    def __init__(self, x: int, y: int, **data):
        super().__init__(x=x, y=y, **data)


class Rectangle(BaseModel):
    """Rectangle with positive integer dimensions."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0, description="Width in cells")
    height: int = Field(gt=0, description="Height in cells")

    _area: int = PrivateAttr(default=0)

    def __init__(self, width: int, height: int, **data):
        super().__init__(width=width, height=height, **data)

    def model_post_init(self, __context) -> None:
        self._area = self.width * self.height

    @property
    def area(self) -> int:
        return self._area

    def __str__(self) -> str:
        return f"{self.width} {self.height}"


class Rotation(str, Enum):
    """Orientation of a placed rectangle; values are the solution tokens."""

    NORMAL = "no"
    ROTATED = "yes"


class Placement(BaseModel):
    """A rectangle anchored at its bottom-left cell."""

    model_config = ConfigDict(frozen=True)

    rectangle: Rectangle
    rotation: Rotation = Rotation.NORMAL
    bottom_left: Point

    @property
    def extent(self) -> tuple[int, int]:
        """Width and height after rotation."""
        r = self.rectangle
        if self.rotation is Rotation.ROTATED:
            return r.height, r.width
        return r.width, r.height

    @property
    def top_right(self) -> Point:
        # Inclusive: the last occupied cell, not one past it.
        width, height = self.extent
        return Point(self.bottom_left.x + width - 1, self.bottom_left.y + height - 1)

    def bounds(self) -> tuple[int, int, int, int]:
        """(x1, y1, x2, y2) with inclusive upper corner."""
        width, height = self.extent
        x, y = self.bottom_left.x, self.bottom_left.y
        return x, y, x + width - 1, y + height - 1

    def overlaps(self, other: Placement) -> bool:
        return boxes_overlap(self.bounds(), other.bounds())


def boxes_overlap(a: tuple[int, int, int, int], b: tuple[int, int, int, int]) -> bool:
    """
    Closed-interval overlap test on both axes.

    a, b are bounds: (x1, y1, x2, y2), upper corner inclusive.

    Sharing a single cell counts as overlap. Rectangles that are merely
    adjacent (one ends at x, the other starts at x + 1) do not overlap.
    """
    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b

    return by1 <= ay2 and ay1 <= by2 and bx1 <= ax2 and ax1 <= bx2

from __future__ import annotations

from pydantic import BaseModel, Field

from packt.errors import BoundsExceededError, InvariantViolation, OverlapError
from packt.geometry import Rectangle
from packt.solution import Solution
from packt.validation import find_overlap


class Evaluation(BaseModel):
    """Quality metrics of a valid solution."""

    container: Rectangle = Field(description="Bounding box of the packing")
    min_area: int = Field(description="Sum of the input rectangle areas")
    empty_area: int = Field(description="Unused area inside the bounding box")
    filling_rate: float = Field(description="min_area / container area")
    duration: float = Field(default=0.0, ge=0, description="Solver wall-clock time in seconds")

    @property
    def duration_str(self) -> str:
        return format_duration(self.duration)

    def __str__(self) -> str:
        return (
            f"lower bound on area: {self.min_area}\n"
            f"bounding box: {self.container}, area: {self.container.area}\n"
            f"unused area in bounding box: {self.empty_area}\n"
            f"filling_rate: {self.filling_rate:.2f}\n"
            f"took {self.duration_str}s"
        )


def format_duration(seconds: float) -> str:
    """Render seconds as ``<s>.<ms>``."""
    millis = int(round(seconds * 1000))
    return f"{millis // 1000}.{millis % 1000:03d}"


def bounding_box(solution: Solution) -> Rectangle:
    """
    Tight bounding box of the placements, or ``width x h`` for a problem
    with fixed height h.
    """
    x, y = 0, 0
    for p in solution.placements:
        tr = p.top_right
        x = max(x, tr.x)
        y = max(y, tr.y)

    # top_right is inclusive
    width, height = x + 1, y + 1

    variant = solution.problem.variant if solution.problem is not None else solution.variant
    if variant.is_fixed:
        if height > variant.height:
            raise BoundsExceededError(height, variant.height)
        height = variant.height
    return Rectangle(width, height)


def evaluate(solution: Solution, duration: float = 0.0) -> Evaluation:
    """
    Validate a solution and compute its metrics.

    Raises OverlapError, BoundsExceededError, or InvariantViolation when the
    filling rate exceeds 1.0 although no overlap was detected.
    """
    pair = find_overlap(solution.placements)
    if pair is not None:
        raise OverlapError(*pair)

    container = bounding_box(solution)

    # Areas of the input rectangles, not of the placements.
    rectangles = (
        solution.problem.rectangles
        if solution.problem is not None
        else [p.rectangle for p in solution.placements]
    )
    min_area = sum(r.area for r in rectangles)
    empty_area = container.area - min_area
    filling_rate = min_area / container.area

    if filling_rate > 1.0:
        raise InvariantViolation(
            f"Undetected overlap in solution: filling rate {filling_rate:.4f} "
            f"for {min_area} area in a {container.width}x{container.height} box"
        )

    return Evaluation(
        container=container,
        min_area=min_area,
        empty_area=empty_area,
        filling_rate=filling_rate,
        duration=duration,
    )

"""Problem model and its line-oriented text format."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from packt.errors import FormatError
from packt.geometry import Rectangle

logger = logging.getLogger(__name__)


class Variant(BaseModel):
    """Container height policy: free (``height is None``) or fixed."""

    model_config = ConfigDict(frozen=True)

    height: Optional[int] = Field(default=None, gt=0, description="Fixed container height")

    @classmethod
    def free(cls) -> Variant:
        return cls()

    @classmethod
    def fixed(cls, height: int) -> Variant:
        return cls(height=height)

    @property
    def is_fixed(self) -> bool:
        return self.height is not None

    @classmethod
    def parse(cls, text: str) -> Variant:
        """Parse ``free`` or ``fixed <h>``."""
        tokens = text.split()
        if tokens == ["free"]:
            return cls.free()
        if len(tokens) == 2 and tokens[0] == "fixed":
            return cls.fixed(_parse_positive(tokens[1], None, text))
        raise FormatError("Invalid container height", text=text)

    def __str__(self) -> str:
        return "free" if self.height is None else f"fixed {self.height}"


class Problem(BaseModel):
    """A packing problem: variant, rotation policy and ordered rectangles."""

    variant: Variant = Field(default_factory=Variant.free)
    allow_rotation: bool = False
    rectangles: list[Rectangle] = Field(default_factory=list)

    # Only set for generated problems, which tile this rectangle exactly.
    source: Optional[Rectangle] = None

    model_config = ConfigDict(frozen=True)

    def config_str(self) -> str:
        return (
            f"container height: {self.variant}\n"
            f"rotations allowed: {'yes' if self.allow_rotation else 'no'}\n"
            f"number of rectangles: {len(self.rectangles)}"
        )

    def digest(self, limit: int = 30) -> str:
        """Short human-readable summary with at most ``limit`` rectangles."""
        lines = [self.config_str()]
        if self.source is not None:
            lines.append(f"bounding box: {self.source}")
        lines.extend(str(r) for r in self.rectangles[:limit])
        if len(self.rectangles) > limit:
            lines.append("...")
        return "\n".join(lines)

    def __str__(self) -> str:
        return format_problem(self)


def format_problem(problem: Problem) -> str:
    lines = [problem.config_str()]
    lines.extend(str(r) for r in problem.rectangles)
    return "\n".join(lines)


def _parse_positive(token: str, line: int | None, text: str) -> int:
    try:
        value = int(token)
    except ValueError:
        raise FormatError(f"Expected an integer, got {token!r}", line, text) from None
    if value <= 0:
        raise FormatError(f"Expected a positive integer, got {value}", line, text)
    return value


def parse_rectangle(text: str, line: int | None = None) -> Rectangle:
    tokens = text.split()
    if len(tokens) != 2:
        raise FormatError("Expected '<width> <height>'", line, text)
    return Rectangle(_parse_positive(tokens[0], line, text), _parse_positive(tokens[1], line, text))


def _header_value(lines: list[str], index: int, prefix: str, what: str) -> str:
    if index >= len(lines):
        raise FormatError(f"Unexpected end of file: unable to parse {what}")
    line = lines[index].strip()
    # Token-wise match so that runs of spaces are tolerated.
    head = " ".join(line.split())
    if not head.startswith(prefix):
        raise FormatError(f"Invalid {what}", index + 1, line)
    return head[len(prefix):].strip()


def parse_problem(text: str) -> Problem:
    """
    Parse the problem text format.

    Raises FormatError for malformed headers, malformed rectangle lines and
    when the announced rectangle count differs from the lines present.
    """
    lines = text.strip().splitlines()

    variant = Variant.parse(_header_value(lines, 0, "container height:", "problem variant"))

    rotation = _header_value(lines, 1, "rotations allowed:", "problem rotation setting")
    if rotation not in ("yes", "no"):
        raise FormatError("Invalid rotation setting", 2, lines[1].strip())

    count_text = _header_value(lines, 2, "number of rectangles:", "rectangle count")
    try:
        count = int(count_text)
    except ValueError:
        raise FormatError("Invalid rectangle count", 3, lines[2].strip()) from None

    rectangles = [parse_rectangle(line, number) for number, line in enumerate(lines[3:], start=4)]
    if len(rectangles) != count:
        raise FormatError(f"Header announces {count} rectangles, found {len(rectangles)}")

    return Problem(variant=variant, allow_rotation=rotation == "yes", rectangles=rectangles)


def save_problem(problem: Problem, path: Path | str) -> None:
    path = Path(path)
    path.write_text(format_problem(problem), encoding="utf-8")
    logger.info(f"Saved problem with {len(problem.rectangles)} rectangles to {path}")


def load_problem(path: Path | str) -> Problem:
    return parse_problem(Path(path).read_text(encoding="utf-8"))

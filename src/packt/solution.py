"""Solution model and parser for solver output."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field

from packt.errors import FormatError
from packt.geometry import Placement, Point, Rectangle, Rotation
from packt.problem import Problem, Variant, parse_problem

SEPARATOR = "placement of rectangles"
SEPARATOR_PATTERN = re.compile(r"placement\s+of\s+rectangles", re.IGNORECASE)


class Solution(BaseModel):
    """Placements returned by a solver, one per rectangle of its problem."""

    variant: Variant
    allow_rotation: bool
    placements: list[Placement] = Field(default_factory=list)

    # The problem that was sent to the solver, attached by the harness.
    problem: Optional[Problem] = None

    def attach(self, problem: Problem) -> Solution:
        """
        Bind the originating problem to this solution.

        The solver echoes the problem before its placements; the echo must
        agree with what was sent.
        """
        if problem.variant != self.variant or problem.allow_rotation != self.allow_rotation:
            raise FormatError(
                f"Solution was produced for a different problem: "
                f"{self.variant}/{self.allow_rotation} instead of {problem.variant}/{problem.allow_rotation}"
            )
        echoed = [p.rectangle for p in self.placements]
        if echoed != problem.rectangles:
            raise FormatError("Solution rectangles do not match the problem rectangles")
        self.problem = problem
        return self


def _parse_coordinate(token: str, line: int, text: str) -> int:
    try:
        value = int(token)
    except ValueError:
        raise FormatError(f"Expected an integer coordinate, got {token!r}", line, text) from None
    if value < 0:
        raise FormatError(f"Negative coordinate {value}", line, text)
    return value


def parse_placement(text: str, rectangle: Rectangle, allow_rotation: bool, line: int) -> Placement:
    """Parse ``<x> <y>`` or, with rotations allowed, ``<yes|no> <x> <y>``."""
    tokens = text.split()

    if not allow_rotation and len(tokens) == 2:
        rotation = Rotation.NORMAL
        x, y = tokens
    elif allow_rotation and len(tokens) == 3:
        token, x, y = tokens
        try:
            rotation = Rotation(token)
        except ValueError:
            raise FormatError(f"Unexpected rotation token {token!r}", line, text) from None
    else:
        expected = "<yes|no> <x> <y>" if allow_rotation else "<x> <y>"
        raise FormatError(f"Expected '{expected}'", line, text)

    point = Point(_parse_coordinate(x, line, text), _parse_coordinate(y, line, text))
    return Placement(rectangle=rectangle, rotation=rotation, bottom_left=point)


def parse_solution(text: str, problem: Problem | None = None) -> Solution:
    """
    Parse solver output: the echoed problem, the separator line, then one
    placement per rectangle in problem order.

    When ``problem`` is given it is attached to the result.
    """
    match = SEPARATOR_PATTERN.search(text)
    if match is None:
        raise FormatError(f"Unexpected end of file: missing '{SEPARATOR}'")
    head, tail = text[:match.start()], text[match.end():]

    echoed = parse_problem(head)
    # Line numbers continue from the echoed problem and the separator line.
    offset = head.count("\n") + 1
    lines = tail.strip().splitlines()

    if len(lines) != len(echoed.rectangles):
        raise FormatError(
            f"Solution contains {len(lines)} placements for {len(echoed.rectangles)} rectangles"
        )

    placements = [
        parse_placement(line, rectangle, echoed.allow_rotation, offset + number)
        for number, (line, rectangle) in enumerate(zip(lines, echoed.rectangles), start=1)
    ]

    solution = Solution(
        variant=echoed.variant,
        allow_rotation=echoed.allow_rotation,
        placements=placements,
    )
    if problem is not None:
        solution.attach(problem)
    return solution


def format_solution(solution: Solution) -> str:
    """Render a solution the way a solver is expected to print it."""
    rectangles = [p.rectangle for p in solution.placements]
    problem = Problem(
        variant=solution.variant,
        allow_rotation=solution.allow_rotation,
        rectangles=rectangles,
    )
    lines = [str(problem), SEPARATOR]
    for p in solution.placements:
        coords = f"{p.bottom_left.x} {p.bottom_left.y}"
        lines.append(f"{p.rotation.value} {coords}" if solution.allow_rotation else coords)
    return "\n".join(lines)

from __future__ import annotations

import pytest

from packt.errors import FormatError
from packt.geometry import Placement, Point, Rectangle, Rotation
from packt.problem import Problem, Variant
from packt.solution import Solution, format_solution, parse_solution

PROBLEM = "container height: fixed 22\nrotations allowed: no\nnumber of rectangles: 2\n12 8\n10 9"
ROTATING = "container height: free\nrotations allowed: yes\nnumber of rectangles: 2\n12 8\n10 9"


def test_solution_parsing() -> None:
    r1 = Rectangle(12, 8)
    r2 = Rectangle(10, 9)
    result = parse_solution(PROBLEM + "\nplacement of rectangles\n0 0\n24 3")

    assert result.variant == Variant.fixed(22)
    assert result.allow_rotation is False
    assert result.placements == [
        Placement(rectangle=r1, rotation=Rotation.NORMAL, bottom_left=Point(0, 0)),
        Placement(rectangle=r2, rotation=Rotation.NORMAL, bottom_left=Point(24, 3)),
    ]


def test_rotated_solution_parsing() -> None:
    result = parse_solution(ROTATING + "\nplacement of rectangles\nyes 0 0\nno 8 0")
    assert [p.rotation for p in result.placements] == [Rotation.ROTATED, Rotation.NORMAL]
    assert result.placements[0].top_right == Point(7, 11)


def test_separator_is_matched_loosely() -> None:
    result = parse_solution(PROBLEM + "\n  Placement of Rectangles  \n0 0\n24 3\n")
    assert len(result.placements) == 2

    result = parse_solution(PROBLEM + "\nPLACEMENT  of\trectangles\n0 0\n24 3")
    assert result.placements[1].bottom_left == Point(24, 3)


@pytest.mark.parametrize(
    "text",
    [
        PROBLEM,
        PROBLEM + "\nplacement of rectangles\n0 0",
        PROBLEM + "\nplacement of rectangles\n0 0\n24 3\n30 30",
        PROBLEM + "\nplacement of rectangles\n0 0\nx 3",
        PROBLEM + "\nplacement of rectangles\n0 0\n-1 3",
        # rotation tokens are not allowed without rotations
        PROBLEM + "\nplacement of rectangles\nno 0 0\nno 24 3",
        # rotation tokens are mandatory with rotations
        ROTATING + "\nplacement of rectangles\n0 0\n24 3",
        ROTATING + "\nplacement of rectangles\nmaybe 0 0\nno 24 3",
    ],
)
def test_malformed_solutions_raise_format_error(text: str) -> None:
    with pytest.raises(FormatError):
        parse_solution(text)


def test_attach_originating_problem(small_problem: Problem) -> None:
    solution = parse_solution(PROBLEM + "\nplacement of rectangles\n0 0\n24 3", small_problem)
    assert solution.problem == small_problem


def test_attach_rejects_a_different_problem(small_problem: Problem) -> None:
    other = small_problem.model_copy(update={"rectangles": [Rectangle(10, 9), Rectangle(12, 8)]})
    with pytest.raises(FormatError):
        parse_solution(PROBLEM + "\nplacement of rectangles\n0 0\n24 3", other)

    freed = small_problem.model_copy(update={"variant": Variant.free()})
    with pytest.raises(FormatError):
        parse_solution(PROBLEM + "\nplacement of rectangles\n0 0\n24 3", freed)


def test_format_solution() -> None:
    text = ROTATING + "\nplacement of rectangles\nyes 0 0\nno 8 0"
    solution = parse_solution(text)
    assert format_solution(solution) == text
    assert isinstance(parse_solution(format_solution(solution)), Solution)

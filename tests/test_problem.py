from __future__ import annotations

import pytest

from packt.errors import FormatError
from packt.geometry import Rectangle
from packt.problem import Problem, Variant, load_problem, parse_problem, save_problem

INPUT = "container height: fixed 22\nrotations allowed: no\nnumber of rectangles: 2\n12 8\n10 9"


def test_parsing() -> None:
    expected = Problem(
        variant=Variant.fixed(22),
        allow_rotation=False,
        rectangles=[Rectangle(12, 8), Rectangle(10, 9)],
    )
    assert parse_problem(INPUT) == expected


def test_format_matches_text(small_problem: Problem) -> None:
    assert str(small_problem) == INPUT


def test_format_parse_round_trip() -> None:
    problems = [
        Problem(variant=Variant.free(), allow_rotation=True, rectangles=[Rectangle(1, 1)]),
        Problem(variant=Variant.fixed(7), allow_rotation=False, rectangles=[Rectangle(3, 7), Rectangle(2, 2)]),
        Problem(variant=Variant.free(), allow_rotation=False, rectangles=[]),
    ]
    for p in problems:
        assert parse_problem(str(p)) == p


def test_parse_tolerates_surrounding_whitespace() -> None:
    assert parse_problem(f"\n  {INPUT}\n\n") == parse_problem(INPUT)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "container height: tall\nrotations allowed: no\nnumber of rectangles: 0",
        "container height: fixed x\nrotations allowed: no\nnumber of rectangles: 0",
        "container height: fixed 0\nrotations allowed: no\nnumber of rectangles: 0",
        "container height: free\nrotations allowed: maybe\nnumber of rectangles: 0",
        "container height: free\nrotations allowed: no\nnumber of rectangles: many",
        "container height: free\nrotations allowed: no\nnumber of rectangles: 1\n12",
        "container height: free\nrotations allowed: no\nnumber of rectangles: 1\n12 8 3",
        "container height: free\nrotations allowed: no\nnumber of rectangles: 1\n12 a",
        "container height: free\nrotations allowed: no\nnumber of rectangles: 1\n0 4",
        "container height: free\nrotations allowed: no\nnumber of rectangles: 3\n12 8\n10 9",
    ],
)
def test_malformed_problems_raise_format_error(text: str) -> None:
    with pytest.raises(FormatError):
        parse_problem(text)


def test_format_error_names_offending_line() -> None:
    with pytest.raises(FormatError) as info:
        parse_problem("container height: free\nrotations allowed: no\nnumber of rectangles: 2\n12 8\n10 x")
    assert info.value.line == 5
    assert "10 x" in str(info.value)


def test_variant_text() -> None:
    assert str(Variant.free()) == "free"
    assert str(Variant.fixed(22)) == "fixed 22"
    assert Variant.parse("fixed 22") == Variant.fixed(22)
    assert not Variant.free().is_fixed


def test_digest_is_truncated() -> None:
    p = Problem(rectangles=[Rectangle(1, 2)] * 40, source=Rectangle(8, 10))
    digest = p.digest()
    assert "bounding box: 8 10" in digest
    assert digest.endswith("...")
    assert digest.count("1 2") == 30


def test_save_and_load(tmp_path, small_problem: Problem) -> None:
    path = tmp_path / "problem.txt"
    save_problem(small_problem, path)
    assert path.read_text() == INPUT
    assert load_problem(path) == small_problem

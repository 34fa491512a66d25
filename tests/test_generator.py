from __future__ import annotations

import random

import pytest

from packt.generator import (
    AVG_AREA,
    GeneratorConfig,
    generate,
    generate_with_layout,
    known_solution,
    rectangle_with_area,
    split_rectangle,
)
from packt.geometry import Rectangle
from packt.metrics import evaluate
from packt.problem import Variant, parse_problem
from packt.validation import is_valid


def test_generate_preserves_area() -> None:
    r = Rectangle(1000, 1000)
    p = generate(50, Variant.free(), False, container=r, rng=random.Random(7))
    assert len(p.rectangles) == 50
    assert sum(x.area for x in p.rectangles) == 1000 * 1000
    assert p.source == r


@pytest.mark.parametrize("seed", range(10))
def test_generated_rectangles_are_never_degenerate(seed: int) -> None:
    rng = random.Random(seed)
    source = Rectangle(rng.randint(1, 40), rng.randint(1, 40))
    n = rng.randint(1, source.area)
    pieces = split_rectangle(source, n, rng)
    assert len(pieces) == n
    assert all(p.rectangle.width > 0 and p.rectangle.height > 0 for p in pieces)
    assert sum(p.rectangle.area for p in pieces) == source.area


@pytest.mark.parametrize("seed", range(10))
def test_known_layout_is_a_perfect_packing(seed: int) -> None:
    """The split tree tiles the source exactly: valid, no gap, filling rate 1."""
    problem, layout = generate_with_layout(60, Variant.free(), False, rng=random.Random(seed))
    solution = known_solution(problem, layout)

    assert is_valid(solution)
    evaluation = evaluate(solution)
    assert evaluation.container == problem.source
    assert evaluation.empty_area == 0
    assert evaluation.filling_rate == 1.0


def test_known_layout_fits_fixed_height() -> None:
    problem, layout = generate_with_layout(25, Variant.fixed(1), True, rng=random.Random(3))
    assert problem.variant == Variant.fixed(problem.source.height)
    assert evaluate(known_solution(problem, layout)).filling_rate == 1.0


def test_n_equal_to_area_gives_unit_rectangles() -> None:
    source = Rectangle(4, 3)
    p = generate(12, Variant.free(), False, container=source)
    assert p.rectangles == [Rectangle(1, 1)] * 12

    solution = known_solution(p, split_rectangle(source, 12))
    assert evaluate(solution).filling_rate == 1.0


def test_single_rectangle_is_the_source() -> None:
    source = Rectangle(6, 9)
    assert [p.rectangle for p in split_rectangle(source, 1)] == [source]


def test_too_many_rectangles_is_a_contract_violation() -> None:
    with pytest.raises(ValueError):
        split_rectangle(Rectangle(2, 2), 5)
    with pytest.raises(ValueError):
        split_rectangle(Rectangle(2, 2), 0)


def test_rectangle_with_area() -> None:
    rng = random.Random(11)
    for area in [1, 7, 50, 1250, 250000]:
        r = rectangle_with_area(area, rng)
        assert r.area == area


def test_default_source_area() -> None:
    p = generate(10, rng=random.Random(5))
    assert p.source.area == 10 * AVG_AREA
    assert len(p.rectangles) == 10


def test_config_defaults_are_drawn() -> None:
    p = GeneratorConfig(rectangles=5).generate(random.Random(1))
    assert len(p.rectangles) == 5
    assert p.variant in (Variant.free(), Variant.fixed(p.source.height))


def test_config_clamps_count_to_container_area() -> None:
    p = GeneratorConfig(rectangles=100, container=Rectangle(3, 3)).generate(random.Random(2))
    assert p.rectangles == [Rectangle(1, 1)] * 9


def test_generated_problem_round_trips_through_text() -> None:
    p = GeneratorConfig(rectangles=25, allow_rotation=True).generate(random.Random(4))
    parsed = parse_problem(str(p))
    assert parsed.rectangles == p.rectangles
    assert parsed.variant == p.variant
    assert parsed.allow_rotation is True
    assert parsed.source is None

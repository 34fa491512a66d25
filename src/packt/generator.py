"""Generate problems that are known to admit a perfect packing.

A source rectangle is split by random guillotine cuts until it consists of
the requested number of pieces. The pieces, laid out where the cuts left them,
tile the source with no gap and no overlap.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Optional

from pydantic import BaseModel, Field

from packt.geometry import Placement, Point, Rectangle
from packt.problem import Problem, Variant
from packt.solution import Solution

logger = logging.getLogger(__name__)

N_DEFAULTS: tuple[int, ...] = (3, 5, 10, 25, 5000)
AVG_AREA = 50


def rectangle_with_area(area: int, rng: random.Random | None = None) -> Rectangle:
    """
    Factor ``area`` into a rectangle, biased towards square shapes.

    The divisors up to sqrt(area) are indexed by a normal draw centred on
    the middle divisor; a coin flip decides whether it becomes the width or
    the height.
    """
    if area < 1:
        raise ValueError(f"area must be positive, got {area}")
    rng = rng or random.Random()

    divisors = [d for d in range(1, math.isqrt(area) + 1) if area % d == 0]
    n = len(divisors)
    i = int(min(max(rng.gauss(n / 2, n / 7), 0.0), n - 1))

    d = divisors[i]
    if rng.random() < 0.5:
        return Rectangle(d, area // d)
    return Rectangle(area // d, d)


def split_piece(piece: Placement, rng: random.Random) -> tuple[Placement, Placement]:
    """Cut a piece in two with one guillotine cut at a random interior offset."""
    r = piece.rectangle
    w, h = r.width, r.height
    x, y = piece.bottom_left.x, piece.bottom_left.y

    if w == 1 and h == 1:
        raise ValueError(f"{r!r} cannot be split")

    # Vertical with probability w / (w + h); thin strips only have one option.
    vertical = h == 1 or (w > 1 and rng.randrange(w + h) < w)
    if vertical:
        cut = rng.randint(1, w - 1)
        return (
            Placement(rectangle=Rectangle(cut, h), bottom_left=Point(x, y)),
            Placement(rectangle=Rectangle(w - cut, h), bottom_left=Point(x + cut, y)),
        )

    cut = rng.randint(1, h - 1)
    return (
        Placement(rectangle=Rectangle(w, cut), bottom_left=Point(x, y)),
        Placement(rectangle=Rectangle(w, h - cut), bottom_left=Point(x, y + cut)),
    )


def split_rectangle(source: Rectangle, n: int, rng: random.Random | None = None) -> list[Placement]:
    """
    Split ``source`` into exactly ``n`` pieces positioned inside it.

    Raises ValueError if ``n`` is not in ``1..source.area``.
    """
    if n < 1 or n > source.area:
        raise ValueError(f"{source!r} cannot be split into {n} rectangles")
    rng = rng or random.Random()

    if n == source.area:
        return [
            Placement(rectangle=Rectangle(1, 1), bottom_left=Point(x, y))
            for y in range(source.height)
            for x in range(source.width)
        ]

    pieces = [Placement(rectangle=source, bottom_left=Point(0, 0))]
    while len(pieces) < n:
        i = rng.randrange(len(pieces))
        if pieces[i].rectangle.area == 1:
            continue
        # swap_remove keeps picking O(1)
        pieces[i], pieces[-1] = pieces[-1], pieces[i]
        first, second = split_piece(pieces.pop(), rng)
        pieces.append(first)
        pieces.append(second)

    return pieces


def generate_with_layout(
    n: int,
    variant: Variant | None = None,
    allow_rotation: bool | None = None,
    container: Rectangle | None = None,
    rng: random.Random | None = None,
) -> tuple[Problem, list[Placement]]:
    """Generate a problem together with the layout that packs it perfectly."""
    rng = rng or random.Random()

    source = container or rectangle_with_area(n * AVG_AREA, rng)
    if variant is None:
        variant = Variant.free() if rng.random() < 0.5 else Variant.fixed(source.height)
    elif variant.is_fixed:
        # The known packing only fits a container of the source height.
        variant = Variant.fixed(source.height)
    if allow_rotation is None:
        allow_rotation = rng.random() < 0.5

    layout = split_rectangle(source, n, rng)
    problem = Problem(
        variant=variant,
        allow_rotation=allow_rotation,
        rectangles=[p.rectangle for p in layout],
        source=source,
    )
    logger.debug(f"Generated {n} rectangles from source {source.width}x{source.height}")
    return problem, layout


def generate(
    n: int,
    variant: Variant | None = None,
    allow_rotation: bool | None = None,
    container: Rectangle | None = None,
    rng: random.Random | None = None,
) -> Problem:
    """Generate a problem with exactly ``n`` rectangles and a perfect packing."""
    problem, _ = generate_with_layout(n, variant, allow_rotation, container, rng)
    return problem


def known_solution(problem: Problem, layout: list[Placement]) -> Solution:
    """Build the perfect packing a generated problem was cut from."""
    return Solution(
        variant=problem.variant,
        allow_rotation=problem.allow_rotation,
        placements=layout,
        problem=problem,
    )


class GeneratorConfig(BaseModel):
    """
    Optional generator settings; anything left unset is drawn at random.

    - rectangles: from N_DEFAULTS
    - container: a rectangle of area rectangles * AVG_AREA
    - variant: free or fixed to the container height, by coin flip
    - allow_rotation: by coin flip
    """

    rectangles: Optional[int] = Field(default=None, gt=0, description="Number of rectangles")
    container: Optional[Rectangle] = Field(default=None, description="Source rectangle to split")
    variant: Optional[Variant] = Field(default=None, description="Container height policy")
    allow_rotation: Optional[bool] = Field(default=None, description="Whether rotations are allowed")

    def generate(self, rng: random.Random | None = None) -> Problem:
        rng = rng or random.Random()
        n = self.rectangles if self.rectangles is not None else rng.choice(N_DEFAULTS)
        container = self.container or rectangle_with_area(n * AVG_AREA, rng)
        n = min(n, container.area)
        return generate(n, self.variant, self.allow_rotation, container, rng)

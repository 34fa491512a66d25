from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

from packt.geometry import Rectangle
from packt.problem import Problem, Variant
from packt.runner import SolverCommand


@pytest.fixture
def make_solver(tmp_path: Path) -> Callable[[str], SolverCommand]:
    """Write a Python solver script and return the command that runs it."""

    def factory(source: str, name: str = "solver.py") -> SolverCommand:
        script = tmp_path / name
        script.write_text(source, encoding="utf-8")
        return SolverCommand(solver=script, runtime=sys.executable)

    return factory


@pytest.fixture
def small_problem() -> Problem:
    return Problem(
        variant=Variant.fixed(22),
        allow_rotation=False,
        rectangles=[Rectangle(12, 8), Rectangle(10, 9)],
    )

"""Flat result records for sweeps and batches, written as CSV."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import IO, Iterable, Optional

from pydantic import BaseModel

from packt.metrics import format_duration
from packt.problem import Problem
from packt.runner import Attempt

# Generated problem files carry this in their name.
PERFECT_MARKER = "_perfect"

FIELDS = [
    "file",
    "rectangles",
    "variant",
    "rotation",
    "perfect",
    "parameters",
    "container_width",
    "container_height",
    "min_area",
    "empty_area",
    "filling_rate",
    "duration",
    "error",
]


def perfect_file_name(stem: str) -> str:
    """File name for a generated problem, recognisable as a perfect packing."""
    return f"{stem}{PERFECT_MARKER}.txt"


class ResultRecord(BaseModel):
    """One row of output: the problem, and either metrics or an error."""

    file: str
    rectangles: int
    variant: str
    rotation: bool
    perfect: bool
    parameters: Optional[str] = None
    container_width: Optional[int] = None
    container_height: Optional[int] = None
    min_area: Optional[int] = None
    empty_area: Optional[int] = None
    filling_rate: Optional[float] = None
    duration: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_attempt(cls, file: str | Path, problem: Problem, attempt: Attempt) -> ResultRecord:
        name = Path(file).name
        record = cls(
            file=name,
            rectangles=len(problem.rectangles),
            variant=str(problem.variant),
            rotation=problem.allow_rotation,
            perfect=PERFECT_MARKER in name,
            parameters=str(attempt.parameters) if attempt.parameters is not None else None,
        )
        if attempt.evaluation is None:
            record.error = attempt.error
            return record

        evaluation = attempt.evaluation
        record.container_width = evaluation.container.width
        record.container_height = evaluation.container.height
        record.min_area = evaluation.min_area
        record.empty_area = evaluation.empty_area
        record.filling_rate = evaluation.filling_rate
        record.duration = format_duration(evaluation.duration)
        return record

    def row(self) -> dict[str, str]:
        """CSV row; absent fields are left empty."""
        data = self.model_dump()
        row = {}
        for name in FIELDS:
            value = data[name]
            if value is None:
                row[name] = ""
            elif isinstance(value, bool):
                row[name] = "yes" if value else "no"
            elif isinstance(value, float):
                row[name] = f"{value:.4f}"
            else:
                row[name] = str(value)
        return row


def write_records(records: Iterable[ResultRecord], stream: IO[str]) -> int:
    """Write records as CSV with a header; returns the number of rows."""
    writer = csv.DictWriter(stream, fieldnames=FIELDS)
    writer.writeheader()
    count = 0
    for record in records:
        writer.writerow(record.row())
        count += 1
    return count

"""Runtime settings; loads .env when present (does not override existing env)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Upper bound on problems handled by the HTTP service.
MAX_RECTANGLES = 10_000


def _int_list(value: str) -> list[int]:
    return [int(v) for v in value.split(",") if v.strip()]


def _name_pair(value: str) -> tuple[str, str]:
    names = [v.strip() for v in value.split(",") if v.strip()]
    if len(names) != 2:
        raise ValueError(f"PACKT_SWEEP_NAMES needs exactly two names, got {value!r}")
    return names[0], names[1]


class Settings(BaseModel):
    """Harness defaults."""

    deadline: float = Field(default=300.0, gt=0, description="Solver deadline in seconds")
    java: str = Field(default="java", description="Runtime used for .jar solvers")
    sweep_values: list[int] = Field(
        default_factory=lambda: [5, 10, 25, 50, 100],
        description="Values tried for each of the two sweep parameters",
    )
    sweep_names: tuple[str, str] = Field(
        default=("RETRY", "N_HEIGHTS"),
        description="Environment variable names the sweep parameters are passed in",
    )
    log_level: str = Field(default="WARNING", description="Default logging level")
    solver_dir: Optional[Path] = Field(
        default=None,
        description="Directory the HTTP service may run solvers from; runs are refused when unset",
    )
    max_rectangles: int = Field(
        default=MAX_RECTANGLES, gt=0, le=MAX_RECTANGLES,
        description="Largest problem the HTTP service generates or accepts",
    )

    @classmethod
    def from_env(cls) -> Settings:
        data: dict = {}
        if os.getenv("PACKT_DEADLINE"):
            data["deadline"] = float(os.environ["PACKT_DEADLINE"])
        if os.getenv("PACKT_JAVA"):
            data["java"] = os.environ["PACKT_JAVA"]
        if os.getenv("PACKT_SWEEP_VALUES"):
            data["sweep_values"] = _int_list(os.environ["PACKT_SWEEP_VALUES"])
        if os.getenv("PACKT_SWEEP_NAMES"):
            data["sweep_names"] = _name_pair(os.environ["PACKT_SWEEP_NAMES"])
        if os.getenv("PACKT_LOG_LEVEL"):
            data["log_level"] = os.environ["PACKT_LOG_LEVEL"].upper()
        if os.getenv("PACKT_SOLVER_DIR"):
            data["solver_dir"] = Path(os.environ["PACKT_SOLVER_DIR"])
        if os.getenv("PACKT_MAX_RECTANGLES"):
            data["max_rectangles"] = int(os.environ["PACKT_MAX_RECTANGLES"])
        return cls(**data)

"""HTTP workspace: generate or import problems, run them through a solver, read results.

Serve with ``uvicorn --factory packt.api:create_app``. Solvers are only run
from the directory named by ``PACKT_SOLVER_DIR``.
"""

from __future__ import annotations

import logging
import random
import threading
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from packt.config import MAX_RECTANGLES, Settings
from packt.errors import BusyError, FormatError, PacktError
from packt.generator import GeneratorConfig
from packt.metrics import evaluate
from packt.problem import Problem, Variant, parse_problem
from packt.runner import Attempt, BatchRunner, Job, JobResult, SolverCommand
from packt.solution import parse_solution

logger = logging.getLogger(__name__)

# Longest problem or solution text accepted in a request body.
MAX_TEXT_LENGTH = 1_000_000


class GenerateRequest(BaseModel):
    count: Optional[int] = Field(default=None, gt=0, le=MAX_RECTANGLES, description="Number of rectangles")
    variant: Optional[str] = Field(default=None, description="'free' or 'fixed'")
    allow_rotation: Optional[bool] = Field(default=None, description="Whether rotations are allowed")
    seed: Optional[int] = Field(default=None, description="Random seed")


class ImportRequest(BaseModel):
    text: str = Field(max_length=MAX_TEXT_LENGTH, description="Problem in the text format")


class RunRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    solver: str = Field(description="Solver file name inside the solver directory")
    problem_ids: list[str] = Field(min_length=1, description="Problems to run")


class EvaluateRequest(BaseModel):
    text: str = Field(
        max_length=MAX_TEXT_LENGTH,
        description="Solver output: echoed problem, separator and placements",
    )
    duration: float = Field(default=0.0, ge=0, description="Seconds the solver took")


class Entry(BaseModel):
    """A problem in the workspace and every attempt to solve it."""

    id: str
    name: str
    problem: Problem
    solutions: list[Attempt] = Field(default_factory=list)

    @classmethod
    def create(cls, problem: Problem) -> Entry:
        name = (
            f"n={len(problem.rectangles)} h={problem.variant} "
            f"r={'yes' if problem.allow_rotation else 'no'}"
        )
        return cls(id=uuid.uuid4().hex, name=name, problem=problem)

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "solutions": len(self.solutions)}


class Workspace:
    """Problems known to the service plus the batch runner that solves them."""

    def __init__(self, deadline: float):
        self._lock = threading.Lock()
        self._entries: dict[str, Entry] = {}
        self.runner = BatchRunner(on_complete=self._completed, deadline=deadline)

    def add(self, problem: Problem) -> Entry:
        entry = Entry.create(problem)
        with self._lock:
            self._entries[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Entry:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Unknown problem {entry_id}")
        return entry

    def entries(self) -> list[Entry]:
        with self._lock:
            return list(self._entries.values())

    def close(self) -> None:
        self.runner.close(timeout=5)

    def _completed(self, result: JobResult) -> None:
        with self._lock:
            entry = self._entries.get(result.job.name)
            if entry is not None:
                entry.solutions.append(result.attempt)
        logger.info(f"Completed {result.job.name}: {'ok' if result.attempt.ok else result.attempt.error}")


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def resolve_solver(solver_dir: Path | None, name: str) -> Path:
    """Path of solver ``name``; it must be a file inside ``solver_dir``."""
    if solver_dir is None:
        raise HTTPException(status_code=403, detail="Running solvers is disabled: no solver directory configured")
    root = solver_dir.resolve()
    path = (root / name).resolve()
    if path == root or not path.is_relative_to(root):
        logger.warning(f"Refused solver outside {root}: {name!r}")
        raise HTTPException(status_code=403, detail=f"Solver {name!r} is outside the solver directory")
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"Unknown solver {name!r}")
    return path


def _parse_variant(value: str | None) -> Variant | None:
    if value is None:
        return None
    if value.strip() == "fixed":
        return Variant.fixed(1)
    try:
        return Variant.parse(value)
    except FormatError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None


def _check_size(count: int, limit: int) -> None:
    if count > limit:
        raise HTTPException(status_code=422, detail=f"Too many rectangles: {count} > {limit}")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.workspace = Workspace(deadline=settings.deadline)
        try:
            yield
        finally:
            app.state.workspace.close()

    app = FastAPI(
        title="packt workspace",
        description="Rectangle packing problem generator and solver harness",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Handlers that parse, generate or evaluate are plain functions so they run
    # in the threadpool instead of on the event loop.

    @app.get("/health")
    def health(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True, "running": workspace.runner.running}

    @app.post("/problems/generate")
    def generate_problem(request: GenerateRequest, workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        if request.count is not None:
            _check_size(request.count, settings.max_rectangles)
        config = GeneratorConfig(
            rectangles=request.count,
            variant=_parse_variant(request.variant),
            allow_rotation=request.allow_rotation,
        )
        rng = random.Random(request.seed) if request.seed is not None else None
        problem = config.generate(rng)
        _check_size(len(problem.rectangles), settings.max_rectangles)
        entry = workspace.add(problem)
        return {**entry.summary(), "digest": entry.problem.digest()}

    @app.post("/problems")
    def import_problem(request: ImportRequest, workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        try:
            problem = parse_problem(request.text)
        except FormatError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        _check_size(len(problem.rectangles), settings.max_rectangles)
        entry = workspace.add(problem)
        return {**entry.summary(), "digest": entry.problem.digest()}

    @app.get("/problems")
    def list_problems(workspace: Workspace = Depends(get_workspace)) -> list[dict[str, Any]]:
        return [entry.summary() for entry in workspace.entries()]

    @app.get("/problems/{entry_id}")
    def get_problem(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        entry = workspace.get(entry_id)
        return {
            **entry.summary(),
            "text": str(entry.problem),
            "digest": entry.problem.digest(),
            "results": [
                {"evaluation": str(a.evaluation)} if a.ok else {"error": a.error, "kind": a.error_kind}
                for a in entry.solutions
            ],
        }

    @app.post("/runs", status_code=202)
    def run_problems(request: RunRequest, workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        """Queue the selected problems; 409 while a previous run is still in flight."""
        path = resolve_solver(settings.solver_dir, request.solver)
        command = SolverCommand.for_path(path, java=settings.java)

        entries = [workspace.get(entry_id) for entry_id in request.problem_ids]
        jobs = [Job(name=entry.id, problem=entry.problem, command=command) for entry in entries]
        try:
            queued = workspace.runner.submit(jobs)
        except BusyError as e:
            raise HTTPException(status_code=409, detail=str(e)) from None
        return {"queued": queued}

    @app.get("/runs")
    def run_status(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
        return {"running": workspace.runner.running}

    @app.post("/solutions/evaluate")
    def evaluate_solution(request: EvaluateRequest) -> dict[str, Any]:
        """Validate solver output without running a solver."""
        try:
            solution = parse_solution(request.text)
        except FormatError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        _check_size(len(solution.placements), settings.max_rectangles)
        try:
            evaluation = evaluate(solution, request.duration)
        except PacktError as e:
            return {"valid": False, "kind": type(e).__name__, "error": str(e)}
        return {"valid": True, **evaluation.model_dump()}

    return app

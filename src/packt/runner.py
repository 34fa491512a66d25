"""Run external solvers under a deadline and evaluate what they return.

One-shot invocations, parameter sweeps and queued batches all funnel through
``solve_async``: spawn the solver, feed it the problem text, and race the
exchange against a timer. A solver that loses the race is killed.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from pydantic import BaseModel, Field

from packt.errors import (
    BusyError,
    OutputEncodingError,
    PacktError,
    SolverPipeError,
    SolverTimeoutError,
    SpawnError,
)
from packt.metrics import Evaluation, evaluate
from packt.problem import Problem, format_problem
from packt.solution import parse_solution

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE = 300.0
SWEEP_NAMES = ("RETRY", "N_HEIGHTS")


class SolverCommand(BaseModel):
    """How to start a solver: a native executable, or a runtime plus a file."""

    solver: Path = Field(description="Solver executable or archive")
    runtime: Optional[str] = Field(default=None, description="Interpreter, e.g. java")
    runtime_args: list[str] = Field(default_factory=list, description="Arguments before the solver path")

    @classmethod
    def for_path(cls, path: Path | str, java: str = "java") -> SolverCommand:
        """``java -jar <path>`` for .jar files, the file itself otherwise."""
        path = Path(path)
        if path.suffix.lower() == ".jar":
            return cls(solver=path, runtime=java, runtime_args=["-jar"])
        return cls(solver=path)

    def argv(self) -> list[str]:
        if self.runtime is None:
            return [str(self.solver)]
        return [self.runtime, *self.runtime_args, str(self.solver)]


class SweepParameters(BaseModel):
    """Solver tuning values, passed to the child through its environment only."""

    values: dict[str, int] = Field(default_factory=dict)

    def environment(self, base: dict[str, str] | None = None) -> dict[str, str]:
        env = dict(os.environ if base is None else base)
        env.update({name: str(value) for name, value in self.values.items()})
        return env

    def __str__(self) -> str:
        return ", ".join(f"{name} = {value}" for name, value in self.values.items())


class Attempt(BaseModel):
    """Outcome of one solver invocation: an evaluation or an error message."""

    parameters: Optional[SweepParameters] = None
    evaluation: Optional[Evaluation] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.evaluation is not None


async def _spawn(command: SolverCommand, parameters: SweepParameters | None) -> asyncio.subprocess.Process:
    argv = command.argv()
    env = parameters.environment() if parameters is not None else None
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except OSError as e:
        raise SpawnError(f"Failed to spawn {' '.join(argv)}: {e}") from e


async def _feed(process: asyncio.subprocess.Process, payload: bytes) -> None:
    try:
        process.stdin.write(payload)
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError) as e:
        raise SolverPipeError(f"Failed to write problem to solver: {e!r}") from e
    finally:
        process.stdin.close()


async def _exchange(process: asyncio.subprocess.Process, payload: bytes) -> tuple[bytes, bytes]:
    # Output is drained while the input is written so neither side blocks.
    reads = asyncio.gather(process.stdout.read(), process.stderr.read())
    try:
        await _feed(process, payload)
    except SolverPipeError:
        reads.cancel()
        raise
    stdout, stderr = await reads
    await process.wait()
    return stdout, stderr


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()


async def solve_async(
    command: SolverCommand,
    problem: Problem,
    deadline: float = DEFAULT_DEADLINE,
    parameters: SweepParameters | None = None,
) -> Evaluation:
    """
    Run one solver invocation and evaluate its solution.

    Raises:
        SpawnError: the solver could not be started
        SolverPipeError: the problem could not be written
        SolverTimeoutError: the solver did not finish within ``deadline`` seconds
        OutputEncodingError: the output is not UTF-8
        FormatError, OverlapError, BoundsExceededError, InvariantViolation:
            the output is not a valid solution
    """
    payload = format_problem(problem).encode("utf-8")
    process = await _spawn(command, parameters)
    start = time.monotonic()
    logger.debug(f"Started solver pid={process.pid}: {' '.join(command.argv())}")

    exchange = asyncio.ensure_future(_exchange(process, payload))
    timer = asyncio.ensure_future(asyncio.sleep(deadline))
    try:
        done, _ = await asyncio.wait({exchange, timer}, return_when=asyncio.FIRST_COMPLETED)
        duration = time.monotonic() - start

        if exchange not in done:
            exchange.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await exchange
            await _terminate(process)
            elapsed = time.monotonic() - start
            logger.warning(f"Solver pid={process.pid} killed after {elapsed:.3f}s")
            raise SolverTimeoutError(elapsed)

        stdout, stderr = exchange.result()
    finally:
        timer.cancel()
        if not exchange.done():
            exchange.cancel()
        await _terminate(process)

    if stderr:
        logger.info(f"Solver stderr: {stderr.decode('utf-8', errors='replace').strip()}")
    if process.returncode != 0:
        logger.warning(f"Solver exited with status {process.returncode}")

    try:
        text = stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise OutputEncodingError(f"Solver output is not valid UTF-8: {e}") from e

    solution = parse_solution(text, problem)
    return evaluate(solution, duration)


def solve(
    command: SolverCommand,
    problem: Problem,
    deadline: float = DEFAULT_DEADLINE,
    parameters: SweepParameters | None = None,
) -> Evaluation:
    """Blocking one-shot invocation; every failure is raised."""
    return asyncio.run(solve_async(command, problem, deadline, parameters))


async def attempt_async(
    command: SolverCommand,
    problem: Problem,
    deadline: float = DEFAULT_DEADLINE,
    parameters: SweepParameters | None = None,
) -> Attempt:
    """Like ``solve_async`` but records failures instead of raising them."""
    try:
        evaluation = await solve_async(command, problem, deadline, parameters)
    except PacktError as e:
        logger.error(f"Attempt failed ({parameters or 'no parameters'}): {e}")
        return Attempt(parameters=parameters, error=str(e), error_kind=type(e).__name__)
    return Attempt(parameters=parameters, evaluation=evaluation)


def sweep(
    command: SolverCommand,
    problem: Problem,
    first: Sequence[int],
    second: Sequence[int],
    deadline: float = DEFAULT_DEADLINE,
    names: tuple[str, str] = SWEEP_NAMES,
) -> Iterator[Attempt]:
    """
    Run the solver once per combination of ``first`` x ``second``.

    Attempts are yielded in grid order; a failing attempt is reported and the
    sweep moves on.
    """
    with asyncio.Runner() as runner:
        for a, b in itertools.product(first, second):
            parameters = SweepParameters(values={names[0]: a, names[1]: b})
            logger.info(f"Sweep: {parameters}")
            yield runner.run(attempt_async(command, problem, deadline, parameters))


class Job(BaseModel):
    """A problem queued for one solver invocation."""

    name: str
    problem: Problem
    command: SolverCommand
    parameters: Optional[SweepParameters] = None


class JobResult(BaseModel):
    job: Job
    attempt: Attempt


class BatchRunner:
    """
    Process batches of jobs on a dedicated worker thread.

    Jobs run one at a time in submission order. Only one batch may be in
    flight: ``submit`` raises BusyError until every job of the previous batch
    has completed.
    """

    def __init__(
        self,
        on_complete: Callable[[JobResult], None] | None = None,
        deadline: float = DEFAULT_DEADLINE,
    ):
        self.deadline = deadline
        self._on_complete = on_complete
        self._jobs: queue.Queue[Job | None] = queue.Queue()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._running = 0
        self._closed = False
        self._worker = threading.Thread(target=self._work, name="packt-batch", daemon=True)
        self._worker.start()

    @property
    def running(self) -> int:
        with self._lock:
            return self._running

    def submit(self, jobs: Iterable[Job]) -> int:
        """Queue a batch; returns the number of jobs accepted."""
        jobs = list(jobs)
        with self._lock:
            if self._closed:
                raise RuntimeError("BatchRunner is closed")
            if self._running:
                raise BusyError(f"failed to start new jobs -- {self._running} jobs still running")
            self._running = len(jobs)
        for job in jobs:
            self._jobs.put(job)
        logger.info(f"Queued batch of {len(jobs)} jobs")
        return len(jobs)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no job is running; False if ``timeout`` expired first."""
        with self._idle:
            return self._idle.wait_for(lambda: self._running == 0, timeout)

    def close(self, timeout: float | None = None) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._jobs.put(None)
        self._worker.join(timeout)

    def __enter__(self) -> BatchRunner:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _run_job(self, runner: asyncio.Runner, job: Job) -> JobResult:
        try:
            attempt = runner.run(attempt_async(job.command, job.problem, self.deadline, job.parameters))
        except Exception as e:
            logger.error(f"Job {job.name} crashed: {e!r}", exc_info=True)
            attempt = Attempt(parameters=job.parameters, error=str(e), error_kind=type(e).__name__)
        return JobResult(job=job, attempt=attempt)

    def _work(self) -> None:
        with asyncio.Runner() as runner:
            while True:
                job = self._jobs.get()
                if job is None:
                    break
                result = self._run_job(runner, job)
                try:
                    if self._on_complete is not None:
                        self._on_complete(result)
                except Exception:
                    logger.exception(f"Completion handler failed for job {job.name}")
                finally:
                    with self._idle:
                        self._running -= 1
                        if self._running == 0:
                            self._idle.notify_all()

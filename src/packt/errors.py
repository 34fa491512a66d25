"""Error kinds raised while parsing, validating and running solvers."""

from __future__ import annotations


class PacktError(Exception):
    """Base class for every recoverable error in packt."""


class FormatError(PacktError):
    """Malformed problem or solution text."""

    def __init__(self, message: str, line: int | None = None, text: str | None = None):
        self.line = line
        self.text = text
        if line is not None:
            message = f"line {line}: {message}"
        if text is not None:
            message = f"{message}: {text!r}"
        super().__init__(message)


class OverlapError(PacktError):
    """Two placements of a solution intersect."""

    def __init__(self, first: int, second: int):
        self.first = first
        self.second = second
        super().__init__(f"Overlap in solution: placements {first} and {second}")


class BoundsExceededError(PacktError):
    """Placements exceed the height of a fixed-height container."""

    def __init__(self, top: int, bound: int):
        self.top = top
        self.bound = bound
        super().__init__(f"Solution placements exceed problem bounds: top: {top}, bound: {bound}")


class InvariantViolation(PacktError):
    """Filling rate above 1.0 although no overlap was found."""


class SolverTimeoutError(PacktError, TimeoutError):
    """The solver did not finish before its deadline."""

    def __init__(self, elapsed: float):
        self.elapsed = elapsed
        super().__init__(f"Solver exceeded deadline after {elapsed:.3f}s")


class SpawnError(PacktError):
    """The solver process could not be started."""


class SolverPipeError(PacktError):
    """Writing the problem to the solver failed."""


class OutputEncodingError(PacktError):
    """The solver wrote output that is not valid UTF-8."""


class BusyError(PacktError):
    """A batch was submitted while another one is still running."""

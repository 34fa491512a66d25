from __future__ import annotations

import argparse
import logging
import random
import sys
import uuid
from pathlib import Path

from packt.config import Settings
from packt.errors import FormatError, PacktError
from packt.generator import GeneratorConfig
from packt.problem import Problem, Variant, load_problem, parse_problem, save_problem
from packt.records import ResultRecord, perfect_file_name, write_records
from packt.runner import Attempt, BatchRunner, Job, JobResult, SolverCommand, solve, sweep

logger = logging.getLogger(__name__)


def parse_variant(value: str) -> Variant:
    """``free``, ``fixed`` or ``fixed <h>``; a fixed height follows the generated container."""
    tokens = value.split()
    if tokens == ["fixed"]:
        return Variant.fixed(1)
    try:
        return Variant.parse(value)
    except FormatError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def parse_yes_no(value: str) -> bool:
    if value.lower() in ("yes", "y", "true", "1"):
        return True
    if value.lower() in ("no", "n", "false", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected yes or no, got {value!r}")


def parse_values(value: str) -> list[int]:
    try:
        return [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma separated integers, got {value!r}") from None


def problem_stem(problem: Problem) -> str:
    variant = str(problem.variant).replace(" ", "")
    rotation = "r" if problem.allow_rotation else "nr"
    return f"n{len(problem.rectangles)}_{variant}_{rotation}_{uuid.uuid4().hex[:8]}"


def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    config = GeneratorConfig(
        rectangles=args.count,
        variant=args.variant,
        allow_rotation=args.rotation,
    )
    rng = random.Random(args.seed) if args.seed is not None else None
    problem = config.generate(rng)

    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        path = args.output_dir / perfect_file_name(problem_stem(problem))
        save_problem(problem, path)
        print(path)
        return 0

    args.output.write(str(problem))
    args.output.write("\n")
    args.output.flush()
    return 0


def print_attempt(attempt: Attempt) -> None:
    if attempt.parameters is not None:
        print(attempt.parameters)
    if attempt.ok:
        print(f"{attempt.evaluation}\n")
    else:
        print(f"{attempt.error_kind}: {attempt.error}\n")


def cmd_solve(args: argparse.Namespace, settings: Settings) -> int:
    command = solver_command(args, settings)
    deadline = args.deadline or settings.deadline
    name = getattr(args.input, "name", "<stdin>")

    try:
        problem = parse_problem(args.input.read())
    except FormatError as e:
        logger.error(f"Invalid problem in {name}: {e}")
        return 1

    if not args.sweep:
        try:
            evaluation = solve(command, problem, deadline)
        except PacktError as e:
            logger.error(f"{type(e).__name__}: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(evaluation)
        if args.csv is not None:
            write_records([ResultRecord.from_attempt(name, problem, Attempt(evaluation=evaluation))], args.csv)
            args.csv.flush()
        return 0

    values = args.values or settings.sweep_values
    records = []
    for attempt in sweep(command, problem, values, values, deadline, settings.sweep_names):
        print_attempt(attempt)
        records.append(ResultRecord.from_attempt(name, problem, attempt))

    if args.csv is not None:
        write_records(records, args.csv)
        args.csv.flush()
    failed = sum(1 for r in records if r.error is not None)
    logger.info(f"Sweep finished: {len(records) - failed} succeeded, {failed} failed")
    return 0


def cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    command = solver_command(args, settings)
    deadline = args.deadline or settings.deadline

    records: list[ResultRecord] = []
    jobs: list[Job] = []
    for path in args.files:
        try:
            problem = load_problem(path)
        except (OSError, FormatError) as e:
            logger.error(f"Skipping {path}: {e}")
            records.append(
                ResultRecord(
                    file=path.name, rectangles=0, variant="", rotation=False,
                    perfect=False, error=str(e),
                )
            )
            continue
        jobs.append(Job(name=str(path), problem=problem, command=command))

    results: list[JobResult] = []
    with BatchRunner(on_complete=results.append, deadline=deadline) as runner:
        runner.submit(jobs)
        runner.wait_idle()

    for result in results:
        print(f"{result.job.name}:")
        print_attempt(result.attempt)
        records.append(ResultRecord.from_attempt(result.job.name, result.job.problem, result.attempt))

    if args.csv is not None:
        write_records(records, args.csv)
        args.csv.flush()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="packt", description="Rectangle packing problem generator and solver harness")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a problem with a known perfect packing")
    gen.add_argument("-n", "--count", type=int, help="Amount of rectangles to generate (random by default)")
    gen.add_argument(
        "-r", "--rotation", type=parse_yes_no,
        help="Whether solutions may rotate rectangles (random by default)",
    )
    gen.add_argument(
        "-f", "--variant", type=parse_variant,
        help="'free' or 'fixed'; a fixed height equals the generated container height (random by default)",
    )
    gen.add_argument("--seed", type=int, help="Random seed")
    gen.add_argument("--output-dir", type=Path, help="Write to a generated *_perfect.txt file in this directory")
    gen.add_argument(
        "output", nargs="?", type=argparse.FileType("w"), default=sys.stdout,
        help="Output file, stdout if not present",
    )
    gen.set_defaults(handler=cmd_generate)

    run = sub.add_parser("solve", help="Run a solver on one problem")
    run.add_argument("solver", type=Path, help="Solver executable or jar file")
    run.add_argument(
        "input", nargs="?", type=argparse.FileType("r"), default=sys.stdin,
        help="Problem file, stdin if not present",
    )
    run.add_argument("--sweep", action="store_true", help="Run once per combination of the sweep values")
    run.add_argument("--values", type=parse_values, help="Comma separated sweep values")
    run.add_argument("--csv", type=argparse.FileType("w"), help="Write result records to this CSV file")
    _add_solver_options(run)
    run.set_defaults(handler=cmd_solve)

    batch = sub.add_parser("batch", help="Run a solver on many problem files")
    batch.add_argument("solver", type=Path, help="Solver executable or jar file")
    batch.add_argument("files", nargs="+", type=Path, help="Problem files")
    batch.add_argument("--csv", type=argparse.FileType("w"), help="Write result records to this CSV file")
    _add_solver_options(batch)
    batch.set_defaults(handler=cmd_batch)

    return parser


def _add_solver_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--deadline", type=float, help="Seconds before the solver is killed")
    parser.add_argument("--java", help="Java runtime used for .jar solvers")
    parser.add_argument("--runtime", help="Interpreter to start the solver with, instead of running it directly")


def solver_command(args: argparse.Namespace, settings: Settings) -> SolverCommand:
    if args.runtime:
        return SolverCommand(solver=args.solver, runtime=args.runtime)
    return SolverCommand.for_path(args.solver, java=args.java or settings.java)


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    args = build_parser().parse_args(argv)

    level = settings.log_level
    if args.verbose == 1:
        level = "INFO"
    elif args.verbose > 1:
        level = "DEBUG"
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    return args.handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())

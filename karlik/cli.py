"""Command-line driver: build sessions from notation, run procedures, reset robots, show state."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from dotenv import load_dotenv

from karlik.config import EngineConfig, load_config
from karlik.errors import KarlikError
from karlik.program.notation import format_module, parse_notation
from karlik.runtime.robot import ExecutionTracer, Robot
from karlik.runtime.runner import ProcedureRunner
from karlik.session import Session
from karlik.world.grid import Direction, TileKind

logger = logging.getLogger(__name__)

_TILE_CHARS = {
    TileKind.NONE: ".",
    TileKind.WALL: "#",
    TileKind.WHITE_TAG: "w",
    TileKind.GREY_TAG: "g",
    TileKind.BLACK_TAG: "b",
}
_ROBOT_CHARS = {
    Direction.EAST: ">",
    Direction.NORTH: "^",
    Direction.WEST: "<",
    Direction.SOUTH: "v",
}


def _parse_point(text: str) -> Tuple[int, int, Direction]:
    parts = [part.strip() for part in text.split(",")]
    if len(parts) not in (2, 3):
        raise argparse.ArgumentTypeError(f"Expected X,Y[,DIRECTION], got '{text}'")
    try:
        x, y = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid coordinates '{text}'") from exc
    direction = Direction.EAST
    if len(parts) == 3:
        try:
            direction = Direction[parts[2].upper()]
        except KeyError as exc:
            raise argparse.ArgumentTypeError(f"Unknown direction '{parts[2]}'") from exc
    return x, y, direction


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="karlik", description=__doc__)
    parser.add_argument("--config", help="Path to karlik_config.yaml")
    parser.add_argument("--session", help="Session snapshot file (defaults to config session_path)")
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Create a session from a notation file")
    new.add_argument("program", help="Program written in karlik notation")
    new.add_argument("--width", type=int, default=10)
    new.add_argument("--height", type=int, default=10)
    new.add_argument("--robot", action="append", type=_parse_point, default=[],
                     help="Robot placement X,Y[,DIRECTION]; may be repeated")
    new.add_argument("--wall", action="append", type=_parse_point, default=[],
                     help="Wall tile X,Y; may be repeated")

    run = sub.add_parser("run", help="Run a procedure on the robots of a session")
    run.add_argument("ident", help="Procedure identifier")
    run.add_argument("--robot", type=_parse_point,
                     help="Only run the robot at X,Y and report a detailed result")
    run.add_argument("--max-steps", type=int)
    run.add_argument("--trace", action="store_true", default=None)
    run.add_argument("--no-save", action="store_true", help="Do not write the session back")

    reset = sub.add_parser("reset", help="Abandon runs and clear errors of robots")
    reset.add_argument("--robot", type=_parse_point, help="Only reset the robot at X,Y")

    sub.add_parser("show", help="Print the program listing, map and robots")
    return parser


def _render_grid(session: Session) -> str:
    grid = session.grid
    rows = [[_TILE_CHARS[kind] for kind in row] for row in grid.rows()]
    for robot in session.fleet:
        if grid.contains(robot.x, robot.y):
            rows[robot.y][robot.x] = _ROBOT_CHARS[robot.direction]
    return "\n".join("".join(row) for row in rows)


def _robot_status(robot: Robot) -> Dict[str, Any]:
    proc = robot.current_procedure
    stmt = robot.current_statement
    return {
        "position": [robot.x, robot.y],
        "direction": robot.direction.name,
        "error": robot.error.name,
        "busy": robot.is_busy(),
        "procedure": proc.ident if proc is not None else None,
        "index": proc.stmt_index(stmt) if proc is not None and stmt is not None else None,
        "stack_depth": len(robot.stack),
        "stalled": robot.is_stalled(),
    }


def cmd_new(args: argparse.Namespace, config: EngineConfig, session_path: Path) -> int:
    source = Path(args.program).read_text(encoding="utf-8")
    module = parse_notation(
        source, rng=config.make_rng(), max_attempts=config.ident_max_attempts
    )
    session = Session.new(args.width, args.height, module)
    for x, y, _ in args.wall:
        session.grid.set_tile(x, y, TileKind.WALL)
    for x, y, direction in args.robot:
        session.fleet.add(x, y, direction)
    session.save(session_path)
    print(f"Created {session_path} with {len(module)} procedures and {len(session.fleet)} robots.")
    print("Procedures: " + " ".join(proc.ident for proc in module))
    return 0


def cmd_run(args: argparse.Namespace, config: EngineConfig, session_path: Path) -> int:
    trace = config.trace if args.trace is None else args.trace
    max_steps = args.max_steps or config.max_steps
    session = Session.open(session_path)
    proc = session.module.find(args.ident)
    if proc is None:
        print(f"Error: procedure '{args.ident}' not found.", file=sys.stderr)
        return 1

    if args.robot is not None:
        x, y, _ = args.robot
        robot = session.fleet.get(x, y)
        if robot is None:
            print(f"Error: no robot at ({x}, {y}).", file=sys.stderr)
            return 1
        result = ProcedureRunner(max_steps=max_steps).run(robot, proc, capture_trace=trace)
        print(json.dumps(result, indent=2))
        exit_code = 0 if result["success"] else 2
    else:
        tracer = ExecutionTracer(enabled=trace)
        for robot in session.fleet:
            robot.tracer = tracer
        started = session.fleet.run_procedure(proc)
        rounds = 0
        while session.fleet.is_busy() and rounds < max_steps:
            session.fleet.step_all()
            rounds += 1
        logger.info("fleet_run proc=%s started=%s rounds=%s", proc.ident, started, rounds)
        report: Dict[str, Any] = {
            "procedure": proc.ident,
            "started": started,
            "rounds": rounds,
            "robots": [_robot_status(robot) for robot in session.fleet],
            "stalled": [[robot.x, robot.y] for robot in session.fleet.stalled()],
        }
        if trace:
            report["trace"] = tracer.as_list()
        print(json.dumps(report, indent=2))
        exit_code = 0 if not session.fleet.is_busy() and not report["stalled"] else 2

    if not args.no_save:
        session.save(session_path)
    return exit_code


def cmd_reset(args: argparse.Namespace, config: EngineConfig, session_path: Path) -> int:
    session = Session.open(session_path)
    if args.robot is not None:
        x, y, _ = args.robot
        robot = session.fleet.get(x, y)
        if robot is None:
            print(f"Error: no robot at ({x}, {y}).", file=sys.stderr)
            return 1
        robots = [robot]
    else:
        robots = list(session.fleet)
    for robot in robots:
        robot.reset()
        robot.stack.clear()
    session.save(session_path)
    print(f"Reset {len(robots)} robots.")
    return 0


def cmd_show(args: argparse.Namespace, config: EngineConfig, session_path: Path) -> int:
    session = Session.open(session_path)
    print(format_module(session.module), end="")
    print()
    print(_render_grid(session))
    for robot in session.fleet:
        print(json.dumps(_robot_status(robot)))
    return 0


_COMMANDS = {"new": cmd_new, "run": cmd_run, "reset": cmd_reset, "show": cmd_show}


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    session_path = Path(args.session or config.session_path)
    try:
        return _COMMANDS[args.command](args, config, session_path)
    except (KarlikError, OSError, IndexError) as exc:
        logger.error("command_failed command=%s error=%s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


__all__ = ["build_parser", "main"]

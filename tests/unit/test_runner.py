"""Unit tests for :class:`karlik.runtime.runner.ProcedureRunner`."""
from __future__ import annotations

import pytest

from karlik.program.ast import Call, Intrinsic, IntrinsicType, Module, Procedure, Recurse
from karlik.runtime.robot import ExecutionTracer, Robot, RobotError
from karlik.runtime.runner import ProcedureRunner
from karlik.world.grid import Direction, TileGrid


def _proc(module: Module, ident: str, *stmts) -> Procedure:
    proc = Procedure(ident)
    module.append(proc)
    for stmt in stmts:
        proc.body.append(stmt)
    return proc


def test_successful_run_reports_final_state():
    module = Module()
    proc = _proc(
        module,
        "SQUAREUP",
        Intrinsic(IntrinsicType.MOVE),
        Intrinsic(IntrinsicType.TURN_LEFT),
        Intrinsic(IntrinsicType.PUT_GREY),
    )
    robot = Robot(TileGrid(3, 3), 0, 1)

    result = ProcedureRunner().run(robot, proc, metadata={"case": "square"})

    assert result["success"] is True
    assert result["steps"] == 3
    assert result["position"] == [1, 1]
    assert result["direction"] == Direction.NORTH.name
    assert result["errors"] == []
    assert result["trace"] is None
    assert result["metadata"] == {
        "procedure": "SQUAREUP",
        "has_trace": False,
        "case": "square",
        "stack_depth": 0,
    }


def test_robot_error_is_reported_with_location():
    module = Module()
    proc = _proc(
        module,
        "HITSWALL",
        Intrinsic(IntrinsicType.MOVE),
        Intrinsic(IntrinsicType.MOVE),
    )
    robot = Robot(TileGrid(2, 1), 0, 0)

    result = ProcedureRunner().run(robot, proc)

    assert result["success"] is False
    assert result["steps"] == 2
    assert result["errors"] == [
        {
            "type": "execution_error",
            "message": "Robot halted: HIT_WALL",
            "procedure": "HITSWALL",
            "index": 1,
        }
    ]
    assert robot.error == RobotError.HIT_WALL


def test_step_limit_stops_endless_tail_recursion():
    module = Module()
    proc = Procedure("SPINSPIN")
    module.append(proc)
    proc.body.append(Intrinsic(IntrinsicType.TURN_LEFT))
    proc.body.append(Call(proc))
    robot = Robot(TileGrid(1, 1), 0, 0)

    result = ProcedureRunner(max_steps=50).run(robot, proc)

    assert result["success"] is False
    assert result["steps"] == 50
    assert result["errors"][0]["type"] == "step_limit"
    assert result["metadata"]["stack_depth"] == 0
    assert robot.is_busy()


def test_unsupported_statement_is_reported():
    module = Module()
    proc = _proc(module, "RECURSES", Intrinsic(IntrinsicType.TURN_LEFT), Recurse())
    robot = Robot(TileGrid(1, 1), 0, 0)

    result = ProcedureRunner().run(robot, proc)

    assert result["success"] is False
    error = result["errors"][0]
    assert error["type"] == "unsupported_statement"
    assert error["procedure"] == "RECURSES"
    assert error["index"] == 1


def test_busy_robot_is_reported_as_invalid_operation():
    module = Module()
    proc = _proc(module, "AAAAAAAA", Intrinsic(IntrinsicType.TURN_LEFT))
    robot = Robot(TileGrid(1, 1), 0, 0)
    robot.run_procedure(proc)

    result = ProcedureRunner().run(robot, proc)

    assert result["success"] is False
    assert result["steps"] == 0
    assert result["errors"][0]["type"] == "invalid_operation"


def test_trace_is_captured_and_robot_tracer_restored():
    module = Module()
    proc = _proc(module, "AAAAAAAA", Intrinsic(IntrinsicType.TURN_LEFT))
    original = ExecutionTracer(enabled=False)
    robot = Robot(TileGrid(1, 1), 0, 0, tracer=original)

    result = ProcedureRunner().run(robot, proc, capture_trace=True)

    assert robot.tracer is original
    types = [event["type"] for event in result["trace"]]
    assert types == ["run_start", "statement_start", "intrinsic", "run_end"]
    assert result["metadata"]["has_trace"] is True


def test_max_steps_must_be_positive():
    with pytest.raises(ValueError):
        ProcedureRunner(max_steps=0)

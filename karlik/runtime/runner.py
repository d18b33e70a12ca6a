"""High-level harness that drives a robot until its procedure finishes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from karlik.errors import InvalidOperationError, UnsupportedStatementError
from karlik.program.ast import Procedure

from .robot import ExecutionTracer, Robot, RobotError

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10_000


@dataclass
class ExecutionError:
    type: str
    message: str
    procedure: Optional[str] = None
    index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type,
            "message": self.message,
        }
        if self.procedure is not None:
            data["procedure"] = self.procedure
        if self.index is not None:
            data["index"] = self.index
        return data


@dataclass
class RunResult:
    success: bool
    steps: int = 0
    position: Optional[List[int]] = None
    direction: Optional[str] = None
    errors: List[ExecutionError] = field(default_factory=list)
    trace: Optional[List[Dict[str, Any]]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "steps": self.steps,
            "position": self.position,
            "direction": self.direction,
            "errors": [err.to_dict() for err in self.errors],
            "trace": self.trace,
            "metadata": self.metadata,
        }


class ProcedureRunner:
    """Runs a procedure on a robot, stepping until idle, error or the step bound."""

    def __init__(self, *, max_steps: int = DEFAULT_MAX_STEPS):
        if max_steps <= 0:
            raise ValueError("max_steps must be positive")
        self.max_steps = max_steps

    def run(
        self,
        robot: Robot,
        proc: Procedure,
        *,
        capture_trace: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        result = self._run(robot, proc, capture_trace=capture_trace, extra_metadata=metadata or {})
        return result.to_dict()

    # ------------------------------------------------------------------

    def _run(
        self,
        robot: Robot,
        proc: Procedure,
        *,
        capture_trace: bool,
        extra_metadata: Dict[str, Any],
    ) -> RunResult:
        previous_tracer = robot.tracer
        tracer = ExecutionTracer(enabled=capture_trace)
        robot.tracer = tracer
        steps = 0
        metadata: Dict[str, Any] = {"procedure": proc.ident, "has_trace": capture_trace}
        metadata.update(extra_metadata)
        errors: List[ExecutionError] = []
        try:
            robot.run_procedure(proc)
            while robot.is_busy() and robot.error == RobotError.NONE:
                if steps >= self.max_steps:
                    errors.append(
                        self._located_error(
                            "step_limit",
                            f"Procedure did not finish within {self.max_steps} steps",
                            robot,
                        )
                    )
                    break
                robot.step()
                steps += 1
            if robot.error != RobotError.NONE:
                errors.append(
                    self._located_error(
                        "execution_error",
                        f"Robot halted: {robot.error.name}",
                        robot,
                    )
                )
        except UnsupportedStatementError as exc:
            errors.append(self._located_error("unsupported_statement", str(exc), robot))
        except InvalidOperationError as exc:
            errors.append(ExecutionError(type="invalid_operation", message=str(exc)))
        finally:
            robot.tracer = previous_tracer

        metadata["stack_depth"] = len(robot.stack)
        logger.info(
            "procedure_run proc=%s steps=%s success=%s error=%s",
            proc.ident,
            steps,
            not errors,
            robot.error.name,
        )
        return RunResult(
            success=not errors,
            steps=steps,
            position=[robot.x, robot.y],
            direction=robot.direction.name,
            errors=errors,
            trace=tracer.as_list() if capture_trace else None,
            metadata=metadata,
        )

    @staticmethod
    def _located_error(error_type: str, message: str, robot: Robot) -> ExecutionError:
        proc = robot.current_procedure
        stmt = robot.current_statement
        if proc is None or stmt is None:
            return ExecutionError(type=error_type, message=message)
        return ExecutionError(
            type=error_type,
            message=message,
            procedure=proc.ident,
            index=proc.stmt_index(stmt),
        )


__all__ = [
    "DEFAULT_MAX_STEPS",
    "ExecutionError",
    "ProcedureRunner",
    "RunResult",
]

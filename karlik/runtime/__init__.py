"""Robot execution engine."""

from .continuation import Continuation, ContinuationStack
from .fleet import RobotFleet
from .robot import ExecutionTracer, Robot, RobotError
from .runner import ExecutionError, ProcedureRunner, RunResult

__all__ = [
    "Continuation",
    "ContinuationStack",
    "ExecutionError",
    "ExecutionTracer",
    "ProcedureRunner",
    "Robot",
    "RobotError",
    "RobotFleet",
    "RunResult",
]

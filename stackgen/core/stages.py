"""Pipeline stages and run states."""

from __future__ import annotations

from enum import Enum, IntEnum


class Stage(IntEnum):
    """Fixed, ordered points of a generation run.

    The integer value is the execution order.  Every stage is reached exactly
    once per run; CLEANUP is reached even after a fatal failure.
    """

    INIT = 1
    PRE_GENERATE = 2
    GENERATE = 3
    POST_GENERATE = 4
    VALIDATE = 5
    CLEANUP = 6


STANDARD_STAGES: tuple[Stage, ...] = tuple(Stage)


class RunState(str, Enum):
    """Lifecycle of a single ``generate()`` call."""

    CREATED = "created"
    VALIDATING_TARGET = "validating_target"
    RUNNING_PIPELINE = "running_pipeline"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED)

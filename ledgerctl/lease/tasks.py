"""Plain task functions for slotting lease handling into a sequential pipeline.

Any step runner that executes ``Task.run(context)`` in order can use these;
``LeasePipeline`` is the minimal runner used by the CLI itself.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..core.errors import LedgerCtlError
from ..core.log import get_logger, log_event
from .lease import Lease
from .manager import LeaseManager

logger = get_logger(__name__)


@dataclass
class TaskContext:
    """State shared by the steps of one pipeline run."""

    scope: str
    lease: Optional[Lease] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Task:
    title: str
    run: Callable[[TaskContext], None]


def acquire_task(manager: LeaseManager, scope: str) -> Task:
    """Task that acquires the lease for scope and stores it on the context."""

    def run(context: TaskContext) -> None:
        context.lease = manager.acquire(scope)

    return Task(title=f"Acquire lease for {scope}", run=run)


def release_task(lease: Optional[Lease] = None) -> Task:
    """Task that releases the given lease, or the one on the context."""

    def run(context: TaskContext) -> None:
        target = lease if lease is not None else context.lease
        if target is None:
            return
        target.release()
        if context.lease is target:
            context.lease = None

    return Task(title="Release lease", run=run)


class LeasePipeline:
    """Runs steps in order while holding the lease for scope.

    The lease is released after the last step and on every failure path,
    including KeyboardInterrupt. A failing release is logged and does not
    hide an error raised by a step.
    """

    def __init__(self, manager: LeaseManager, scope: str) -> None:
        self._manager = manager
        self._scope = scope
        self._steps: List[Task] = []

    def add_step(self, title: str, run: Callable[[TaskContext], None]) -> "LeasePipeline":
        self._steps.append(Task(title=title, run=run))
        return self

    @property
    def steps(self) -> List[Task]:
        return list(self._steps)

    def run(self) -> TaskContext:
        context = TaskContext(scope=self._scope)
        acquire_task(self._manager, self._scope).run(context)
        try:
            for step in self._steps:
                logger.debug("Running step '%s' for %s", step.title, self._scope)
                step.run(context)
                log_event(
                    logger,
                    "pipeline_step",
                    f"Step '{step.title}' done for {self._scope}",
                    scope=self._scope,
                    step=step.title,
                )
        finally:
            try:
                release_task().run(context)
            except LedgerCtlError as e:
                logger.error("Failed to release lease %s: %s", self._scope, e)
        return context

"""Lease-based mutual exclusion per deployment scope."""

from .holder import LeaseHolderIdentity
from .lease import Lease, LeaseRecord
from .manager import LeaseManager
from .renewal import IntervalLeaseRenewalService
from .tasks import LeasePipeline, TaskContext, acquire_task, release_task

__all__ = [
    "LeaseHolderIdentity",
    "Lease",
    "LeaseRecord",
    "LeaseManager",
    "IntervalLeaseRenewalService",
    "LeasePipeline",
    "TaskContext",
    "acquire_task",
    "release_task",
]

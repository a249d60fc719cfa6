"""Process liveness probing for lease holders."""

import os

import psutil

from .log import get_logger

logger = get_logger(__name__)


def is_process_alive(pid: int) -> bool:
    """Check whether a process with the given PID is running on this machine.

    Signals the process with signal 0. A missing process is dead, a process we
    are not allowed to signal is alive, and a zombie is dead. Never raises:
    any OS error that is not a plain "no such process" counts as alive, so
    that a lease is never reclaimed on an ambiguous answer.
    """
    if pid <= 0:
        return False

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError as e:
        logger.debug("Ambiguous liveness probe for PID %s: %s", pid, e)
        return True

    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.ZombieProcess:
        return False
    except psutil.NoSuchProcess:
        return False
    except (psutil.AccessDenied, psutil.Error, OSError) as e:
        logger.debug("Could not read status of PID %s: %s", pid, e)
        return True

"""Identity of the user, machine and process holding a lease."""

import getpass
import os
import socket
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import DeserializationError, MissingArgumentError
from ..core.process import is_process_alive
from ..utils.codec import from_json_string, to_json_string


@dataclass(frozen=True)
class LeaseHolderIdentity:
    """Immutable (username, hostname, process_id) triple.

    Equality needs all three fields to match. Two identities that share
    username and hostname but differ in PID belong to the same machine
    identity, which is what lets a new process reclaim a lease left behind
    by a crashed one on the same host.
    """

    username: str
    hostname: str
    process_id: int

    def __post_init__(self) -> None:
        if not self.username or not str(self.username).strip():
            raise MissingArgumentError("Lease holder username is required")
        if not self.hostname or not str(self.hostname).strip():
            raise MissingArgumentError("Lease holder hostname is required")
        if not self.process_id or self.process_id <= 0:
            raise MissingArgumentError("Lease holder process id is required")

    @classmethod
    def of(cls, username: str) -> "LeaseHolderIdentity":
        """Identity for the given user on the current host and process."""
        return cls(username=username, hostname=socket.gethostname(), process_id=os.getpid())

    @classmethod
    def default(cls, username: Optional[str] = None) -> "LeaseHolderIdentity":
        """Identity for the current OS user, unless a username override is given."""
        return cls.of(username or getpass.getuser())

    def is_same_machine_identity(self, other: "LeaseHolderIdentity") -> bool:
        """True when both identities share username and hostname."""
        return self.username == other.username and self.hostname == other.hostname

    def is_process_alive(self) -> bool:
        """Probe the holder's process on this machine. Never raises."""
        return is_process_alive(self.process_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "hostname": self.hostname,
            "process_id": self.process_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaseHolderIdentity":
        try:
            return cls(
                username=data["username"],
                hostname=data["hostname"],
                process_id=int(data["process_id"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DeserializationError(f"Invalid lease holder data: {e}") from e

    def to_json(self) -> str:
        return to_json_string(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> "LeaseHolderIdentity":
        return cls.from_dict(from_json_string(json_str, expect_object=True))

    def __str__(self) -> str:
        return f"{self.username}@{self.hostname}[{self.process_id}]"

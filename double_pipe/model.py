import os
import shlex
from dataclasses import dataclass
from enum import IntEnum, StrEnum, auto


class StdStream(IntEnum):
    STDIN = 0
    STDOUT = 1


class Role(StrEnum):
    HEAD = auto()
    RELAY = auto()
    LEG1 = auto()
    LEG2 = auto()


@dataclass(frozen=True)
class Command:
    args: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.args:
            raise ValueError("A command needs at least a program name")

    @property
    def program(self) -> str:
        return self.args[0]

    def __str__(self) -> str:
        return shlex.join(self.args)


@dataclass(frozen=True)
class ChildProcess:
    pid: int
    role: Role
    command: Command | None = None


@dataclass(frozen=True)
class ChildExit:
    pid: int
    role: Role
    exit_code: int

    @staticmethod
    def from_wait_status(child: ChildProcess, wait_status: int) -> "ChildExit":
        exit_code = _to_shell_exit_code(wait_status)
        return ChildExit(pid=child.pid, role=child.role, exit_code=exit_code)


def _to_shell_exit_code(wait_status: int) -> int:
    """
    Translates a raw wait status the way a shell reports it:
    the exit status for normal exits, 128 + signal number for
    children killed by a signal.
    """

    code = os.waitstatus_to_exitcode(wait_status)
    if code < 0:
        return 128 - code
    return code

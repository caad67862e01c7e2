from dataclasses import dataclass, field
from enum import StrEnum

from .model import ChildProcess, Command, Role

USAGE = "Usage: dp <cmd1 arg...> : <cmd2 arg...> : <cmd3 arg...>"


class Diagnostic(StrEnum):
    PIPE = "Error: failed to create pipe."
    FORK = "Error: failed to fork."
    DUP = "Error: failed to duplicate file descriptor."
    EXEC = "Error: execvp failed."


class SyntaxProblem(StrEnum):
    NO_ARGUMENTS = USAGE
    ONE_COMMAND = "Bad command syntax - only one command found"
    TWO_COMMANDS = "Bad command syntax - only two commands found"
    MISSING_THIRD = "Bad command syntax - missing third command"
    EMPTY_COMMAND = "Bad command syntax - empty command"


@dataclass
class BadCommandSyntax:
    problem: SyntaxProblem

    def diagnostic(self) -> str:
        return str(self.problem)


@dataclass
class PipeCreateFailed:
    exception: OSError

    def diagnostic(self) -> str:
        return f"{Diagnostic.PIPE}: {_reason(self.exception)}"


@dataclass
class ForkFailed:
    role: Role
    exception: OSError

    def diagnostic(self) -> str:
        return f"{Diagnostic.FORK}: {_reason(self.exception)}"


@dataclass
class BindFailed:
    fd: int
    target: int
    exception: OSError

    def diagnostic(self) -> str:
        return f"{Diagnostic.DUP}: {_reason(self.exception)}"


@dataclass
class ExecFailed:
    command: Command
    exception: OSError

    def diagnostic(self) -> str:
        return f"{Diagnostic.EXEC}: {self.command.program}: {_reason(self.exception)}"


@dataclass
class SpawnAborted:
    cause: PipeCreateFailed | ForkFailed
    spawned: list[ChildProcess] = field(default_factory=list)

    def diagnostic(self) -> str:
        return self.cause.diagnostic()


def _reason(exception: OSError) -> str:
    return exception.strerror or str(exception)

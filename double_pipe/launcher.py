import logging
import os
import signal
import sys
from typing import NoReturn

from result import Err, Ok, Result

from .errors import BindFailed, ExecFailed, ForkFailed
from .model import ChildProcess, Command, Role, StdStream
from .pipes import Endpoint, EndpointList

_LOGGER = logging.getLogger("launcher")

EXIT_FAILURE = 1
STDERR_FILENO = 2

_RESTORED_SIGNALS = ("SIGPIPE", "SIGXFZ", "SIGXFSZ")


def fork(role: Role) -> Result[int, ForkFailed]:
    # Unflushed buffers would otherwise be written by both processes
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        return Ok(os.fork())
    except OSError as fork_exception:
        _LOGGER.error(f"Failed to fork {role}: {fork_exception}")
        return Err(ForkFailed(role, fork_exception))


def report(problem: BindFailed | ExecFailed) -> None:
    """
    Writes a child-side diagnostic straight to the error stream.
    """

    try:
        os.write(STDERR_FILENO, (problem.diagnostic() + "\n").encode())
    except OSError:
        # swallow, the child is about to exit either way
        pass


def launch(
    command: Command,
    source: Endpoint,
    target: StdStream,
    all_endpoints: EndpointList,
    role: Role,
) -> Result[ChildProcess, ForkFailed]:
    """
    Forks a child running command with source bound onto its target stream.

    Returns in the parent only; the child either becomes command or exits
    with a failure status after printing a diagnostic.
    """

    match fork(role):
        case Ok(0):
            try:
                _exec_child(command, source, target, all_endpoints)
            finally:
                os._exit(EXIT_FAILURE)
        case Ok(pid):
            _LOGGER.debug(f"Launched {role} pid {pid}: {command}")
            return Ok(ChildProcess(pid=pid, role=role, command=command))
        case Err() as err:
            return err


def _exec_child(
    command: Command,
    source: Endpoint,
    target: StdStream,
    all_endpoints: EndpointList,
) -> NoReturn:
    # The interpreter ignores these; exec'd programs expect the defaults
    for name in _RESTORED_SIGNALS:
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), signal.SIG_DFL)

    try:
        source.bind(target)
    except OSError as bind_exception:
        report(BindFailed(source.fd, target, bind_exception))
        os._exit(EXIT_FAILURE)

    # Binding left source redundant, it is closed with the rest
    all_endpoints.close_all()

    try:
        os.execvp(command.program, command.args)
    except OSError as exec_exception:
        report(ExecFailed(command, exec_exception))
    os._exit(EXIT_FAILURE)

import logging
import os
from enum import Enum, StrEnum, auto

from result import Err, Ok, Result

from .errors import SpawnAborted
from .launcher import launch
from .model import ChildExit, ChildProcess, Command, Role, StdStream
from .pipes import make_pipes
from .relay import BLOCK_SIZE, spawn_relay

_LOGGER = logging.getLogger("supervisor")


class SupervisorState(StrEnum):
    IDLE = auto()
    PIPES_CREATED = auto()
    HEAD_SPAWNED = auto()
    RELAY_SPAWNED = auto()
    LEGS_SPAWNED = auto()
    CLEANUP = auto()
    REAPING = auto()
    DONE = auto()


_STATE_ORDER = list(SupervisorState)


class ExitPolicy(Enum):
    ZERO = "zero"
    WORST = "worst"

    def exit_code(self, exits: list[ChildExit]) -> int:
        match self:
            case ExitPolicy.ZERO:
                return 0
            case ExitPolicy.WORST:
                return max((child_exit.exit_code for child_exit in exits), default=0)


class Supervisor:
    """
    Runs head | relay | (leg1, leg2) and reaps all four children.

    Every pipe endpoint the parent holds is closed once the legs are
    spawned, so each reader sees end-of-stream when its writer is done.
    """

    block_size: int
    state: SupervisorState
    children: list[ChildProcess]

    def __init__(self, block_size: int = BLOCK_SIZE) -> None:
        self.block_size = block_size
        self.state = SupervisorState.IDLE
        self.children = []

    def run(
        self, head: Command, leg1: Command, leg2: Command
    ) -> Result[list[ChildExit], SpawnAborted]:
        if self.state is not SupervisorState.IDLE:
            raise RuntimeError(f"Supervisor already used, state is {self.state}")

        match make_pipes(leg_count=2):
            case Ok(pipes):
                self._advance(SupervisorState.PIPES_CREATED)
            case Err(pipe_error):
                return Err(SpawnAborted(pipe_error))

        with pipes.all_endpoints() as endpoints:
            match launch(head, pipes.head_to_relay.write, StdStream.STDOUT, endpoints, Role.HEAD):
                case Ok(child):
                    self._spawned(child, SupervisorState.HEAD_SPAWNED)
                case Err(fork_error):
                    return Err(SpawnAborted(fork_error, list(self.children)))

            match spawn_relay(pipes, self.block_size):
                case Ok(child):
                    self._spawned(child, SupervisorState.RELAY_SPAWNED)
                case Err(fork_error):
                    return Err(SpawnAborted(fork_error, list(self.children)))

            for leg, pipe, role in zip(
                (leg1, leg2), pipes.relay_to_legs, (Role.LEG1, Role.LEG2)
            ):
                match launch(leg, pipe.read, StdStream.STDIN, endpoints, role):
                    case Ok(child):
                        self.children.append(child)
                    case Err(fork_error):
                        return Err(SpawnAborted(fork_error, list(self.children)))
            self._advance(SupervisorState.LEGS_SPAWNED)

            self._advance(SupervisorState.CLEANUP)
            endpoints.close_all()

        self._advance(SupervisorState.REAPING)
        exits = [self._reap(child) for child in self.children]
        self._advance(SupervisorState.DONE)
        return Ok(exits)

    def _spawned(self, child: ChildProcess, state: SupervisorState) -> None:
        self.children.append(child)
        self._advance(state)

    def _advance(self, state: SupervisorState) -> None:
        position = _STATE_ORDER.index(self.state)
        if position + 1 >= len(_STATE_ORDER) or _STATE_ORDER[position + 1] != state:
            raise RuntimeError(f"Cannot move from {self.state} to {state}")
        _LOGGER.debug(f"{self.state} -> {state}")
        self.state = state

    def _reap(self, child: ChildProcess) -> ChildExit:
        _, wait_status = os.waitpid(child.pid, 0)
        child_exit = ChildExit.from_wait_status(child, wait_status)
        _LOGGER.debug(f"Reaped {child.role} pid {child.pid}: exit code {child_exit.exit_code}")
        return child_exit

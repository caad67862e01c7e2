import enum
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Self

from result import Err, Ok, Result

from .errors import PipeCreateFailed

_LOGGER = logging.getLogger("pipes")


class Mode(enum.Enum):
    R = 1
    W = 2


class Endpoint:
    """
    One end of a pipe, owned by exactly one role in a process.

    Closing is idempotent, so an endpoint released early and again on
    scope exit is only closed once. After a fork the child works on its
    own copy and closing it there does not affect the parent's copy.
    """

    fd: int
    mode: Mode
    closed: bool

    def __init__(self, fd: int, mode: Mode) -> None:
        self.fd = fd
        self.mode = mode
        self.closed = False

    def read(self, length: int) -> bytes:
        return os.read(self.fd, length)

    def write_all(self, data: bytes) -> int:
        """
        Writes every byte of data, retrying short writes with the remainder.
        """

        view = memoryview(data)
        while view:
            written = os.write(self.fd, view)
            view = view[written:]
        return len(data)

    def bind(self, target: int) -> None:
        os.dup2(self.fd, target)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            os.close(self.fd)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Endpoint(fd={self.fd}, mode={self.mode.name}, {state})"

    def __enter__(self) -> Self:
        return self

    def __exit__(self, type, value, tb) -> None:
        self.close()


class EndpointList:
    endpoints: list[Endpoint]

    def __init__(self, endpoints: Iterable[Endpoint] = ()) -> None:
        self.endpoints = list(endpoints)

    def close_all(self) -> None:
        endpoints = self.endpoints
        self.endpoints = []
        for endpoint in endpoints:
            endpoint.close()

    def close_all_except(self, *keep: Endpoint) -> None:
        for endpoint in self.endpoints:
            if not any(endpoint is kept for kept in keep):
                endpoint.close()

    def __iter__(self):
        return iter(self.endpoints)

    def __len__(self) -> int:
        return len(self.endpoints)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, type, value, tb) -> None:
        self.close_all()


@dataclass
class Pipe:
    read: Endpoint
    write: Endpoint

    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        return (self.read, self.write)


@dataclass
class PipeSet:
    head_to_relay: Pipe
    relay_to_legs: list[Pipe]

    def all_endpoints(self) -> EndpointList:
        endpoints = list(self.head_to_relay.endpoints())
        for pipe in self.relay_to_legs:
            endpoints.extend(pipe.endpoints())
        return EndpointList(endpoints)

    @property
    def relay_source(self) -> Endpoint:
        return self.head_to_relay.read

    @property
    def relay_sinks(self) -> list[Endpoint]:
        return [pipe.write for pipe in self.relay_to_legs]


def try_pipe() -> Result[Pipe, PipeCreateFailed]:
    try:
        read_fd, write_fd = os.pipe()
    except OSError as pipe_exception:
        _LOGGER.error(f"Failed to create pipe: {pipe_exception}")
        return Err(PipeCreateFailed(pipe_exception))

    _LOGGER.debug(f"Made pipe r={read_fd} w={write_fd}")
    return Ok(Pipe(Endpoint(read_fd, Mode.R), Endpoint(write_fd, Mode.W)))


def make_pipes(leg_count: int = 2) -> Result[PipeSet, PipeCreateFailed]:
    """
    Allocates the head-to-relay pipe and one relay-to-leg pipe per leg.
    Either every pipe is created or none is left open.
    """

    pipes: list[Pipe] = []
    for _ in range(leg_count + 1):
        match try_pipe():
            case Ok(pipe):
                pipes.append(pipe)
            case Err() as err:
                EndpointList(e for pipe in pipes for e in pipe.endpoints()).close_all()
                return err

    return Ok(PipeSet(head_to_relay=pipes[0], relay_to_legs=pipes[1:]))

import logging
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass, field

from result import Err, Ok, Result

from .errors import ForkFailed
from .launcher import EXIT_FAILURE, fork
from .model import ChildProcess, Role
from .pipes import Endpoint, EndpointList, PipeSet

_LOGGER = logging.getLogger("relay")

BLOCK_SIZE = 1024
EXIT_SUCCESS = 0


@dataclass
class RelayStats:
    bytes_read: int = 0
    blocks: int = 0
    dropped_sinks: list[int] = field(default_factory=list)


def relay(source: Endpoint, sinks: Sequence[Endpoint], block_size: int = BLOCK_SIZE) -> RelayStats:
    """
    Copies source to every sink until end-of-stream.

    Each block goes to the sinks in order and is fully written to one sink
    before the next. A sink whose reader has gone away is dropped and the
    remaining sinks keep receiving data. Returns once the source is drained
    or no sink is left.
    """

    stats = RelayStats()
    live = list(sinks)
    while live:
        block = source.read(block_size)
        if not block:
            break

        stats.bytes_read += len(block)
        stats.blocks += 1
        for sink in list(live):
            try:
                sink.write_all(block)
            except BrokenPipeError:
                _LOGGER.warning(f"Reader of fd {sink.fd} went away, dropping it")
                live.remove(sink)
                sink.close()
                stats.dropped_sinks.append(sink.fd)

    _LOGGER.debug(f"Relayed {stats.bytes_read} bytes in {stats.blocks} blocks")
    return stats


def spawn_relay(pipes: PipeSet, block_size: int = BLOCK_SIZE) -> Result[ChildProcess, ForkFailed]:
    match fork(Role.RELAY):
        case Ok(0):
            try:
                _run_relay_child(pipes, block_size)
            finally:
                os._exit(EXIT_FAILURE)
        case Ok(pid):
            _LOGGER.debug(f"Launched relay pid {pid}")
            return Ok(ChildProcess(pid=pid, role=Role.RELAY))
        case Err() as err:
            return err


def _run_relay_child(pipes: PipeSet, block_size: int) -> None:
    # Default SIGPIPE would kill the relay when one leg exits early
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

    source = pipes.relay_source
    sinks = pipes.relay_sinks
    pipes.all_endpoints().close_all_except(source, *sinks)

    with source, EndpointList(sinks):
        relay(source, sinks, block_size)

    os._exit(EXIT_SUCCESS)

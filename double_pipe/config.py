import argparse
import logging
import pathlib
from argparse import ArgumentParser, Namespace
from dataclasses import dataclass

from .relay import BLOCK_SIZE
from .supervisor import ExitPolicy


@dataclass
class DoublePipeConfig:
    log_level: int
    log_file: str
    exit_policy: ExitPolicy
    block_size: int
    command_line: list[str]


class _ArgNamespace(Namespace):
    log_level: str | None
    log_file: pathlib.Path | None
    exit_status: str
    block_size: int
    command_line: list[str]


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _parse_args(argv: list[str]) -> _ArgNamespace:
    arg_parser = ArgumentParser(
        prog="dp",
        usage="%(prog)s [options] <cmd1 arg...> : <cmd2 arg...> : <cmd3 arg...>",
        description="Pipe the output of one command into the input of two others",
    )

    arg_parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=list(logging.getLevelNamesMapping()),
        help="Log level, defaults to WARNING",
    )
    arg_parser.add_argument(
        "--log-file",
        type=pathlib.Path,
        help="Log file, defaults to /dev/null",
    )
    arg_parser.add_argument(
        "--exit-status",
        choices=[policy.value for policy in ExitPolicy],
        default=ExitPolicy.ZERO.value,
        help="zero: exit 0 once every child is reaped; worst: exit with the worst child status",
    )
    arg_parser.add_argument(
        "--block-size",
        type=_positive_int,
        default=BLOCK_SIZE,
        help=f"Bytes the relay reads at a time, defaults to {BLOCK_SIZE}",
    )
    arg_parser.add_argument(
        "command_line",
        nargs=argparse.REMAINDER,
        help="Three commands separated by ':'",
    )

    return arg_parser.parse_args(argv[1:], _ArgNamespace())


def parse_config(argv: list[str]) -> DoublePipeConfig:
    args = _parse_args(argv)

    return DoublePipeConfig(
        log_level=logging.getLevelNamesMapping()[args.log_level or "WARNING"],
        log_file=str(args.log_file or "/dev/null"),
        exit_policy=ExitPolicy(args.exit_status),
        block_size=args.block_size,
        command_line=list(args.command_line),
    )

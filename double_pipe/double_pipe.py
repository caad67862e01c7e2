#!/usr/bin/env python3

import logging
import os
import sys

from result import Err, Ok

from . import config as dp_config
from .command import parse_commands
from .config import DoublePipeConfig
from .launcher import EXIT_FAILURE
from .supervisor import Supervisor

_LOGGER = logging.getLogger(__name__)


def main(config: DoublePipeConfig) -> int:
    logging.basicConfig(level=config.log_level, filename=config.log_file)

    match parse_commands(config.command_line):
        case Ok((head, leg1, leg2)):
            pass
        case Err(syntax_error):
            sys.stderr.write(syntax_error.diagnostic() + "\n")
            return EXIT_FAILURE

    _LOGGER.info(f"=== Starting dp {os.getpid()}: {head} : {leg1} : {leg2} ===")

    match Supervisor(config.block_size).run(head, leg1, leg2):
        case Ok(exits):
            pass
        case Err(aborted):
            sys.stderr.write(aborted.diagnostic() + "\n")
            return EXIT_FAILURE

    for child_exit in exits:
        if child_exit.exit_code != 0:
            _LOGGER.warning(f"{child_exit.role} exited with {child_exit.exit_code}")

    return config.exit_policy.exit_code(exits)


def cli() -> int:
    return main(dp_config.parse_config(sys.argv))


if __name__ == "__main__":
    sys.exit(cli())

from collections.abc import Sequence

from result import Err, Ok, Result

from .errors import BadCommandSyntax, SyntaxProblem
from .model import Command

SEPARATOR = ":"


def parse_commands(
    argv: Sequence[str],
) -> Result[tuple[Command, Command, Command], BadCommandSyntax]:
    """
    Splits argv on the first two ":" tokens into head, leg1 and leg2.

    Anything after the second separator belongs to the last command,
    further ":" tokens included.
    """

    if not argv:
        return Err(BadCommandSyntax(SyntaxProblem.NO_ARGUMENTS))

    tokens = list(argv)
    if SEPARATOR not in tokens:
        return Err(BadCommandSyntax(SyntaxProblem.ONE_COMMAND))
    first = tokens.index(SEPARATOR)
    head, rest = tokens[:first], tokens[first + 1 :]

    if SEPARATOR not in rest:
        return Err(BadCommandSyntax(SyntaxProblem.TWO_COMMANDS))
    second = rest.index(SEPARATOR)
    leg1, leg2 = rest[:second], rest[second + 1 :]

    if not leg2:
        return Err(BadCommandSyntax(SyntaxProblem.MISSING_THIRD))
    if not head or not leg1:
        return Err(BadCommandSyntax(SyntaxProblem.EMPTY_COMMAND))

    return Ok((Command(tuple(head)), Command(tuple(leg1)), Command(tuple(leg2))))

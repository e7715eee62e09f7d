"""Slash-command parsing. Every recognized token maps to one Command member."""

from dataclasses import dataclass
from enum import Enum


class Command(Enum):
    QUIT = "quit"
    NAME = "name"
    CLEAR = "clear"
    HELP = "help"
    UNKNOWN = "unknown"


# Command dict, tokens are matched lowercased
COMMAND_TOKENS: dict[str, Command] = {
    "/quit": Command.QUIT,
    "/exit": Command.QUIT,
    "/q": Command.QUIT,
    "/name": Command.NAME,
    "/clear": Command.CLEAR,
    "/help": Command.HELP,
    "/?": Command.HELP,
}


@dataclass(frozen=True)
class ParsedCommand:
    command: Command
    token: str
    arg: str = ""


def parse_command(line: str) -> ParsedCommand:
    """Splits '/cmd rest of line' into a Command, its token and trimmed argument"""
    parts = line.strip().split(None, 1)
    token = parts[0].lower() if parts else ""
    arg = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCommand(COMMAND_TOKENS.get(token, Command.UNKNOWN), token, arg)

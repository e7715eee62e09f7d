"""
Per-connection session engine.

A session greets the client, then reads one line at a time and treats it as
either a slash-command or a chat turn. Chat turns go to the completion
endpoint with the whole conversation; both sides of a successful exchange are
written to the client's transcript. The session ends on a quit command or when
the client closes its side of the stream.
"""

import asyncio
import logging
from enum import Enum

from telllm.chat_log import ChatLogger
from telllm.commands import Command, ParsedCommand, parse_command
from telllm.completion import CompletionClient, CompletionError
from telllm.globals import (
    FAREWELL,
    HELP_TEXT,
    PROMPT,
    THINKING_INDICATOR,
    WELCOME_BANNER,
    log_exception,
)
from telllm.session_manager import SessionManager

AI_LABEL = "AI"


async def read_line(reader) -> bytes:
    """One newline-terminated line of any length. Empty bytes at end of input."""
    chunks = []
    while True:
        try:
            chunks.append(await reader.readuntil(b"\n"))
            break
        except asyncio.IncompleteReadError as e:
            chunks.append(e.partial)
            break
        except asyncio.LimitOverrunError as e:
            # Longer than the reader buffer, take what is buffered and go on
            chunks.append(await reader.readexactly(e.consumed))
    return b"".join(chunks)


class SessionState(Enum):
    GREETING = "greeting"
    ACTIVE = "active"
    TERMINATED = "terminated"


class Session:
    """Drives one client's conversation over a line-oriented stream"""

    def __init__(
        self,
        host: str,
        completion: CompletionClient,
        system_prompt: str,
        logs_dir: str,
    ):
        self.host = host
        self.completion = completion
        self.logs_dir = logs_dir
        self.state = SessionState.GREETING
        self.conversation = SessionManager(system_prompt)
        self.logger: ChatLogger | None = None
        self.writer = None

        # Every Command member needs a handler here
        self.commands = {
            Command.QUIT: self.quit,
            Command.NAME: self.set_name,
            Command.CLEAR: self.clear_history,
            Command.HELP: self.show_help,
            Command.UNKNOWN: self.unknown_command,
        }

    # <~~MAIN LOOP~~>
    async def run(self, reader, writer):
        """
        Runs the session until quit or end of input.

        Storage failures propagate and end the session without the closing
        banner. A client dropping the connection ends it like end of input.
        """
        self.writer = writer
        self.logger = ChatLogger(self.logs_dir, self.host)
        self.logger.mark_session_start()

        try:
            await self.greet()
            while self.state is SessionState.ACTIVE:
                raw = await read_line(reader)
                if not raw:
                    break
                await self.handle_line(raw.decode("utf-8", errors="replace"))
        except ConnectionError as e:
            logging.info(f"Client {self.host} dropped the connection: {e}")

        self.finish()

    async def send(self, text: str):
        self.writer.write(text.encode("utf-8"))
        await self.writer.drain()

    async def greet(self):
        """Sends the banner, greeting returning users found in the summary"""
        name = self.logger.read_summary().get("name")
        if name:
            self.conversation.set_user_name(name)

        await self.send(WELCOME_BANNER)
        if name:
            await self.send(f"\nWelcome back, {name}!\n\n")
        await self.send("\n" + PROMPT)
        self.state = SessionState.ACTIVE

    async def handle_line(self, line: str):
        """Routes one raw input line"""
        text = line.strip()
        if not text:
            await self.send(PROMPT)
        elif text.startswith("/"):
            await self.handle_command(text)
        else:
            await self.handle_chat(text)

    def finish(self):
        """Closes the transcript and stamps last_seen"""
        self.state = SessionState.TERMINATED
        self.logger.mark_session_end()
        self.logger.touch_last_seen()
        logging.info(
            f"Session for {self.host} ended after "
            f"{self.conversation.count_turns()} turn(s)"
        )

    # <~~CHAT~~>
    async def handle_chat(self, text: str):
        """One user turn. A failed completion leaves no assistant turn behind."""
        self.logger.append_line(self.conversation.display_name, text)
        self.conversation.append_message("user", text)

        # Overwritten by the reply line on terminals that honor \r
        await self.send(THINKING_INDICATOR)

        try:
            reply = await self.completion.complete(self.conversation.history)
        except CompletionError as e:
            logging.warning(f"LLM error for {self.host}: {e}")
            await self.send(f"AI: Sorry, I encountered an error: {e}\n\n{PROMPT}")
            return

        await self.send(f"AI: {reply}\n")
        self.conversation.append_message("assistant", reply)
        self.logger.append_line(AI_LABEL, reply)
        await self.send("\n" + PROMPT)

    # <~~COMMANDS~~>
    async def handle_command(self, text: str):
        parsed = parse_command(text)
        message = self.commands[parsed.command](parsed)
        if self.state is SessionState.TERMINATED:
            await self.send(message)
        else:
            await self.send(f"{message}\n{PROMPT}")

    def quit(self, parsed: ParsedCommand) -> str:
        self.state = SessionState.TERMINATED
        return FAREWELL

    def set_name(self, parsed: ParsedCommand) -> str:
        """Names the user, updates the system turn and persists the name"""
        name = parsed.arg
        if not name:
            return "\nUsage: /name <your name>\n"

        self.conversation.set_user_name(name)
        try:
            self.logger.upsert_summary("name", name)
        except OSError as e:
            log_exception(e, f"Error saving name for {self.host}")
            return f"\nError saving name: {e}\n"
        logging.info(f"User {self.host} set name to: {name}")
        return f"\nName set to: {name}\n"

    def clear_history(self, parsed: ParsedCommand) -> str:
        self.conversation.clear()
        logging.info(f"User {self.host} cleared conversation")
        return "\nConversation cleared.\n"

    def show_help(self, parsed: ParsedCommand) -> str:
        return HELP_TEXT

    def unknown_command(self, parsed: ParsedCommand) -> str:
        return f"\nUnknown command: {parsed.token}\n"

#!/usr/bin/env python3

# <~~~~~~~~~~>
#    TELLLM
# <~~~~~~~~~~>

import argparse
import asyncio
import logging
import sys

from telllm import __version__
from telllm.completion import CompletionClient
from telllm.config import Config
from telllm.globals import (
    CONSOLE,
    init_logger,
    log_exception,
    retrieve_key,
    setup_keyring_backend,
)
from telllm.session import Session


def peer_host(writer: asyncio.StreamWriter) -> str:
    """Remote IP of a connection, without the port"""
    peer = writer.get_extra_info("peername")
    if isinstance(peer, (tuple, list)) and peer:
        return str(peer[0])
    return str(peer or "unknown")


class Server:
    """Accepts connections and runs one independent Session per connection"""

    def __init__(self, config: Config, completion: CompletionClient):
        self.config = config
        self.completion = completion

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        host = peer_host(writer)
        logging.info(f"New connection from {host}")
        session = Session(
            host, self.completion, self.config.system_prompt, self.config.logs_dir
        )
        try:
            await session.run(reader, writer)
        except Exception as e:
            log_exception(e, f"Session error for {host}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
            logging.info(f"Connection closed: {host}")

    async def serve(self):
        server = await asyncio.start_server(
            self.handle_client, host="0.0.0.0", port=self.config.port
        )
        addresses = ", ".join(
            f"{sock.getsockname()[0]}:{sock.getsockname()[1]}"
            for sock in server.sockets
        )
        logging.info(f"Listening on {addresses}")
        try:
            async with server:
                await server.serve_forever()
        finally:
            await self.completion.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="telllm",
        description="Telnet server for LLM chat with OpenAI-compatible API",
    )
    parser.add_argument("-p", "--port", type=int, help="Port to listen on")
    parser.add_argument("-e", "--endpoint", help="LLM API endpoint")
    parser.add_argument("-m", "--model", help="Model name")
    parser.add_argument("-k", "--api-key", dest="api_key", help="API key (optional)")
    parser.add_argument(
        "-s", "--system-prompt", dest="system_prompt", help="Custom system prompt"
    )
    parser.add_argument("--logs-dir", dest="logs_dir", help="Logs directory")
    parser.add_argument(
        "--timeout", type=float, help="Seconds to wait for a completion"
    )
    parser.add_argument("--log-level", dest="log_level", help="Server log level")
    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist the effective settings as the new defaults",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Settings file first, command line values on top"""
    config = Config()
    config.load()
    overrides = vars(args).copy()
    save = overrides.pop("save", False)
    config.apply_overrides(overrides)
    if save:
        config.save()
    return config


# <~~MAIN FLOW~~>
def main(argv: list[str] | None = None):
    args = parse_args(argv)
    try:
        config = build_config(args)
        init_logger(config.log_level)
        setup_keyring_backend()

        CONSOLE.print(f"[bold medium_orchid]telllm {__version__}[/bold medium_orchid]")
        CONSOLE.print(f"[cyan]LLM endpoint:[/cyan] {config.endpoint}")
        CONSOLE.print(f"[cyan]Model:[/cyan] {config.model}")
        CONSOLE.print(f"[cyan]Logs directory:[/cyan] {config.logs_dir}")
        logging.info(f"Starting telllm server on port {config.port}")

        completion = CompletionClient(
            config.endpoint,
            config.model,
            api_key=retrieve_key(config.api_key),
            timeout=config.timeout,
        )
        asyncio.run(Server(config, completion).serve())
    except KeyboardInterrupt:
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except Exception as e:
        log_exception(e, "Critical startup error")
        CONSOLE.print(f"[red]CRITICAL ERROR:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

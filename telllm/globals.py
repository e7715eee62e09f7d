"""Global functions and variables, used across various modules."""

import getpass
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring import get_password
from keyring.backends import null
from platformdirs import user_data_dir
from rich.console import Console
from rich.logging import RichHandler

# Default directories and system details
APP_DIR = user_data_dir("telllm")
CONFIG_DIR = os.path.join(APP_DIR, "config")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")
USER_NAME = getpass.getuser()
KEYRING_SERVICE = "telllmAPI"

# Terminal integration
CONSOLE = Console()

# Text protocol strings sent to clients
WELCOME_BANNER = r"""
╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║   ████████╗███████╗██╗     ██╗     ██╗     ███╗   ███╗        ║
║   ╚══██╔══╝██╔════╝██║     ██║     ██║     ████╗ ████║        ║
║      ██║   █████╗  ██║     ██║     ██║     ██╔████╔██║        ║
║      ██║   ██╔══╝  ██║     ██║     ██║     ██║╚██╔╝██║        ║
║      ██║   ███████╗███████╗███████╗███████╗██║ ╚═╝ ██║        ║
║      ╚═╝   ╚══════╝╚══════╝╚══════╝╚══════╝╚═╝     ╚═╝        ║
║                                                               ║
║           Telnet LLM Chat Server                              ║
╚═══════════════════════════════════════════════════════════════╝

Commands:
  /name <your name>  - Set your name
  /clear             - Clear conversation history
  /help              - Show this help
  /quit              - Disconnect

Type your message and press Enter to chat with the AI.
"""

HELP_TEXT = (
    "\nCommands:\n"
    "  /name <your name>  - Set your name\n"
    "  /clear             - Clear conversation history\n"
    "  /help              - Show this help\n"
    "  /quit              - Disconnect\n"
)

PROMPT = "You: "
THINKING_INDICATOR = "\nAI: (thinking...)\r"
FAREWELL = "\nGoodbye!\n"


def init_logger(level: str = "INFO"):
    """Initializes the logging system."""
    os.makedirs(LOG_DIR, exist_ok=True)
    date_str = datetime.now().strftime("%Y%m%d")
    # Output example: telllm_20251109.log
    log_path = os.path.join(LOG_DIR, f"telllm_{date_str}.log")
    # Max of 3 backups, max size of 1MB
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    # The terminal handler formats timestamps and levels itself
    terminal = RichHandler(console=CONSOLE, show_path=False)
    terminal.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler, terminal],
    )


def log_exception(e: Exception, context: str = ""):
    """Creates a full formatted traceback string and writes it to a log file"""
    import traceback

    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    msg = f"{context}\n{tb}" if context else tb
    logging.error(msg)


def setup_keyring_backend():
    """Safely detects a keyring backend."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def retrieve_key(configured: str = "") -> str:
    """
    Resolves the API key for the completion endpoint.\n
    Prio: configured value -> OPENAI_API_KEY env variable -> OS keyring entry.
    An empty string means no key, so no Authorization header is sent.
    """
    if configured:
        return configured
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        try:
            api_key = get_password(KEYRING_SERVICE, USER_NAME) or ""
        except Exception as e:
            logging.warning(f"Keyring lookup failed: {e}")
            api_key = ""
    return api_key

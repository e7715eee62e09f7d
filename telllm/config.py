"""Handles all server configuration."""

import json
import os

from telllm.globals import CONFIG_FILE


class Config:
    """Server configuration variables"""

    def __init__(self):
        # Default values
        self.port: int = 2323
        self.endpoint: str = "http://localhost:8080/v1"
        self.model: str = "default"
        self.api_key: str = ""
        self.system_prompt: str = (
            "You are a helpful AI assistant. Be concise and friendly."
        )
        self.logs_dir: str = "logs"
        self.timeout: float = 120.0
        self.log_level: str = "INFO"

    def save(self):
        """Saves any config changes to the config file."""
        os.makedirs(os.path.dirname(CONFIG_FILE), exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(self.__dict__, f, indent=2)

    def load(self):
        """Loads the config file."""
        if not os.path.exists(CONFIG_FILE):
            self.save()
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, val in data.items():
            # Stale keys from older settings files are ignored
            if hasattr(self, key):
                setattr(self, key, val)

    def apply_overrides(self, overrides: dict):
        """Applies command line values that were actually given."""
        for key, val in overrides.items():
            if val is not None and hasattr(self, key):
                setattr(self, key, val)

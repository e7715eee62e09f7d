"""Conversation history management for one connection."""

from openai.types.chat import ChatCompletionMessageParam

DEFAULT_DISPLAY_NAME = "User"


class SessionManager:
    """Owns one client's conversation history and user identity"""

    def __init__(self, system_prompt: str):
        self.base_prompt = system_prompt
        self.user_name: str | None = None
        self.history: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": self.build_system_prompt()}
        ]

    def build_system_prompt(self) -> str:
        """Base prompt, plus an addressing instruction once the user is named"""
        if not self.user_name:
            return self.base_prompt
        return (
            f"{self.base_prompt}\n\nThe user's name is {self.user_name}. "
            "Address them by name when appropriate."
        )

    def set_user_name(self, name: str):
        """Sets the user's name and rebuilds the system turn"""
        self.user_name = name
        self.history[0] = {"role": "system", "content": self.build_system_prompt()}

    @property
    def display_name(self) -> str:
        return self.user_name or DEFAULT_DISPLAY_NAME

    def append_message(self, role: str, content: str):
        """Append content to the conversation history"""
        self.history.append({"role": role, "content": content})  # pyright: ignore

    def clear(self):
        """Drops every turn except the current system prompt"""
        del self.history[1:]

    def count_turns(self) -> int:
        """Calculates and returns the turn number"""
        return sum(1 for m in self.history if m["role"] == "user")

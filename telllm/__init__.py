"""Telnet gateway for OpenAI-compatible chat completion endpoints."""

__version__ = "0.1.0"

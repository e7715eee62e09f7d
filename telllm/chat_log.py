"""Per-client transcript and summary I/O."""

# Layout under the logs directory:
#   <identity>/chats/<DD-MM-YY>.txt   append-only daily transcripts
#   <identity>/summary.txt            "key: value" lines, rewritten whole

import os
import re
import tempfile
from datetime import datetime

SUMMARY_SEPARATOR = ": "
LAST_SEEN = "last_seen"
STAMP_FORMAT = "%d-%m-%Y %H:%M:%S"

# Anything outside this set would be unsafe or awkward in a directory name
UNSAFE_CHARS = re.compile(r"[^0-9A-Za-z._-]")


def client_identity(host: str) -> str:
    """Normalizes a remote address into a filesystem-safe token."""
    token = UNSAFE_CHARS.sub("-", host.strip())
    # Never let an address resolve to the logs directory itself or its parent
    if not token.strip("."):
        token = token.replace(".", "-") or "unknown"
    return token


class ChatLogger:
    """Handles transcript and summary I/O for one client identity"""

    def __init__(self, logs_dir: str, host: str):
        self.identity = client_identity(host)
        self.client_dir = os.path.join(logs_dir, self.identity)
        self.chats_dir = os.path.join(self.client_dir, "chats")
        # Fatal for the session when storage is unavailable
        os.makedirs(self.chats_dir, exist_ok=True)

    @property
    def summary_path(self) -> str:
        return os.path.join(self.client_dir, "summary.txt")

    def chat_file_path(self) -> str:
        """Today's transcript, recomputed so long sessions roll over at midnight"""
        date_str = datetime.now().strftime("%d-%m-%y")
        return os.path.join(self.chats_dir, f"{date_str}.txt")

    def _append(self, text: str):
        with open(self.chat_file_path(), "a", encoding="utf-8") as f:
            f.write(text)

    # <~~TRANSCRIPT~~>
    def append_line(self, role_label: str, content: str):
        """Appends one timestamped line to today's transcript"""
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._append(f"[{timestamp}] {role_label.upper()}: {content}\n")

    def mark_session_start(self):
        self._append(f"\n--- Session started at {_now_stamp()} ---\n\n")

    def mark_session_end(self):
        self._append(f"\n--- Session ended at {_now_stamp()} ---\n\n")

    # <~~SUMMARY~~>
    def _read_entries(self) -> list[tuple[str, str]]:
        """Reads summary pairs in file order, keys in their stored casing"""
        try:
            # Undecodable bytes are replaced, the next rewrite repairs the file
            with open(self.summary_path, "r", encoding="utf-8", errors="replace") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            return []

        entries = []
        for line in lines:
            # Hand-edited "key:value" lines are read too, and rewritten as "key: value"
            key, sep, value = line.partition(":")
            if sep:
                entries.append((key, value.removeprefix(" ")))
        return entries

    def _write_entries(self, entries: list[tuple[str, str]]):
        """Replaces the summary file in one rename. Concurrent writers: last one wins."""
        content = "\n".join(f"{k}{SUMMARY_SEPARATOR}{v}" for k, v in entries)
        fd, tmp = tempfile.mkstemp(
            dir=self.client_dir, prefix="summary.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content + "\n")
            os.replace(tmp, self.summary_path)
        except OSError:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def read_summary(self) -> dict[str, str]:
        """Returns the summary keyed by lowercase key. Empty when there is none."""
        summary = {}
        for key, value in self._read_entries():
            summary[key.strip().lower()] = value.strip()
        return summary

    def upsert_summary(self, key: str, value: str):
        """Sets one key, refreshing last_seen as a side effect"""
        entries = _set_entry(self._read_entries(), key, value)
        entries = _set_entry(entries, LAST_SEEN, _now_stamp())
        self._write_entries(entries)

    def touch_last_seen(self):
        """Refreshes only the last_seen key"""
        entries = _set_entry(self._read_entries(), LAST_SEEN, _now_stamp())
        self._write_entries(entries)


def _set_entry(
    entries: list[tuple[str, str]], key: str, value: str
) -> list[tuple[str, str]]:
    """Updates a key in place, or appends it with the given casing"""
    key_lower = key.lower()
    updated = []
    found = False
    for k, v in entries:
        if not found and k.strip().lower() == key_lower:
            updated.append((k, value))
            found = True
        else:
            updated.append((k, v))
    if not found:
        updated.append((key, value))
    return updated


def _now_stamp() -> str:
    return datetime.now().strftime(STAMP_FORMAT)

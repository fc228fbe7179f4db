"""Logging module for PathEase."""

import json
from datetime import datetime
from typing import Optional, Callable


class Logger:
    """Writes timestamped session lines to stdout, a log file and an optional listener"""

    def __init__(self, log_path: Optional[str] = None, callback: Optional[Callable] = None,
                 session: str = "PathEase", echo: bool = True):
        self.log_path = log_path
        self.callback = callback
        self.session = session
        self.echo = echo
        self.file = None
        if log_path:
            self.file = open(log_path, "a")
            self._write_header()

    def _write_header(self):
        self.file.write(f"\n{'='*60}\n")
        self.file.write(f"{self.session} Log - {datetime.now().isoformat()}\n")
        self.file.write(f"{'='*60}\n\n")
        self.file.flush()

    def log(self, message: str, data: Optional[dict] = None):
        """Log a message with optional structured data"""
        timestamp = datetime.now().isoformat()
        line = f"[{timestamp}] {message}"
        if data:
            line += f" | {json.dumps(data, default=str)}"
        if self.echo:
            print(line)
        if self.file:
            self.file.write(line + "\n")
            self.file.flush()
        if self.callback:
            self.callback(message, data)

    def error(self, message: str, exc: Optional[BaseException] = None, data: Optional[dict] = None):
        """Log a background failure without raising it"""
        payload = dict(data or {})
        if exc is not None:
            payload["error"] = f"{type(exc).__name__}: {exc}"
        self.log(f"ERROR: {message}", payload or None)

    def close(self):
        if self.file:
            self.file.close()
            self.file = None

"""Exceptions raised by toolkit tasks.

Tasks raise these; ``cli.main`` logs them and exits with status 1.
"""

from __future__ import annotations

class ToolError(Exception):
    """Expected failure of an administrative task."""

class ToolMissingError(ToolError):
    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        msg = f"{tool} not found"
        if hint:
            msg += f" – {hint}"
        super().__init__(msg)

class CommandError(ToolError):
    """An external command exited with a failure code."""

    def __init__(self, command: list[str] | str, returncode: int, output: str = "", hint: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        name = command[0] if isinstance(command, list) and command else str(command)
        msg = f"{name} failed with exit code {returncode}"
        if output:
            msg += f": {output.strip()[:500]}"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)

class ApiError(ToolError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        if status_code is not None:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message)

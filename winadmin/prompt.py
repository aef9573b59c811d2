"""Yes/no console prompt shared by the destructive tasks."""

from __future__ import annotations
from typing import Callable

from .errors import ToolError

YES = ("y", "yes")
NO = ("n", "no")

def _suffix(default: bool | None) -> str:
    if default is None:
        return "[y/n]"
    return "[Y/n]" if default else "[y/N]"

def ask_yes_no(question: str, default: bool | None = None, input_func: Callable[[str], str] = input,
               max_attempts: int | None = None, assume_yes: bool = False) -> bool:
    """Ask *question* until the answer is yes or no.

    An empty answer picks *default* when there is one. ``assume_yes`` skips
    the prompt (``--yes`` on the command line).
    """
    if assume_yes:
        return True
    prompt = f"{question} {_suffix(default)} "
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        try:
            answer = input_func(prompt).strip().lower()
        except EOFError:
            if default is not None:
                return default
            raise ToolError("No answer on stdin – rerun with --yes to confirm") from None
        if answer in YES:
            return True
        if answer in NO:
            return False
        if not answer and default is not None:
            return default
        print("Please answer y or n.")
    raise ToolError(f"No valid answer after {max_attempts} attempts")

"""Running the external Windows tools the tasks wrap."""

from __future__ import annotations
import subprocess
from typing import Sequence

from .errors import CommandError, ToolMissingError
from .logger import log

def run_command(args: Sequence[str], ok_codes: Sequence[int] = (0,), timeout: int | None = None,
                hint: str = "") -> subprocess.CompletedProcess:
    """Run *args* capturing text output; raise ``CommandError`` outside *ok_codes*."""
    args = [str(a) for a in args]
    log.debug("Executing: %s", subprocess.list2cmdline(args))
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout,
                                encoding="utf-8", errors="replace")
    except FileNotFoundError:
        raise ToolMissingError(args[0], hint) from None
    except subprocess.TimeoutExpired:
        raise CommandError(args, -1, f"timed out after {timeout}s") from None
    if result.returncode not in ok_codes:
        raise CommandError(args, result.returncode, result.stderr or result.stdout)
    return result

"""PowerShell host for the Exchange Online and PnP tasks.

Each call starts a fresh ``pwsh``/``powershell`` process, runs the module
import and connect lines, then the task body. Results are converted to JSON
inside PowerShell so Python never parses formatted tables.
"""

from __future__ import annotations
import json
import subprocess
from typing import Sequence

from .errors import CommandError, ToolError, ToolMissingError
from .logger import log

def quote(value: str) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + str(value).replace("'", "''") + "'"

def quote_list(values: Sequence[str]) -> str:
    return "@(" + ",".join(quote(v) for v in values) + ")"

def parse_json_output(output: str) -> list[dict]:
    """Parse ConvertTo-Json output, skipping any banner text printed before it."""
    output = output.strip()
    if not output:
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        starts = [i for i in (output.find("["), output.find("{")) if i != -1]
        if not starts:
            raise ToolError(f"PowerShell returned no JSON: {output[:200]}") from None
        try:
            data = json.loads(output[min(starts):])
        except json.JSONDecodeError:
            raise ToolError(f"Could not parse PowerShell output: {output[:200]}") from None
    if data is None:
        return []
    return data if isinstance(data, list) else [data]

class PowerShellRunner:
    def __init__(self, executable: str = "powershell", preamble: Sequence[str] = (), timeout: int = 300):
        self.executable = executable
        self.preamble = list(preamble)
        self.timeout = timeout

    def _script(self, body: str) -> str:
        return "\n".join(["$ErrorActionPreference = 'Stop'", *self.preamble, body])

    def run(self, body: str) -> str:
        args = [self.executable, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass",
                "-Command", self._script(body)]
        log.debug("PowerShell: %s", body)
        try:
            proc = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout,
                                  encoding="utf-8", errors="replace")
        except FileNotFoundError:
            raise ToolMissingError(self.executable, "install PowerShell 7 or set WINADMIN_PWSH") from None
        except subprocess.TimeoutExpired:
            raise CommandError(args[:1], -1, f"timed out after {self.timeout}s") from None
        if proc.returncode != 0:
            raise CommandError(args[:1], proc.returncode, proc.stderr or proc.stdout)
        return proc.stdout

    def run_json(self, body: str) -> list[dict]:
        wrapped = "$__r = @(\n" + body + "\n)\nConvertTo-Json -InputObject $__r -Depth 6 -Compress"
        return parse_json_output(self.run(wrapped))

"""Robocopy wrapper
-------------------------------------------------
Copies a directory tree with a fixed, restart-friendly flag set::

    /E /COPY:DAT /DCOPY:T /R:3 /W:5 /NP /TEE

Robocopy's exit code is a bitmask – anything below 8 means the copy worked.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .errors import CommandError, ToolError
from .logger import log, success
from .shell import run_command

BASE_FLAGS = ["/COPY:DAT", "/DCOPY:T", "/R:3", "/W:5", "/NP", "/TEE"]
FAILURE_THRESHOLD = 8

EXIT_BITS = {
    1: "files copied",
    2: "extra files or directories in destination",
    4: "mismatched files or directories",
    8: "some files could not be copied",
    16: "fatal error – nothing copied",
}

@dataclass
class RobocopyResult:
    returncode: int
    output: str = ""

    @property
    def success(self) -> bool:
        return self.returncode < FAILURE_THRESHOLD

    def describe(self) -> str:
        if self.returncode == 0:
            return "no changes – source and destination already in sync"
        return ", ".join(text for bit, text in EXIT_BITS.items() if self.returncode & bit)

def build_command(source: str | Path, destination: str | Path, files: Sequence[str] = (),
                  mirror: bool = False, threads: int | None = None, log_file: str | Path | None = None,
                  dry_run: bool = False, exclude_dirs: Sequence[str] = (),
                  exclude_files: Sequence[str] = ()) -> list[str]:
    cmd = ["robocopy", str(source), str(destination), *files]
    cmd.append("/MIR" if mirror else "/E")
    cmd += BASE_FLAGS
    if threads is not None:
        if not 1 <= threads <= 128:
            raise ToolError(f"Robocopy threads must be 1-128, got {threads}")
        cmd.append(f"/MT:{threads}")
    if log_file:
        cmd.append(f"/LOG+:{log_file}")
    if dry_run:
        cmd.append("/L")
    if exclude_dirs:
        cmd += ["/XD", *exclude_dirs]
    if exclude_files:
        cmd += ["/XF", *exclude_files]
    return cmd

def copy_tree(source: str | Path, destination: str | Path, **options) -> RobocopyResult:
    if not Path(source).is_dir():
        raise ToolError(f"Source directory not found: {source}")
    cmd = build_command(source, destination, **options)
    if options.get("mirror"):
        log.warning("Mirror mode: files missing from %s will be deleted in %s", source, destination)
    log.info("Copying %s → %s", source, destination)
    try:
        proc = run_command(cmd, ok_codes=range(FAILURE_THRESHOLD), hint="robocopy ships with Windows")
    except CommandError as e:
        if e.returncode < 0:
            raise
        raise CommandError(cmd, e.returncode, hint=RobocopyResult(e.returncode).describe()) from None
    result = RobocopyResult(proc.returncode, proc.stdout)
    success("Robocopy finished (exit %d): %s", result.returncode, result.describe())
    return result

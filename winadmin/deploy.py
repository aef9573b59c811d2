"""NordPass deployment
-------------------------------------------------
Download the vendor MSI (bounded retry), install it silently with msiexec and
check the Uninstall registry keys to see whether it is already present.
"""

from __future__ import annotations
import sys
import time
from pathlib import Path
from typing import Callable

import requests

from .config import Settings
from .errors import ApiError, CommandError, ToolError
from .logger import log, success
from .shell import run_command

UNINSTALL_PATHS = [
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
]
MSI_OK = (0, 3010)
MSI_REBOOT_REQUIRED = 3010
MSI_ANOTHER_INSTALL = 1618
CHUNK = 1024 * 256

class _RetryableDownload(Exception):
    pass

def installed_programs() -> list[tuple[str, str]]:
    """(DisplayName, DisplayVersion) pairs from HKLM; empty off Windows."""
    if sys.platform != "win32":
        return []
    import winreg

    rows: list[tuple[str, str]] = []
    for path in UNINSTALL_PATHS:
        try:
            hive = winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, path)
        except FileNotFoundError:
            continue
        for i in range(winreg.QueryInfoKey(hive)[0]):
            try:
                sub = winreg.OpenKey(hive, winreg.EnumKey(hive, i))
                name, _ = winreg.QueryValueEx(sub, "DisplayName")
            except OSError:
                continue
            try:
                ver, _ = winreg.QueryValueEx(sub, "DisplayVersion")
            except OSError:
                ver = ""
            rows.append((name, ver))
    return rows

def is_installed(display_name: str) -> bool:
    needle = display_name.lower()
    return any(needle in name.lower() for name, _ in installed_programs())

def download_installer(url: str, destination: str | Path, attempts: int = 3, delay: float = 5,
                       session: requests.Session | None = None, timeout: int = 60,
                       sleep: Callable[[float], None] = time.sleep) -> Path:
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    part = destination.with_name(destination.name + ".part")
    session = session or requests.Session()
    for attempt in range(1, attempts + 1):
        log.info("Downloading %s (attempt %d/%d)", url, attempt, attempts)
        try:
            with session.get(url, stream=True, timeout=timeout) as resp:
                if resp.status_code >= 500:
                    raise _RetryableDownload(f"HTTP {resp.status_code}")
                if resp.status_code >= 400:
                    raise ApiError(f"download of {url} refused", resp.status_code)
                with open(part, "wb") as f:
                    for chunk in resp.iter_content(CHUNK):
                        if chunk:
                            f.write(chunk)
            if part.stat().st_size == 0:
                raise _RetryableDownload("empty file")
            part.replace(destination)
            success("Downloaded %s (%d bytes)", destination.name, destination.stat().st_size)
            return destination
        except (requests.RequestException, _RetryableDownload) as e:
            part.unlink(missing_ok=True)
            log.warning("Download attempt %d failed: %s", attempt, e)
            if attempt < attempts:
                sleep(delay)
    raise ToolError(f"Download failed after {attempts} attempts: {url}")

def install_msi(path: str | Path, log_path: str | Path | None = None) -> int:
    cmd = ["msiexec", "/i", str(path), "/qn", "/norestart"]
    if log_path:
        cmd += ["/L*v", str(log_path)]
    log.info("Installing %s", Path(path).name)
    try:
        proc = run_command(cmd, ok_codes=MSI_OK)
    except CommandError as e:
        if e.returncode == MSI_ANOTHER_INSTALL:
            raise CommandError(cmd, e.returncode, hint="another installation is in progress, retry later") from None
        raise
    if proc.returncode == MSI_REBOOT_REQUIRED:
        log.warning("Installation succeeded – a reboot is required to finish")
    return proc.returncode

def deploy_nordpass(settings: Settings, workdir: str | Path, force: bool = False,
                    session: requests.Session | None = None, attempts: int = 3, delay: float = 5) -> str:
    if not force and is_installed("NordPass"):
        log.info("NordPass is already installed – nothing to do")
        return "already-installed"
    workdir = Path(workdir)
    installer = download_installer(settings.nordpass_url, workdir / "NordPassSetup.msi",
                                   attempts=attempts, delay=delay, session=session,
                                   timeout=settings.http_timeout)
    try:
        install_msi(installer, workdir / "NordPass-install.log")
    finally:
        installer.unlink(missing_ok=True)
    if sys.platform == "win32" and not is_installed("NordPass"):
        log.warning("msiexec succeeded but NordPass is not listed under Uninstall yet")
    success("NordPass deployed")
    return "installed"

"""Toolkit settings
-------------------------------------------------
Values come from the environment, after a ``.env`` file in the working
directory has been loaded with python-dotenv.

WINADMIN_TENANT_ID / WINADMIN_CLIENT_ID / WINADMIN_CLIENT_SECRET
    App registration used for Microsoft Graph (send-test-mail, intune-devices).
WINADMIN_LOG_DIR, WINADMIN_LOG_KEEP
    Where run logs go and how many of them are kept.
WINADMIN_HTTP_TIMEOUT
    Seconds before an HTTP request is abandoned.
WINADMIN_PWSH
    PowerShell executable for Exchange / PnP tasks.
WINADMIN_GEO_ENDPOINT, WINADMIN_NORDPASS_URL
    Endpoints for the geolocation lookup and the NordPass MSI.
WINADMIN_CERT_THUMBPRINT / WINADMIN_CERT_PATH
    Certificate for app-only Connect-PnPOnline (with the tenant and client id).
"""

from __future__ import annotations
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

from .errors import ToolError

DEFAULT_GEO_ENDPOINT = "http://ip-api.com/json/"
DEFAULT_NORDPASS_URL = "https://downloads.npass.app/windows/NordPassSetup.msi"

@dataclass
class Settings:
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    log_dir: Path = Path("logs")
    log_keep: int = 10
    http_timeout: int = 30
    pwsh: str = "powershell"
    geo_endpoint: str = DEFAULT_GEO_ENDPOINT
    nordpass_url: str = DEFAULT_NORDPASS_URL
    cert_thumbprint: str | None = None
    cert_path: str | None = None

    def require_graph(self) -> None:
        missing = [
            var for var, value in (
                ("WINADMIN_TENANT_ID", self.tenant_id),
                ("WINADMIN_CLIENT_ID", self.client_id),
                ("WINADMIN_CLIENT_SECRET", self.client_secret),
            ) if not value
        ]
        if missing:
            raise ToolError("Microsoft Graph credentials missing: " + ", ".join(missing))

def _int(env: Mapping[str, str], var: str, default: int) -> int:
    raw = env.get(var)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ToolError(f"{var} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ToolError(f"{var} must be positive, got {value}")
    return value

def _default_pwsh() -> str:
    # PowerShell 7 first, Windows PowerShell 5.1 otherwise
    return "pwsh" if shutil.which("pwsh") else "powershell"

def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from *env* (``os.environ`` after loading ``.env`` when omitted)."""
    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ
    return Settings(
        tenant_id=env.get("WINADMIN_TENANT_ID") or None,
        client_id=env.get("WINADMIN_CLIENT_ID") or None,
        client_secret=env.get("WINADMIN_CLIENT_SECRET") or None,
        log_dir=Path(env.get("WINADMIN_LOG_DIR") or "logs"),
        log_keep=_int(env, "WINADMIN_LOG_KEEP", 10),
        http_timeout=_int(env, "WINADMIN_HTTP_TIMEOUT", 30),
        pwsh=env.get("WINADMIN_PWSH") or _default_pwsh(),
        geo_endpoint=env.get("WINADMIN_GEO_ENDPOINT") or DEFAULT_GEO_ENDPOINT,
        nordpass_url=env.get("WINADMIN_NORDPASS_URL") or DEFAULT_NORDPASS_URL,
        cert_thumbprint=env.get("WINADMIN_CERT_THUMBPRINT") or None,
        cert_path=env.get("WINADMIN_CERT_PATH") or None,
    )

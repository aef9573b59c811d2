"""Wi-Fi profile management through ``netsh wlan``."""

from __future__ import annotations
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import ToolError
from .logger import log, success
from .shell import run_command

PROFILE_RE = re.compile(r"All User Profile\s*:\s*(.+)")
SAVED_RE = re.compile(r'is saved in file "([^"]+)"')

_FIELDS = {
    "ssid": "SSID name",
    "authentication": "Authentication",
    "cipher": "Cipher",
    "connection_mode": "Connection mode",
    "key": "Key Content",
}

@dataclass
class WifiProfile:
    name: str
    ssid: str = ""
    authentication: str = ""
    cipher: str = ""
    connection_mode: str = ""
    key: str | None = None

def _netsh(*args: str) -> str:
    return run_command(["netsh", "wlan", *args], hint="netsh ships with Windows").stdout

def _field(output: str, label: str) -> str | None:
    # first occurrence; netsh repeats Authentication/Cipher per supported suite
    m = re.search(rf"^\s*{re.escape(label)}\s*:\s*(.*?)\s*$", output, re.MULTILINE)
    return m.group(1) if m else None

def parse_profiles(output: str) -> list[str]:
    return [m.group(1).strip() for m in PROFILE_RE.finditer(output)]

def parse_profile(name: str, output: str) -> WifiProfile:
    profile = WifiProfile(name=name)
    for attr, label in _FIELDS.items():
        value = _field(output, label)
        if value is None:
            continue
        if attr == "ssid":
            value = value.strip('"')
        setattr(profile, attr, value)
    return profile

def list_profiles() -> list[str]:
    return parse_profiles(_netsh("show", "profiles"))

def show_profile(name: str, include_key: bool = False) -> WifiProfile:
    args = ["show", "profile", f"name={name}"]
    if include_key:
        args.append("key=clear")
    return parse_profile(name, _netsh(*args))

def export_profiles(folder: str | Path, include_key: bool = True, name: str | None = None) -> list[Path]:
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    args = ["export", "profile"]
    if name:
        args.append(f"name={name}")
    args.append(f"folder={folder}")
    if include_key:
        log.warning("Exporting with key=clear – the XML files contain the pre-shared keys in plain text")
        args.append("key=clear")
    files = [Path(p) for p in SAVED_RE.findall(_netsh(*args))]
    success("Exported %d Wi-Fi profile(s) to %s", len(files), folder)
    return files

def import_profile(xml_path: str | Path, user: str = "all") -> None:
    xml_path = Path(xml_path)
    _netsh("add", "profile", f"filename={xml_path}", f"user={user}")
    success("Imported Wi-Fi profile from %s", xml_path.name)

def import_folder(folder: str | Path, user: str = "all") -> int:
    """Import every XML profile in *folder*; failures are logged and skipped."""
    imported = 0
    for xml_path in sorted(Path(folder).glob("*.xml")):
        try:
            import_profile(xml_path, user)
            imported += 1
        except ToolError as e:
            log.error("Could not import %s: %s", xml_path.name, e)
    return imported

def delete_profile(name: str) -> None:
    _netsh("delete", "profile", f"name={name}")
    success("Deleted Wi-Fi profile %s", name)

"""LDIF → CSV and vCard → CSV
-------------------------------------------------
Typical inputs: an ``ldifde -f export.ldf`` dump from Active Directory and a
contacts ``.vcf`` exported from Outlook, a phone or Google. Multi-valued
attributes land in one CSV cell joined with ``"; "``.
"""

from __future__ import annotations
import base64
import binascii
import csv
import quopri
import re
from pathlib import Path
from typing import Iterable, Sequence

from .errors import ToolError
from .logger import log

MULTI_SEP = "; "
LDIF_LINE_RE = re.compile(r"^([^:\s]+)\s*(::|:<|:)\s?(.*)$")
VCARD_LINE_RE = re.compile(r"^(?:[\w-]+\.)?([\w-]+)((?:;[^:]*)?):(.*)$")
VCF_HEADER = ["FullName", "FirstName", "LastName", "Organization", "Title", "Email", "Phone", "Note"]

def _read(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8-sig", errors="replace")
    except FileNotFoundError:
        raise ToolError(f"Input file not found: {path}") from None

# ---------------------------------------------------------------- LDIF

def _unfold(lines: Iterable[str]) -> list[str]:
    out: list[str] = []
    for line in lines:
        if line.startswith(" ") and out:
            out[-1] += line[1:]
        else:
            out.append(line)
    return out

def parse_ldif(text: str) -> list[dict[str, list[str]]]:
    records: list[dict[str, list[str]]] = []
    canon: dict[str, str] = {}
    current: dict[str, list[str]] = {}
    for line in _unfold(text.splitlines()) + [""]:
        if not line.strip():
            if current:
                records.append(current)
                current = {}
            continue
        if line.startswith("#"):
            continue
        m = LDIF_LINE_RE.match(line)
        if not m:
            log.warning("Skipping malformed LDIF line: %s", line[:80])
            continue
        attr, sep, value = m.groups()
        if attr.lower() == "version" and not current:
            continue
        if sep == "::":
            try:
                value = base64.b64decode(value.strip(), validate=True).decode("utf-8", errors="replace")
            except (binascii.Error, ValueError):
                log.warning("Bad base64 value for %s – kept as is", attr)
        name = canon.setdefault(attr.lower(), attr)
        current.setdefault(name, []).append(value)
    return records

def _columns(records: Sequence[dict[str, list[str]]]) -> list[str]:
    cols: list[str] = []
    for rec in records:
        for name in rec:
            if name not in cols:
                cols.append(name)
    dn = [c for c in cols if c.lower() == "dn"]
    return dn + [c for c in cols if c.lower() != "dn"]

def ldif_to_csv(src: str | Path, dst: str | Path, attributes: Sequence[str] | None = None) -> int:
    records = parse_ldif(_read(src))
    columns = list(attributes) if attributes else _columns(records)
    with open(dst, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        for rec in records:
            lowered = {k.lower(): v for k, v in rec.items()}
            writer.writerow([MULTI_SEP.join(lowered.get(c.lower(), [])) for c in columns])
    log.info("Wrote %d LDIF record(s) to %s", len(records), dst)
    return len(records)

# ---------------------------------------------------------------- vCard

def _unescape(value: str) -> str:
    return re.sub(r"\\([nN,;\\])", lambda m: "\n" if m.group(1) in "nN" else m.group(1), value)

def _params(raw: str) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for part in filter(None, raw.split(";")):
        key, _, val = part.partition("=")
        if not val:
            # vCard 2.1 bare type, e.g. TEL;CELL:
            key, val = "TYPE", key
        params.setdefault(key.upper(), []).extend(v.lower() for v in val.split(","))
    return params

def _vcard_lines(text: str) -> list[str]:
    out: list[str] = []
    for line in text.splitlines():
        if line[:1] in (" ", "\t") and out:
            out[-1] += line[1:]
        elif out and out[-1].endswith("=") and "QUOTED-PRINTABLE" in out[-1].upper().split(":", 1)[0]:
            # quoted-printable soft line break
            out[-1] = out[-1][:-1] + line
        else:
            out.append(line)
    return out

def _decode(value: str, params: dict[str, list[str]]) -> str:
    if "quoted-printable" in params.get("ENCODING", []):
        charset = (params.get("CHARSET") or ["utf-8"])[0]
        try:
            return quopri.decodestring(value.encode("ascii", errors="replace")).decode(charset, errors="replace")
        except LookupError:
            return quopri.decodestring(value.encode("ascii", errors="replace")).decode("utf-8", errors="replace")
    return value

def _empty_card() -> dict:
    return {"full_name": "", "first_name": "", "last_name": "", "organization": "", "title": "",
            "emails": [], "phones": [], "note": ""}

def parse_vcards(text: str) -> list[dict]:
    cards: list[dict] = []
    card = None
    for line in _vcard_lines(text):
        m = VCARD_LINE_RE.match(line.strip())
        if not m:
            continue
        prop, raw_params, value = m.group(1).upper(), m.group(2), m.group(3)
        if prop == "BEGIN" and value.strip().upper() == "VCARD":
            card = _empty_card()
            continue
        if card is None:
            continue
        if prop == "END" and value.strip().upper() == "VCARD":
            if not card["full_name"]:
                card["full_name"] = " ".join(filter(None, [card["first_name"], card["last_name"]]))
            cards.append(card)
            card = None
            continue
        params = _params(raw_params)
        value = _decode(value, params)
        if prop == "FN":
            card["full_name"] = _unescape(value)
        elif prop == "N":
            parts = [_unescape(p) for p in re.split(r"(?<!\\);", value)] + ["", ""]
            card["last_name"], card["first_name"] = parts[0], parts[1]
        elif prop == "ORG":
            card["organization"] = " - ".join(filter(None, (_unescape(p) for p in re.split(r"(?<!\\);", value))))
        elif prop == "TITLE":
            card["title"] = _unescape(value)
        elif prop == "EMAIL":
            card["emails"].append(_unescape(value).strip())
        elif prop == "TEL":
            types = [t for t in params.get("TYPE", []) if t not in ("voice", "pref")]
            card["phones"].append((_unescape(value).strip(), types))
        elif prop == "NOTE":
            card["note"] = _unescape(value)
    if card is not None:
        log.warning("vCard without END:VCARD at end of input – ignored")
    return cards

def _phone(number: str, types: list[str]) -> str:
    return f"{number} ({'/'.join(types)})" if types else number

def vcf_to_csv(src: str | Path, dst: str | Path) -> int:
    cards = parse_vcards(_read(src))
    with open(dst, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(VCF_HEADER)
        for c in cards:
            writer.writerow([
                c["full_name"], c["first_name"], c["last_name"], c["organization"], c["title"],
                MULTI_SEP.join(c["emails"]),
                MULTI_SEP.join(_phone(n, t) for n, t in c["phones"]),
                c["note"],
            ])
    log.info("Wrote %d contact(s) to %s", len(cards), dst)
    return len(cards)

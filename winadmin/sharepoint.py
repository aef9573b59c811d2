"""SharePoint Online permission audit
-------------------------------------------------
Requires PnP PowerShell (``Install-Module PnP.PowerShell``).

Lists who holds which role on a site and on every visible list that breaks
permission inheritance. "Limited Access" bindings are dropped – SharePoint
adds them automatically and they grant nothing by themselves.
"""

from __future__ import annotations
import collections
import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .logger import log, success
from .powershell import PowerShellRunner, quote

CSV_HEADER = ["Site", "Scope", "Object", "Principal", "PrincipalType", "Roles"]

_ROLE_ROWS = (
    "Get-PnPProperty -ClientObject $ra -Property RoleDefinitionBindings, Member | Out-Null\n"
    "    [pscustomobject]@{{ Scope = '{scope}'; Object = {obj}; Principal = $ra.Member.Title;"
    " PrincipalType = [string]$ra.Member.PrincipalType;"
    " Roles = @($ra.RoleDefinitionBindings | Where-Object {{ $_.Name -ne 'Limited Access' }} | ForEach-Object {{ $_.Name }}) }}"
)

WEB_SCRIPT = (
    "$web = Get-PnPWeb -Includes RoleAssignments\n"
    "foreach ($ra in $web.RoleAssignments) {\n    "
    + _ROLE_ROWS.format(scope="Web", obj="$web.Url")
    + "\n}"
)

LIST_SCRIPT = (
    "foreach ($list in (Get-PnPList | Where-Object { -not $_.Hidden })) {\n"
    "  Get-PnPProperty -ClientObject $list -Property HasUniqueRoleAssignments, RoleAssignments | Out-Null\n"
    "  if (-not $list.HasUniqueRoleAssignments) { continue }\n"
    "  foreach ($ra in $list.RoleAssignments) {\n    "
    + _ROLE_ROWS.format(scope="List", obj="$list.Title")
    + "\n  }\n}"
)

@dataclass
class PermissionEntry:
    site: str
    scope: str
    object: str
    principal: str
    principal_type: str
    roles: list[str] = field(default_factory=list)

    def as_row(self) -> list[str]:
        return [self.site, self.scope, self.object, self.principal, self.principal_type, "; ".join(self.roles)]

def pnp_runner(executable: str, url: str, client_id: str | None = None, tenant: str | None = None,
               thumbprint: str | None = None, certificate_path: str | None = None,
               timeout: int = 600) -> PowerShellRunner:
    """Interactive sign-in, or app-only with a certificate when client id, tenant and a cert are all set."""
    connect = f"Connect-PnPOnline -Url {quote(url)}"
    if client_id and tenant and (thumbprint or certificate_path):
        connect += f" -ClientId {quote(client_id)} -Tenant {quote(tenant)}"
        if thumbprint:
            connect += f" -Thumbprint {quote(thumbprint)}"
        else:
            connect += f" -CertificatePath {quote(certificate_path)}"
    else:
        connect += " -Interactive"
        if client_id:
            connect += f" -ClientId {quote(client_id)}"
    return PowerShellRunner(executable, ["Import-Module PnP.PowerShell -ErrorAction Stop", connect], timeout)

def parse_entries(site: str, rows: Iterable[dict]) -> list[PermissionEntry]:
    entries = []
    for row in rows:
        roles = row.get("Roles") or []
        if isinstance(roles, str):
            roles = [roles]
        if not roles:
            continue
        entries.append(PermissionEntry(
            site=site,
            scope=row.get("Scope", ""),
            object=row.get("Object") or "",
            principal=row.get("Principal") or "?",
            principal_type=row.get("PrincipalType") or "",
            roles=list(roles),
        ))
    return entries

def audit_site(runner: PowerShellRunner, url: str, include_lists: bool = True) -> list[PermissionEntry]:
    body = WEB_SCRIPT + ("\n" + LIST_SCRIPT if include_lists else "")
    log.info("Auditing permissions on %s", url)
    entries = parse_entries(url, runner.run_json(body))
    success("Collected %d permission entries from %s", len(entries), url)
    return entries

def summarize(entries: Iterable[PermissionEntry]) -> collections.Counter:
    return collections.Counter(e.principal for e in entries)

def write_csv(entries: Iterable[PermissionEntry], path: str | Path) -> int:
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for entry in entries:
            writer.writerow(entry.as_row())
            count += 1
    return count

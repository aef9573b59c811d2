"""Distribution list → Dynamic Distribution List conversion
-------------------------------------------------
Requires the ExchangeOnlineManagement module
(``Install-Module ExchangeOnlineManagement``) and an account allowed to
manage recipients.

The static group is looked up, removed, and recreated as a dynamic group
with the same name, alias and primary SMTP address; owners are restored.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .errors import ToolError
from .logger import log, success
from .powershell import PowerShellRunner, quote, quote_list
from .prompt import ask_yes_no

EXCHANGE_MODULE = "Import-Module ExchangeOnlineManagement -ErrorAction Stop"

@dataclass
class DistributionGroup:
    name: str
    display_name: str
    alias: str
    primary_smtp_address: str
    managed_by: list[str] = field(default_factory=list)
    member_count: int = 0

    @classmethod
    def from_json(cls, data: dict) -> "DistributionGroup":
        managed_by = data.get("ManagedBy") or []
        if isinstance(managed_by, str):
            managed_by = [managed_by]
        return cls(
            name=data.get("Name", ""),
            display_name=data.get("DisplayName") or data.get("Name", ""),
            alias=data.get("Alias", ""),
            primary_smtp_address=data.get("PrimarySmtpAddress", ""),
            managed_by=list(managed_by),
            member_count=int(data.get("MemberCount") or 0),
        )

@dataclass
class ConversionPlan:
    group: DistributionGroup
    recipient_filter: str
    commands: list[str]
    executed: bool = False

def exchange_runner(executable: str, admin_upn: str | None = None, timeout: int = 300) -> PowerShellRunner:
    connect = "Connect-ExchangeOnline -ShowBanner:$false"
    if admin_upn:
        connect += f" -UserPrincipalName {quote(admin_upn)}"
    return PowerShellRunner(executable, [EXCHANGE_MODULE, connect], timeout)

def _opath(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"

def build_recipient_filter(department: str | None = None, company: str | None = None,
                           office: str | None = None,
                           recipient_types: Sequence[str] = ("UserMailbox",)) -> str:
    """OPATH filter for ``New-DynamicDistributionGroup -RecipientFilter``."""
    criteria = [
        f"({attr} -eq {_opath(value)})"
        for attr, value in (("Department", department), ("Company", company), ("Office", office))
        if value
    ]
    if not criteria:
        raise ToolError("A dynamic group needs at least one of department, company or office")
    if recipient_types:
        types = " -or ".join(f"(RecipientType -eq {_opath(t)})" for t in recipient_types)
        criteria.insert(0, f"({types})" if len(recipient_types) > 1 else types)
    return "(" + " -and ".join(criteria) + ")"

def get_distribution_group(runner: PowerShellRunner, identity: str) -> DistributionGroup:
    body = (
        f"$g = Get-DistributionGroup -Identity {quote(identity)}\n"
        "[pscustomobject]@{\n"
        "  Name = $g.Name; DisplayName = $g.DisplayName; Alias = $g.Alias\n"
        "  PrimarySmtpAddress = [string]$g.PrimarySmtpAddress\n"
        "  ManagedBy = @($g.ManagedBy | ForEach-Object { [string]$_ })\n"
        "  MemberCount = @(Get-DistributionGroupMember -Identity $g.Identity -ResultSize Unlimited).Count\n"
        "}"
    )
    rows = runner.run_json(body)
    if not rows:
        raise ToolError(f"Distribution group not found: {identity}")
    return DistributionGroup.from_json(rows[0])

def plan_conversion(group: DistributionGroup, recipient_filter: str) -> ConversionPlan:
    commands = [
        f"Remove-DistributionGroup -Identity {quote(group.primary_smtp_address)} -Confirm:$false",
        (
            f"New-DynamicDistributionGroup -Name {quote(group.name)} -DisplayName {quote(group.display_name)} "
            f"-Alias {quote(group.alias)} -PrimarySmtpAddress {quote(group.primary_smtp_address)} "
            f"-RecipientFilter {quote(recipient_filter)}"
        ),
    ]
    if group.managed_by:
        commands.append(
            f"Set-DynamicDistributionGroup -Identity {quote(group.primary_smtp_address)} "
            f"-ManagedBy {quote_list(group.managed_by)}"
        )
    return ConversionPlan(group, recipient_filter, commands)

def convert_to_dynamic(runner: PowerShellRunner, identity: str, recipient_filter: str,
                       dry_run: bool = False, assume_yes: bool = False,
                       input_func: Callable[[str], str] = input) -> ConversionPlan:
    group = get_distribution_group(runner, identity)
    plan = plan_conversion(group, recipient_filter)
    log.info("Group %s <%s>: %d static member(s), owners: %s", group.name, group.primary_smtp_address,
             group.member_count, ", ".join(group.managed_by) or "-")
    for cmd in plan.commands:
        log.info("  %s", cmd)
    if dry_run:
        log.info("Dry run – nothing changed")
        return plan

    question = f"Delete static group {group.name} ({group.member_count} members) and recreate it as dynamic?"
    if not ask_yes_no(question, default=False, input_func=input_func, assume_yes=assume_yes):
        log.warning("Conversion of %s cancelled", group.name)
        return plan

    try:
        runner.run("\n".join(plan.commands))
    except ToolError:
        log.error("Conversion failed – original group was %s <%s> alias %s, owners %s",
                  group.name, group.primary_smtp_address, group.alias, ", ".join(group.managed_by) or "-")
        raise
    plan.executed = True
    success("%s is now a dynamic distribution group", group.primary_smtp_address)
    return plan

"""Windows Admin Toolkit
-------------------------------------------------
Robocopy, netsh and PowerShell wrappers plus Microsoft Graph helpers for
day-to-day Windows / Exchange / SharePoint / Intune administration.

Implemented tasks (select with ``--task``):

* **robocopy**        – copy/mirror a folder tree with a fixed Robocopy flag set
* **wifi-list**       – list saved Wi-Fi profiles
* **wifi-show**       – show one profile (``--show-key`` reveals the key)
* **wifi-export**     – export profiles to XML
* **wifi-import**     – import one XML profile or every XML in a folder
* **wifi-delete**     – delete a profile
* **dl-convert**      – turn a static distribution list into a dynamic one
* **sp-audit**        – SharePoint Online site/list permission report
* **send-test-mail**  – send a test message through Microsoft Graph
* **intune-devices**  – Intune managed device inventory
* **deploy-nordpass** – download and silently install NordPass
* **geoip**           – geolocate public IP addresses
* **ldif2csv**        – LDIF export → CSV
* **vcf2csv**         – vCard contacts → CSV
* **schedule**        – register (or ``--delete``) a scheduled task
* **tasks**           – list scheduled tasks excluding Microsoft ones
* **gui**             – Robocopy form

Example runs
------------
# Preview a mirror of a share without touching anything
winadmin --task robocopy --source D:\\Data --dest \\\\nas\\backup --mirror --dry-run

# Back up every Wi-Fi profile including keys
winadmin --task wifi-export --folder C:\\wifi-backup

# Convert Sales-DL into a dynamic list for the Sales department
winadmin --task dl-convert --identity sales@contoso.com --department Sales

# Locate the IPs listed in a file and save the result
winadmin --task geoip --ip-file ips.txt --csv geo.csv
"""

from __future__ import annotations
import argparse
import csv
import sys
from pathlib import Path

from . import converters, deploy, exchange, geoip, graph, robocopy, scheduler, sharepoint, wifi
from .config import Settings, load_settings
from .errors import ToolError
from .logger import log, setup_logging, success
from .prompt import ask_yes_no
from .tables import print_counter, print_rows

TASKS = [
    "robocopy", "wifi-list", "wifi-show", "wifi-export", "wifi-import", "wifi-delete",
    "dl-convert", "sp-audit", "send-test-mail", "intune-devices", "deploy-nordpass",
    "geoip", "ldif2csv", "vcf2csv", "schedule", "tasks", "gui",
]
CSV_TASKS = ("sp-audit", "intune-devices", "geoip")

def _require(args: argparse.Namespace, *names: str):
    missing = ["--" + n.replace("_", "-") for n in names if not getattr(args, n)]
    if missing:
        raise ToolError(f"{', '.join(missing)} required for --task {args.task}")

def task_robocopy(args):
    _require(args, "source", "dest")
    result = robocopy.copy_tree(
        args.source, args.dest, mirror=args.mirror, threads=args.threads, log_file=args.robocopy_log,
        dry_run=args.dry_run, exclude_dirs=args.exclude_dir, exclude_files=args.exclude_file)
    print(f"\n📁 Robocopy exit code {result.returncode}: {result.describe()}\n")

def task_wifi(args):
    if args.task == "wifi-list":
        names = wifi.list_profiles()
        print(f"\n📶 Wi-Fi profiles ({len(names)})")
        print_rows([(n,) for n in names], ["Profile"])
    elif args.task == "wifi-show":
        _require(args, "profile")
        p = wifi.show_profile(args.profile, include_key=args.show_key)
        print(f"\n📶 {p.name}")
        print_rows([("SSID", p.ssid), ("Authentication", p.authentication), ("Cipher", p.cipher),
                    ("Connection mode", p.connection_mode), ("Key", p.key if args.show_key else "(hidden)")],
                   ["Field", "Value"])
    elif args.task == "wifi-export":
        _require(args, "folder")
        files = wifi.export_profiles(args.folder, include_key=not args.no_key, name=args.profile)
        for f in files:
            print(f"  {f}")
    elif args.task == "wifi-import":
        if args.xml:
            wifi.import_profile(args.xml)
        else:
            _require(args, "folder")
            count = wifi.import_folder(args.folder)
            print(f"\n📶 Imported {count} profile(s)\n")
    elif args.task == "wifi-delete":
        _require(args, "profile")
        if ask_yes_no(f"Delete Wi-Fi profile {args.profile}?", default=False, assume_yes=args.yes):
            wifi.delete_profile(args.profile)

def task_dl_convert(args, settings: Settings):
    _require(args, "identity")
    rfilter = exchange.build_recipient_filter(args.department, args.company, args.office)
    runner = exchange.exchange_runner(settings.pwsh, args.admin_upn)
    plan = exchange.convert_to_dynamic(runner, args.identity, rfilter, dry_run=args.dry_run, assume_yes=args.yes)
    print(f"\n📨 {plan.group.primary_smtp_address}: {'converted' if plan.executed else 'not changed'}\n")

def task_sp_audit(args, settings: Settings):
    _require(args, "site")
    runner = sharepoint.pnp_runner(settings.pwsh, args.site, args.client_id or settings.client_id,
                                   tenant=settings.tenant_id, thumbprint=settings.cert_thumbprint,
                                   certificate_path=settings.cert_path)
    entries = sharepoint.audit_site(runner, args.site, include_lists=not args.no_lists)
    print(f"\n🔐 Permission entries per principal – {args.site}")
    print_counter(sharepoint.summarize(entries), "Principal", "Entries")
    if args.csv:
        sharepoint.write_csv(entries, args.csv)
        print(f"📑 CSV exported → {args.csv}\n")

def task_graph(args, settings: Settings):
    client = graph.GraphClient(settings)
    if args.task == "send-test-mail":
        _require(args, "sender", "to")
        graph.send_test_email(client, args.sender, args.to, subject=args.subject)
        return
    rows = graph.list_managed_devices(client, args.os)
    print(f"\n💻 Intune managed devices ({len(rows)})")
    print_rows([[r[f] for f in graph.DEVICE_FIELDS[:4]] for r in rows], graph.DEVICE_FIELDS[:4])
    if args.csv:
        with open(args.csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=graph.DEVICE_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
        print(f"📑 CSV exported → {args.csv}\n")

def task_deploy(args, settings: Settings):
    workdir = Path(args.workdir or Path.cwd() / "downloads")
    status = deploy.deploy_nordpass(settings, workdir, force=args.force)
    print(f"\n🔑 NordPass: {status}\n")

def _read_ips(args) -> list[str]:
    ips = list(args.ip or [])
    if args.ip_file:
        try:
            ips += Path(args.ip_file).read_text(encoding="utf-8").split()
        except OSError as e:
            raise ToolError(f"Cannot read {args.ip_file}: {e}") from None
    if not ips:
        raise ToolError("--ip or --ip-file required for --task geoip")
    return ips

def task_geoip(args, settings: Settings):
    locations = geoip.lookup_many(_read_ips(args), endpoint=settings.geo_endpoint, timeout=settings.http_timeout)
    print(f"\n🌍 IP geolocation ({len(locations)} found)")
    print_rows([(g.ip, g.country_code, g.city, g.isp) for g in locations], ["IP", "CC", "City", "ISP"])
    if args.csv:
        geoip.write_csv(locations, args.csv)
        print(f"📑 CSV exported → {args.csv}\n")

def task_convert(args):
    _require(args, "input", "output")
    if args.task == "ldif2csv":
        count = converters.ldif_to_csv(args.input, args.output, args.attributes)
    else:
        count = converters.vcf_to_csv(args.input, args.output)
    success("%d record(s) written to %s", count, args.output)

def task_schedule(args):
    _require(args, "name")
    if args.delete:
        scheduler.delete_task(args.name)
        return
    _require(args, "command")
    task = scheduler.ScheduledTask(args.name, args.command, args.schedule, args.start_time,
                                   args.run_as, args.highest)
    if scheduler.task_exists(args.name):
        log.warning("Task %s already exists and will be overwritten", args.name)
    scheduler.register_task(task)

def task_list_tasks(args):
    rows = scheduler.list_tasks(include_microsoft=args.all)
    print("\n🕒 Scheduled Tasks" + ("" if args.all else " (non-Microsoft)"))
    print_rows([(r.get("TaskName", ""), r.get("Next Run Time", ""), r.get("Status", "")) for r in rows],
               ["Task Name", "Next Run Time", "Status"])

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="winadmin", description="Windows admin toolkit")
    p.add_argument("--task", required=True, choices=TASKS, help="Which task to run")
    g = p.add_argument_group("common")
    g.add_argument("--csv", metavar="FILE", default=None, help="Export the result table to CSV")
    g.add_argument("--log-dir", metavar="DIR", default=None, help="Run log folder (default WINADMIN_LOG_DIR or ./logs)")
    g.add_argument("--event-log", action="store_true", help="Also write warnings/errors to the Windows event log")
    g.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    g.add_argument("--yes", "-y", action="store_true", help="Answer yes to confirmation prompts")
    g.add_argument("--dry-run", action="store_true", help="Show what would change without changing it")

    g = p.add_argument_group("robocopy")
    g.add_argument("--source", help="Source folder")
    g.add_argument("--dest", help="Destination folder")
    g.add_argument("--mirror", action="store_true", help="/MIR instead of /E (deletes extra files)")
    g.add_argument("--threads", type=int, default=None, help="/MT thread count (1-128)")
    g.add_argument("--robocopy-log", metavar="FILE", default=None, help="Append Robocopy's own log to FILE")
    g.add_argument("--exclude-dir", nargs="*", metavar="DIR", default=[], help="Directories to skip (/XD)")
    g.add_argument("--exclude-file", nargs="*", metavar="PATTERN", default=[], help="Files to skip (/XF)")

    g = p.add_argument_group("wifi")
    g.add_argument("--profile", help="Wi-Fi profile name")
    g.add_argument("--folder", help="Export/import folder")
    g.add_argument("--xml", help="Single profile XML to import")
    g.add_argument("--show-key", action="store_true", help="Show the key in clear text (wifi-show)")
    g.add_argument("--no-key", action="store_true", help="Export without key=clear")

    g = p.add_argument_group("exchange / sharepoint")
    g.add_argument("--identity", help="Distribution group name or address")
    g.add_argument("--department", help="Dynamic group filter: Department")
    g.add_argument("--company", help="Dynamic group filter: Company")
    g.add_argument("--office", help="Dynamic group filter: Office")
    g.add_argument("--admin-upn", help="Account for Connect-ExchangeOnline")
    g.add_argument("--site", help="SharePoint site URL")
    g.add_argument("--client-id", help="Entra app id for Connect-PnPOnline")
    g.add_argument("--no-lists", action="store_true", help="Audit the site only, skip lists")

    g = p.add_argument_group("graph")
    g.add_argument("--sender", help="Mailbox that sends the test message")
    g.add_argument("--to", nargs="+", metavar="ADDR", help="Recipients")
    g.add_argument("--subject", help="Override the test subject")
    g.add_argument("--os", help="Filter Intune devices by operating system")

    g = p.add_argument_group("deploy / geoip / convert")
    g.add_argument("--workdir", help="Download folder for deploy-nordpass")
    g.add_argument("--force", action="store_true", help="Reinstall even if present")
    g.add_argument("--ip", nargs="*", metavar="IP", help="IP addresses to locate")
    g.add_argument("--ip-file", metavar="FILE", help="File with one IP per line")
    g.add_argument("--input", metavar="FILE", help="LDIF/VCF input")
    g.add_argument("--output", metavar="FILE", help="CSV output")
    g.add_argument("--attributes", nargs="*", metavar="ATTR", default=None, help="LDIF columns to keep")

    g = p.add_argument_group("scheduler")
    g.add_argument("--name", help="Scheduled task name")
    g.add_argument("--command", help="Command line the task runs")
    g.add_argument("--schedule", default="DAILY", help="ONCE, DAILY, WEEKLY, MONTHLY, ONSTART, ONLOGON, MINUTE, HOURLY")
    g.add_argument("--start-time", help="HH:MM")
    g.add_argument("--run-as", help="Account, e.g. SYSTEM")
    g.add_argument("--highest", action="store_true", help="Run with highest privileges")
    g.add_argument("--delete", action="store_true", help="Delete the task instead of creating it")
    g.add_argument("--all", action="store_true", help="Include Microsoft tasks (tasks)")
    return p

def run(args: argparse.Namespace, settings: Settings):
    if args.task == "robocopy":
        task_robocopy(args)
    elif args.task.startswith("wifi-"):
        task_wifi(args)
    elif args.task == "dl-convert":
        task_dl_convert(args, settings)
    elif args.task == "sp-audit":
        task_sp_audit(args, settings)
    elif args.task in ("send-test-mail", "intune-devices"):
        task_graph(args, settings)
    elif args.task == "deploy-nordpass":
        task_deploy(args, settings)
    elif args.task == "geoip":
        task_geoip(args, settings)
    elif args.task in ("ldif2csv", "vcf2csv"):
        task_convert(args)
    elif args.task == "schedule":
        task_schedule(args)
    elif args.task == "tasks":
        task_list_tasks(args)
    elif args.task == "gui":
        from .gui import launch
        launch(args.log_dir or settings.log_dir)

def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
        if args.task != "gui":
            setup_logging(args.log_dir or settings.log_dir, keep=settings.log_keep,
                          verbose=args.verbose, event_log=args.event_log)
        if args.csv and args.task not in CSV_TASKS:
            log.warning("--csv is ignored by --task %s", args.task)
        run(args, settings)
    except ToolError as e:
        log.error("%s", e)
        return 1
    except OSError as e:
        # unwritable output file or log folder
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130
    return 0

if __name__ == "__main__":
    sys.exit(main())

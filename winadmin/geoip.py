"""IP geolocation lookups against the free ip-api.com endpoint.

The free tier allows 45 requests per minute. Each response carries ``X-Rl``
(requests left) and ``X-Ttl`` (seconds until the window resets); when the
window is used up we wait it out instead of getting blocked.
"""

from __future__ import annotations
import csv
import ipaddress
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Callable, Iterable

import requests

from .config import DEFAULT_GEO_ENDPOINT
from .errors import ApiError, ToolError
from .logger import log

API_FIELDS = "status,message,query,country,countryCode,regionName,city,zip,lat,lon,timezone,isp,org,as"
DEFAULT_TTL = 60
MAX_WAIT = 120

@dataclass
class GeoLocation:
    ip: str
    country: str = ""
    country_code: str = ""
    region: str = ""
    city: str = ""
    zip: str = ""
    lat: float | None = None
    lon: float | None = None
    timezone: str = ""
    isp: str = ""
    org: str = ""
    asn: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "GeoLocation":
        return cls(
            ip=data.get("query", ""),
            country=data.get("country", ""),
            country_code=data.get("countryCode", ""),
            region=data.get("regionName", ""),
            city=data.get("city", ""),
            zip=data.get("zip", ""),
            lat=data.get("lat"),
            lon=data.get("lon"),
            timezone=data.get("timezone", ""),
            isp=data.get("isp", ""),
            org=data.get("org", ""),
            asn=data.get("as", ""),
        )

def validate_ip(ip: str) -> str:
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        raise ToolError(f"Not an IP address: {ip!r}") from None
    if not addr.is_global:
        raise ToolError(f"{addr} is a private/reserved address – nothing to look up")
    return str(addr)

def _wait_seconds(resp: requests.Response) -> int:
    try:
        ttl = int(resp.headers.get("X-Ttl", DEFAULT_TTL))
    except ValueError:
        ttl = DEFAULT_TTL
    return max(0, min(ttl, MAX_WAIT))

def lookup(ip: str, session: requests.Session | None = None, endpoint: str = DEFAULT_GEO_ENDPOINT,
           timeout: int = 30, sleep: Callable[[float], None] = time.sleep) -> GeoLocation:
    ip = validate_ip(ip)
    session = session or requests.Session()
    url = endpoint.rstrip("/") + "/" + ip
    for attempt in (1, 2):
        try:
            resp = session.get(url, params={"fields": API_FIELDS}, timeout=timeout)
        except requests.RequestException as e:
            raise ApiError(f"Geolocation request for {ip} failed: {e}") from e
        if resp.status_code == 429:
            if attempt == 2:
                raise ApiError("rate limit still exceeded after waiting", 429)
            wait = _wait_seconds(resp)
            log.warning("Geolocation rate limit hit – waiting %ds", wait)
            sleep(wait)
            continue
        if resp.status_code != 200:
            raise ApiError(f"geolocation lookup for {ip} failed", resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(f"{ip}: response was not JSON", resp.status_code) from None
        if data.get("status") != "success":
            raise ApiError(f"{ip}: {data.get('message', 'lookup failed')}")
        if resp.headers.get("X-Rl") == "0":
            wait = _wait_seconds(resp)
            log.info("Rate limit window used up – pausing %ds", wait)
            sleep(wait)
        return GeoLocation.from_api(data)
    raise ApiError("rate limit exceeded", 429)

def lookup_many(ips: Iterable[str], **kwargs) -> list[GeoLocation]:
    kwargs.setdefault("session", requests.Session())
    results = []
    for ip in ips:
        ip = ip.strip()
        if not ip:
            continue
        try:
            results.append(lookup(ip, **kwargs))
        except ToolError as e:
            log.error("%s", e)
    return results

def write_csv(locations: Iterable[GeoLocation], path: str | Path) -> int:
    names = [f.name for f in fields(GeoLocation)]
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=names)
        writer.writeheader()
        for loc in locations:
            writer.writerow(asdict(loc))
            count += 1
    return count

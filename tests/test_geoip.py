import csv
from unittest.mock import MagicMock

import pytest
import requests

from winadmin import geoip
from winadmin.errors import ApiError, ToolError

GOOGLE = {"status": "success", "query": "8.8.8.8", "country": "United States", "countryCode": "US",
          "regionName": "Virginia", "city": "Ashburn", "zip": "20149", "lat": 39.03, "lon": -77.5,
          "timezone": "America/New_York", "isp": "Google LLC", "org": "Google Public DNS",
          "as": "AS15169 Google LLC"}

def response(status=200, payload=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload or {}
    resp.headers = headers or {"X-Rl": "44", "X-Ttl": "60"}
    return resp

@pytest.mark.parametrize("ip", ["10.1.2.3", "127.0.0.1", "192.168.0.10", "::1"])
def test_private_addresses_rejected(ip):
    with pytest.raises(ToolError, match="private"):
        geoip.validate_ip(ip)

def test_garbage_rejected():
    with pytest.raises(ToolError, match="Not an IP"):
        geoip.validate_ip("not-an-ip")

def test_lookup():
    session = MagicMock()
    session.get.return_value = response(payload=GOOGLE)
    sleep = MagicMock()
    loc = geoip.lookup(" 8.8.8.8 ", session=session, sleep=sleep)
    assert loc.country_code == "US"
    assert loc.city == "Ashburn"
    assert loc.asn == "AS15169 Google LLC"
    assert session.get.call_args[0][0] == "http://ip-api.com/json/8.8.8.8"
    assert session.get.call_args[1]["params"] == {"fields": geoip.API_FIELDS}
    sleep.assert_not_called()

def test_waits_out_rate_limit_once():
    session = MagicMock()
    session.get.side_effect = [response(429, headers={"X-Rl": "0", "X-Ttl": "5"}),
                               response(payload=GOOGLE)]
    sleep = MagicMock()
    assert geoip.lookup("8.8.8.8", session=session, sleep=sleep).ip == "8.8.8.8"
    sleep.assert_called_once_with(5)

def test_second_rate_limit_fails():
    session = MagicMock()
    session.get.return_value = response(429, headers={"X-Ttl": "5"})
    with pytest.raises(ApiError) as exc:
        geoip.lookup("8.8.8.8", session=session, sleep=MagicMock())
    assert exc.value.status_code == 429
    assert session.get.call_count == 2

def test_pauses_when_window_used_up():
    session = MagicMock()
    session.get.return_value = response(payload=GOOGLE, headers={"X-Rl": "0", "X-Ttl": "999"})
    sleep = MagicMock()
    geoip.lookup("8.8.8.8", session=session, sleep=sleep)
    sleep.assert_called_once_with(geoip.MAX_WAIT)

def test_api_failure_message():
    session = MagicMock()
    session.get.return_value = response(payload={"status": "fail", "message": "reserved range"})
    with pytest.raises(ApiError, match="reserved range"):
        geoip.lookup("8.8.4.4", session=session, sleep=MagicMock())

def test_non_json_body_skipped_in_batch():
    portal = response()
    portal.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
    session = MagicMock()
    session.get.side_effect = [portal, response(payload=GOOGLE)]
    found = geoip.lookup_many(["1.1.1.1", "8.8.8.8"], session=session, sleep=MagicMock())
    assert [g.ip for g in found] == ["8.8.8.8"]

def test_lookup_many_skips_failures():
    session = MagicMock()
    session.get.return_value = response(payload=GOOGLE)
    found = geoip.lookup_many(["8.8.8.8", "10.0.0.1", "", "bogus"], session=session, sleep=MagicMock())
    assert [g.ip for g in found] == ["8.8.8.8"]
    assert session.get.call_count == 1

def test_write_csv(tmp_path):
    path = tmp_path / "geo.csv"
    assert geoip.write_csv([geoip.GeoLocation.from_api(GOOGLE)], path) == 1
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["ip"] == "8.8.8.8"
    assert rows[0]["country_code"] == "US"

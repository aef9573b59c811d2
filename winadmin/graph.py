"""Microsoft Graph tasks: test e-mail and Intune device inventory
-------------------------------------------------
App-only authentication (client credentials) through MSAL. The app
registration needs ``Mail.Send`` for send-test-mail and
``DeviceManagementManagedDevices.Read.All`` for intune-devices.
"""

from __future__ import annotations
import datetime as _dt
import re
import socket
import time

import msal
import requests

from .config import Settings
from .errors import ApiError, ToolError
from .logger import log, success

GRAPH_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DEVICE_FIELDS = ["deviceName", "operatingSystem", "osVersion", "complianceState",
                 "userPrincipalName", "lastSyncDateTime"]

class GraphClient:
    def __init__(self, settings: Settings, session: requests.Session | None = None, app=None):
        settings.require_graph()
        self.timeout = settings.http_timeout
        self.session = session or requests.Session()
        self.app = app or msal.ConfidentialClientApplication(
            settings.client_id,
            authority=f"https://login.microsoftonline.com/{settings.tenant_id}",
            client_credential=settings.client_secret,
        )
        self._token = None
        self._expires = 0.0

    def token(self) -> str:
        if self._token and time.time() < self._expires - 60:
            return self._token
        result = self.app.acquire_token_for_client(scopes=GRAPH_SCOPE)
        if "access_token" not in result:
            raise ApiError(f"Token request failed: {result.get('error_description') or result.get('error')}")
        self._token = result["access_token"]
        self._expires = time.time() + int(result.get("expires_in", 3600))
        return self._token

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else GRAPH_URL + path
        headers = {"Authorization": f"Bearer {self.token()}", **kwargs.pop("headers", {})}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"Graph request failed: {e}") from e
        if not 200 <= resp.status_code < 300:
            raise ApiError(_graph_error(resp), resp.status_code)
        return resp

    def get_paged(self, path: str, params: dict | None = None) -> list[dict]:
        items = []
        resp = self.request("GET", path, params=params)
        while True:
            data = resp.json()
            items += data.get("value", [])
            next_link = data.get("@odata.nextLink")
            if not next_link:
                return items
            resp = self.request("GET", next_link)

def _graph_error(resp: requests.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:300] or resp.reason or "unknown error"

def _recipient(address: str) -> dict:
    return {"emailAddress": {"address": address}}

def send_test_email(client: GraphClient, sender: str, recipients: list[str], subject: str | None = None,
                    body: str | None = None, save_to_sent: bool = False) -> dict:
    bad = [a for a in [sender, *recipients] if not EMAIL_RE.match(a)]
    if bad:
        raise ToolError("Invalid e-mail address: " + ", ".join(bad))
    if not recipients:
        raise ToolError("At least one recipient is required")
    now = _dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    host = socket.gethostname()
    message = {
        "subject": subject or f"Test message from {host} at {now}",
        "body": {
            "contentType": "Text",
            "content": body or f"This is a test message sent by winadmin from {host} at {now}.",
        },
        "toRecipients": [_recipient(a) for a in recipients],
    }
    payload = {"message": message, "saveToSentItems": save_to_sent}
    client.request("POST", f"/users/{sender}/sendMail", json=payload)
    success("Test e-mail sent from %s to %s", sender, ", ".join(recipients))
    return payload

def list_managed_devices(client: GraphClient, os_filter: str | None = None) -> list[dict]:
    params = {"$select": ",".join(DEVICE_FIELDS)}
    if os_filter:
        # OData string literals double embedded quotes
        value = os_filter.replace("'", "''")
        params["$filter"] = f"operatingSystem eq '{value}'"
    devices = client.get_paged("/deviceManagement/managedDevices", params=params)
    log.info("Intune returned %d managed device(s)", len(devices))
    return [{f: d.get(f, "") for f in DEVICE_FIELDS} for d in devices]

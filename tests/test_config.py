from pathlib import Path

import pytest

from winadmin import config
from winadmin.config import DEFAULT_GEO_ENDPOINT, Settings, load_settings
from winadmin.errors import ToolError

def test_defaults(monkeypatch):
    monkeypatch.setattr(config.shutil, "which", lambda name: None)
    s = load_settings({})
    assert s.log_dir == Path("logs")
    assert s.log_keep == 10
    assert s.http_timeout == 30
    assert s.pwsh == "powershell"
    assert s.geo_endpoint == DEFAULT_GEO_ENDPOINT
    assert s.tenant_id is None

def test_prefers_pwsh(monkeypatch):
    monkeypatch.setattr(config.shutil, "which", lambda name: "/usr/bin/pwsh")
    assert load_settings({}).pwsh == "pwsh"

def test_values_from_env():
    s = load_settings({
        "WINADMIN_TENANT_ID": "t", "WINADMIN_CLIENT_ID": "c", "WINADMIN_CLIENT_SECRET": "s",
        "WINADMIN_LOG_DIR": "D:\\logs", "WINADMIN_LOG_KEEP": "3", "WINADMIN_PWSH": "C:\\ps\\pwsh.exe",
        "WINADMIN_CERT_THUMBPRINT": "AB12",
    })
    assert (s.tenant_id, s.client_id, s.client_secret) == ("t", "c", "s")
    assert s.log_keep == 3
    assert s.pwsh == "C:\\ps\\pwsh.exe"
    assert (s.cert_thumbprint, s.cert_path) == ("AB12", None)
    s.require_graph()

@pytest.mark.parametrize("value", ["ten", "0", "-4"])
def test_bad_integers(value):
    with pytest.raises(ToolError, match="WINADMIN_HTTP_TIMEOUT"):
        load_settings({"WINADMIN_HTTP_TIMEOUT": value, "WINADMIN_PWSH": "pwsh"})

def test_require_graph_lists_missing():
    with pytest.raises(ToolError) as exc:
        Settings(tenant_id="t").require_graph()
    assert "WINADMIN_CLIENT_ID" in str(exc.value)
    assert "WINADMIN_CLIENT_SECRET" in str(exc.value)
    assert "WINADMIN_TENANT_ID" not in str(exc.value)

def test_dotenv_loaded(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WINADMIN_LOG_KEEP", raising=False)
    (tmp_path / ".env").write_text("WINADMIN_LOG_KEEP=4\n")
    assert load_settings().log_keep == 4

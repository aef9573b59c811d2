import sys
from unittest.mock import MagicMock, call, patch

import pytest
import requests

from winadmin import deploy
from winadmin.config import Settings
from winadmin.errors import ApiError, CommandError, ToolError

def download_response(status=200, chunks=(b"MSI", b"", b"DATA")):
    resp = MagicMock()
    resp.status_code = status
    resp.iter_content.return_value = list(chunks)
    resp.__enter__.return_value = resp
    return resp

class TestDownload:
    def test_success(self, tmp_path):
        session = MagicMock()
        session.get.return_value = download_response()
        sleep = MagicMock()
        path = deploy.download_installer("https://x/setup.msi", tmp_path / "setup.msi", session=session, sleep=sleep)
        assert path.read_bytes() == b"MSIDATA"
        assert not (tmp_path / "setup.msi.part").exists()
        sleep.assert_not_called()

    def test_retries_connection_error(self, tmp_path):
        session = MagicMock()
        session.get.side_effect = [requests.ConnectionError("reset"), download_response(503), download_response()]
        sleep = MagicMock()
        deploy.download_installer("https://x/setup.msi", tmp_path / "setup.msi", attempts=3, delay=2,
                                  session=session, sleep=sleep)
        assert session.get.call_count == 3
        assert sleep.call_args_list == [call(2), call(2)]

    def test_retries_dropped_body(self, tmp_path):
        dropped = download_response()
        dropped.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")
        session = MagicMock()
        session.get.side_effect = [dropped, download_response(chunks=[b"MSI"])]
        sleep = MagicMock()
        path = deploy.download_installer("https://x/setup.msi", tmp_path / "setup.msi", delay=1,
                                         session=session, sleep=sleep)
        assert path.read_bytes() == b"MSI"
        assert session.get.call_count == 2
        sleep.assert_called_once_with(1)

    def test_gives_up(self, tmp_path):
        session = MagicMock()
        session.get.return_value = download_response(chunks=())
        sleep = MagicMock()
        with pytest.raises(ToolError, match="after 3 attempts"):
            deploy.download_installer("https://x/setup.msi", tmp_path / "setup.msi", session=session, sleep=sleep)
        assert sleep.call_count == 2
        assert not (tmp_path / "setup.msi").exists()
        assert not (tmp_path / "setup.msi.part").exists()

    def test_client_error_not_retried(self, tmp_path):
        session = MagicMock()
        session.get.return_value = download_response(404)
        with pytest.raises(ApiError) as exc:
            deploy.download_installer("https://x/setup.msi", tmp_path / "setup.msi", session=session,
                                      sleep=MagicMock())
        assert exc.value.status_code == 404
        assert session.get.call_count == 1

class TestInstallMsi:
    @patch("winadmin.shell.subprocess.run")
    def test_silent_install(self, mock_run, completed):
        mock_run.return_value = completed()
        assert deploy.install_msi("C:\\t\\setup.msi", "C:\\t\\install.log") == 0
        assert mock_run.call_args[0][0] == ["msiexec", "/i", "C:\\t\\setup.msi", "/qn", "/norestart",
                                            "/L*v", "C:\\t\\install.log"]

    @patch("winadmin.shell.subprocess.run")
    def test_reboot_required_is_success(self, mock_run, completed):
        mock_run.return_value = completed(returncode=3010)
        assert deploy.install_msi("setup.msi") == 3010

    @patch("winadmin.shell.subprocess.run")
    def test_another_install_running(self, mock_run, completed):
        mock_run.return_value = completed(returncode=1618)
        with pytest.raises(CommandError, match="another installation"):
            deploy.install_msi("setup.msi")

    @patch("winadmin.shell.subprocess.run")
    def test_fatal_error(self, mock_run, completed):
        mock_run.return_value = completed(returncode=1603)
        with pytest.raises(CommandError) as exc:
            deploy.install_msi("setup.msi")
        assert exc.value.returncode == 1603

class TestDeployNordpass:
    def test_skips_when_installed(self, monkeypatch, tmp_path):
        monkeypatch.setattr(deploy, "is_installed", lambda name: True)
        download = MagicMock()
        monkeypatch.setattr(deploy, "download_installer", download)
        assert deploy.deploy_nordpass(Settings(), tmp_path) == "already-installed"
        download.assert_not_called()

    def test_installs_and_cleans_up(self, monkeypatch, tmp_path):
        installer = tmp_path / "NordPassSetup.msi"

        def fake_download(url, destination, **kw):
            destination.write_bytes(b"msi")
            return destination

        install = MagicMock(return_value=0)
        monkeypatch.setattr(deploy, "is_installed", lambda name: False)
        monkeypatch.setattr(deploy, "download_installer", fake_download)
        monkeypatch.setattr(deploy, "install_msi", install)
        assert deploy.deploy_nordpass(Settings(), tmp_path) == "installed"
        install.assert_called_once_with(installer, tmp_path / "NordPass-install.log")
        assert not installer.exists()

    def test_force_reinstalls(self, monkeypatch, tmp_path):
        monkeypatch.setattr(deploy, "is_installed", lambda name: True)
        monkeypatch.setattr(deploy, "download_installer", lambda url, dest, **kw: dest)
        monkeypatch.setattr(deploy, "install_msi", MagicMock(return_value=0))
        assert deploy.deploy_nordpass(Settings(), tmp_path, force=True) == "installed"

@pytest.mark.skipif(sys.platform == "win32", reason="reads the real registry on Windows")
def test_no_registry_off_windows():
    assert deploy.installed_programs() == []
    assert not deploy.is_installed("NordPass")

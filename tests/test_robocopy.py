from unittest.mock import patch

import pytest

from winadmin import robocopy
from winadmin.errors import CommandError, ToolError, ToolMissingError
from winadmin.robocopy import BASE_FLAGS, RobocopyResult, build_command, copy_tree

class TestBuildCommand:
    def test_default_flags(self):
        assert build_command("C:\\src", "D:\\dst") == ["robocopy", "C:\\src", "D:\\dst", "/E", *BASE_FLAGS]

    def test_all_options(self):
        cmd = build_command("src", "dst", files=["*.docx"], mirror=True, threads=16, log_file="copy.log",
                            dry_run=True, exclude_dirs=["tmp"], exclude_files=["*.bak"])
        assert cmd[:4] == ["robocopy", "src", "dst", "*.docx"]
        assert "/MIR" in cmd and "/E" not in cmd
        assert "/MT:16" in cmd
        assert "/LOG+:copy.log" in cmd
        assert "/L" in cmd
        assert cmd[-4:] == ["/XD", "tmp", "/XF", "*.bak"]

    @pytest.mark.parametrize("threads", [0, 129])
    def test_thread_bounds(self, threads):
        with pytest.raises(ToolError):
            build_command("a", "b", threads=threads)

class TestResult:
    @pytest.mark.parametrize("code", range(8))
    def test_below_eight_is_success(self, code):
        assert RobocopyResult(code).success

    def test_eight_is_failure(self):
        assert not RobocopyResult(8).success

    def test_describe_bits(self):
        assert RobocopyResult(3).describe() == "files copied, extra files or directories in destination"
        assert "no changes" in RobocopyResult(0).describe()

class TestCopyTree:
    def test_missing_source(self, tmp_path):
        with pytest.raises(ToolError, match="not found"):
            copy_tree(tmp_path / "nope", tmp_path / "dst")

    @patch("winadmin.shell.subprocess.run")
    def test_success(self, mock_run, tmp_path, completed):
        mock_run.return_value = completed("Files : 3", returncode=1)
        result = copy_tree(tmp_path, tmp_path / "dst", dry_run=True)
        assert result.returncode == 1 and result.success
        args = mock_run.call_args[0][0]
        assert args[0] == "robocopy" and "/L" in args

    @patch("winadmin.shell.subprocess.run")
    def test_failure_code_raises(self, mock_run, tmp_path, completed):
        mock_run.return_value = completed("ERROR 5 (0x00000005) Access is denied.", returncode=9)
        with pytest.raises(CommandError) as exc:
            copy_tree(tmp_path, tmp_path / "dst")
        assert exc.value.returncode == 9
        assert "could not be copied" in str(exc.value)

    @patch("winadmin.shell.subprocess.run", side_effect=FileNotFoundError)
    def test_robocopy_missing(self, mock_run, tmp_path):
        with pytest.raises(ToolMissingError):
            robocopy.copy_tree(tmp_path, tmp_path / "dst")

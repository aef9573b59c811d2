import logging
import subprocess

import pytest

from winadmin import logger

@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger._remove_own_handlers()
    logger.log.propagate = True
    logger.log.setLevel(logging.NOTSET)

@pytest.fixture
def completed():
    """Factory for fake ``subprocess.run`` results."""
    def _make(stdout="", returncode=0, stderr=""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)
    return _make

class FakeRunner:
    """Stands in for PowerShellRunner: canned JSON rows, records every script."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.json_bodies = []
        self.bodies = []

    def run_json(self, body):
        self.json_bodies.append(body)
        return self.rows

    def run(self, body):
        self.bodies.append(body)
        if self.error:
            raise self.error
        return ""

@pytest.fixture
def fake_runner():
    return FakeRunner

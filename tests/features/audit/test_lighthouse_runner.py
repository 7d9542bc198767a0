import json
import subprocess
from unittest.mock import patch

import pytest

from localinsights.features.audit.services.lighthouse_runner import LighthouseRunner
from localinsights.platform.exceptions import AuditToolError

REPORT = {"categories": {"performance": {"score": 0.87}}, "audits": {}}


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["lighthouse"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestBuildCommand:
    def test_desktop_attached_to_port(self):
        command = LighthouseRunner().build_command("https://harbourbakery.ca", "desktop", port=9222)

        assert command[:2] == ["lighthouse", "https://harbourbakery.ca"]
        assert "--port=9222" in command
        assert "--preset=desktop" in command
        assert "--only-categories=performance,accessibility,best-practices,seo" in command

    def test_mobile_throttling(self):
        command = LighthouseRunner().build_command("https://harbourbakery.ca", "mobile")

        assert "--throttling.cpuSlowdownMultiplier=4" in command
        assert "--throttling.rttMs=150" in command
        assert "--throttling.throughputKbps=1638.4" in command
        assert "--throttling.uploadThroughputKbps=750" in command
        assert any(flag.startswith("--chrome-flags=") for flag in command)


class TestRun:
    @patch("localinsights.features.audit.services.lighthouse_runner.subprocess.run")
    def test_returns_report(self, mock_run):
        mock_run.return_value = completed(stdout=json.dumps(REPORT))

        assert LighthouseRunner(timeout=60).run("https://harbourbakery.ca") == REPORT
        assert mock_run.call_args.kwargs["timeout"] == 60

    @pytest.mark.parametrize(
        "side_effect",
        [
            FileNotFoundError("lighthouse"),
            subprocess.TimeoutExpired(cmd="lighthouse", timeout=120),
        ],
    )
    @patch("localinsights.features.audit.services.lighthouse_runner.subprocess.run")
    def test_process_failures(self, mock_run, side_effect):
        mock_run.side_effect = side_effect
        with pytest.raises(AuditToolError):
            LighthouseRunner().run("https://harbourbakery.ca")

    @pytest.mark.parametrize(
        "result",
        [
            completed(returncode=1, stderr="Runtime error encountered: Unable to connect"),
            completed(stdout="not json"),
            completed(stdout=json.dumps({"categories": {}})),
            completed(stdout=json.dumps({**REPORT, "runtimeError": {"code": "NO_FCP", "message": "No content"}})),
        ],
    )
    @patch("localinsights.features.audit.services.lighthouse_runner.subprocess.run")
    def test_unusable_reports(self, mock_run, result):
        mock_run.return_value = result
        with pytest.raises(AuditToolError):
            LighthouseRunner().run("https://harbourbakery.ca")

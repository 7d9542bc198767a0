import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from localinsights.platform.exceptions import AuditToolError

logger = logging.getLogger(__name__)

CATEGORIES = "performance,accessibility,best-practices,seo"

DESKTOP_FLAGS = ["--preset=desktop"]

# Slow 4G with a mid-tier phone CPU
MOBILE_FLAGS = [
    "--form-factor=mobile",
    "--screenEmulation.mobile",
    "--screenEmulation.width=375",
    "--screenEmulation.height=667",
    "--screenEmulation.deviceScaleFactor=2",
    "--throttling-method=simulate",
    "--throttling.cpuSlowdownMultiplier=4",
    "--throttling.rttMs=150",
    "--throttling.throughputKbps=1638.4",
    "--throttling.uploadThroughputKbps=750",
]


class LighthouseRunner:
    """
    Runs the Lighthouse CLI and returns its JSON report (the ``lhr``).

    When a debugging port is given Lighthouse attaches to that Chrome instead of
    launching its own. Every failure mode raises AuditToolError.
    """

    def __init__(self, binary: str = "lighthouse", timeout: int = 120):
        self.binary = binary
        self.timeout = timeout

    def build_command(self, url: str, device: str, port: Optional[int] = None) -> List[str]:
        command = [
            self.binary,
            url,
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--only-categories={CATEGORIES}",
        ]
        if port:
            command.append(f"--port={port}")
        else:
            command.append("--chrome-flags=--headless=new --no-sandbox --disable-gpu")
        command.extend(MOBILE_FLAGS if device == "mobile" else DESKTOP_FLAGS)
        return command

    def run(self, url: str, device: str = "desktop", port: Optional[int] = None) -> Dict[str, Any]:
        command = self.build_command(url, device, port)
        logger.info(f"Running Lighthouse ({device}) for {url}")

        try:
            completed = subprocess.run(command, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise AuditToolError(f"Lighthouse binary not found: {self.binary}") from e
        except subprocess.TimeoutExpired as e:
            raise AuditToolError(f"Lighthouse timed out after {self.timeout}s for {url}") from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {completed.returncode}"
            raise AuditToolError(f"Lighthouse failed for {url}: {detail}")

        try:
            lhr = json.loads(completed.stdout)
        except ValueError as e:
            raise AuditToolError(f"Lighthouse returned invalid JSON for {url}") from e

        if not isinstance(lhr, dict):
            raise AuditToolError(f"Lighthouse returned an unexpected report for {url}")

        runtime_error = lhr.get("runtimeError") or {}
        if runtime_error.get("code") not in (None, "NO_ERROR"):
            raise AuditToolError(f"Lighthouse runtime error {runtime_error.get('code')}: {runtime_error.get('message')}")
        if not lhr.get("categories"):
            raise AuditToolError(f"Lighthouse returned an empty report for {url}")

        return lhr

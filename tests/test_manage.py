"""
Test suite for manage.py CLI commands.

This module tests the Typer CLI commands in manage.py.

Run all tests:
    pytest tests/test_manage.py -v

Run with coverage:
    pytest tests/test_manage.py --cov=manage --cov-report=term-missing -v
"""

import json
import subprocess
from unittest.mock import patch

from typer.testing import CliRunner

from manage import app, mask_secret

runner = CliRunner()


class TestMaskSecret:

    def test_keeps_last_four(self):
        assert mask_secret("sk_test_123456") == "**********3456"

    def test_short_value_fully_masked(self):
        assert mask_secret("abc") == "***"


class TestShowConfigCommand:

    def test_showconfig_masks_api_key(self):
        result = runner.invoke(app, ["showconfig"])

        assert result.exit_code == 0
        assert "cus_test_123" in result.stdout
        assert "plan_test_123" in result.stdout
        assert "sk_test_123" not in result.stdout
        assert "disabled" in result.stdout


class TestGenerateOpenAPICommand:

    def test_writes_schema(self, tmp_path):
        output = tmp_path / "schema.json"

        result = runner.invoke(app, ["generateopenapi", "--output", str(output)])

        assert result.exit_code == 0
        schema = json.loads(output.read_text(encoding="utf-8"))
        assert "/subscriptions/session-create" in schema["paths"]
        assert "/webhook/subscription-complete" in schema["paths"]


class TestRunServerCommand:

    def test_runs_uvicorn(self):
        with patch("manage.subprocess.run") as mock_run:
            result = runner.invoke(app, ["runserver", "--port", "9001"])

        assert result.exit_code == 0
        command = mock_run.call_args[0][0]
        assert command.startswith("uvicorn trial_checkout.main:app")
        assert "--port 9001" in command

    def test_propagates_failure(self):
        with patch(
            "manage.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, "uvicorn"),
        ):
            result = runner.invoke(app, ["runserver"])

        assert result.exit_code != 0
        assert "Error" in result.stdout

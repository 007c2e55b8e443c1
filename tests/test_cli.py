# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Tests for CLI interface.

These tests use Click's CliRunner with the Dataverse facade patched, so no
MongoDB instance or API keys are needed.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from dataverse.cli import cli
from dataverse.core.config import Config
from dataverse.core.errors import DatabaseConnectionError
from dataverse.core.models import ConnectionInfo, DatabaseInfo, FieldValueCount
from dataverse.providers.base import GenerationResult
from dataverse.service import Dataverse

URI = "mongodb://localhost:27017/shop"


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def mock_dataverse(shop_snapshot):
    """Patch the facade; commands get an instance with async methods."""
    with patch("dataverse.cli.Dataverse") as mock_class:
        instance = MagicMock()
        instance.__aenter__.return_value = instance
        instance.config = Config()
        instance.extract_schema = AsyncMock(return_value=shop_snapshot)
        instance.parse_and_compile = Dataverse().parse_and_compile
        instance.execute_compiled = AsyncMock(return_value=1250)
        mock_class.return_value = instance
        yield mock_class, instance


class TestCLIBasics:

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("validate", "databases", "schema", "ask", "distribution"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_config_error_reported(self, runner, tmp_path, monkeypatch):
        monkeypatch.delenv("DATAVERSE_MISSING_FOR_TEST", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  api_key: ${DATAVERSE_MISSING_FOR_TEST}\n")

        result = runner.invoke(cli, ["validate", URI, "-c", str(path)])

        assert result.exit_code == 1
        assert "Config error" in result.output
        assert "DATAVERSE_MISSING_FOR_TEST" in result.output


class TestValidateCommand:

    def test_valid(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        instance.validate_connection = AsyncMock(
            return_value=ConnectionInfo(is_valid=True, database_name="shop", is_read_only=True)
        )

        result = runner.invoke(cli, ["validate", URI])

        assert result.exit_code == 0
        assert "OK" in result.output
        assert "read-only" in result.output
        instance.validate_connection.assert_awaited_once_with(URI)

    def test_invalid(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        instance.validate_connection = AsyncMock(
            return_value=ConnectionInfo(is_valid=False, error="No database specified in URI")
        )

        result = runner.invoke(cli, ["validate", "mongodb://localhost:27017/"])

        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert "No database specified" in result.output


class TestSchemaCommand:

    def test_json_output(self, runner, mock_dataverse):
        result = runner.invoke(cli, ["schema", URI, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output[result.output.index("{"):])
        assert data["databaseName"] == "shop"
        assert [c["name"] for c in data["collections"]] == ["users", "orders", "products"]

    def test_table_output(self, runner, mock_dataverse):
        result = runner.invoke(cli, ["schema", URI])

        assert result.exit_code == 0
        assert "3 collections" in result.output
        assert "orders" in result.output

    def test_sample_size_override(self, runner, mock_dataverse):
        mock_class, _ = mock_dataverse

        runner.invoke(cli, ["schema", URI, "--json", "-n", "500"])

        cfg = mock_class.call_args[0][0]
        assert cfg.mongodb.sample_size == 500

    def test_connection_error(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        instance.extract_schema = AsyncMock(side_effect=DatabaseConnectionError("connection refused"))

        result = runner.invoke(cli, ["schema", URI])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "connection refused" in result.output


class TestAskCommand:
    """Tests for the ask command."""

    def test_compile_only(self, runner, mock_dataverse):
        _, instance = mock_dataverse

        result = runner.invoke(cli, ["ask", URI, "how many users are there"])

        assert result.exit_code == 0
        assert "count query on users" in result.output
        assert '"type": "count"' in result.output
        instance.execute_compiled.assert_not_awaited()

    def test_execute(self, runner, mock_dataverse):
        _, instance = mock_dataverse

        result = runner.invoke(cli, ["ask", URI, "how many users are there", "--execute"])

        assert result.exit_code == 0
        assert "Result:" in result.output
        assert "1250" in result.output
        args = instance.execute_compiled.await_args.args
        assert args[:2] == (URI, "shop")

    def test_invalid_query(self, runner, mock_dataverse):
        result = runner.invoke(cli, ["ask", URI, "how many invoices are there", "-x"])

        assert result.exit_code == 1
        assert "Invalid:" in result.output
        assert "No collection specified in query" in result.output

    def test_answer_mode(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        provider = MagicMock()
        provider.async_generate = AsyncMock(
            return_value=GenerationResult(content="You have 1,250 users.", tokens=12)
        )

        with patch("dataverse.providers.create_provider", return_value=provider) as mock_create:
            result = runner.invoke(cli, ["ask", URI, "how many users are there", "--answer"])

        assert result.exit_code == 0
        assert "You have 1,250 users." in result.output
        mock_create.assert_called_once()
        instance.execute_compiled.assert_awaited_once()


class TestOtherCommands:

    def test_databases(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        instance.list_databases = AsyncMock(return_value=[
            DatabaseInfo(name="shop", size_on_disk=8192),
            DatabaseInfo(name="admin", size_on_disk=0),
        ])

        result = runner.invoke(cli, ["databases", URI])

        assert result.exit_code == 0
        assert "shop" in result.output
        assert "8,192" in result.output

    def test_distribution(self, runner, mock_dataverse):
        _, instance = mock_dataverse
        instance.field_distribution = AsyncMock(return_value=[
            FieldValueCount(value="shipped", count=4200),
            FieldValueCount(value=None, count=3),
        ])

        result = runner.invoke(cli, ["distribution", URI, "orders", "status", "-l", "5"])

        assert result.exit_code == 0
        assert "shipped" in result.output
        assert "4,200" in result.output
        instance.field_distribution.assert_awaited_once_with(URI, "orders", "status", limit=5)

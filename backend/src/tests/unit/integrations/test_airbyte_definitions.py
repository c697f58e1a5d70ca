"""
Unit tests for the connector definition cache and API payload models.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.integrations.airbyte.definitions import DefinitionStore, SOURCES_FILE, DESTINATIONS_FILE
from src.integrations.airbyte.models import (
    AirbyteJob,
    AirbyteJobStatus,
    ConnectorDefinition,
    is_placeholder_id,
)


def _write(directory, filename, items):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_text(json.dumps(items), encoding="utf-8")


class TestDefinitionStore:

    def test_lookup_is_case_insensitive(self, tmp_path):
        _write(tmp_path, SOURCES_FILE, [
            {"sourceDefinitionId": "woo-def", "name": "WooCommerce"},
            {"sourceDefinitionId": "gads-def", "name": "Google Ads"},
        ])
        store = DefinitionStore(tmp_path)

        assert store.get_source_definition("woocommerce").definition_id == "woo-def"
        assert store.get_source_definition(" Google Ads ").definition_id == "gads-def"
        assert store.get_source_definition("Stripe") is None

    def test_missing_files_are_empty(self, tmp_path):
        store = DefinitionStore(tmp_path / "nowhere")

        assert store.get_source_definition("WooCommerce") is None
        assert store.get_destination_definition("Postgres") is None

    def test_unreadable_file_is_empty(self, tmp_path):
        tmp_path.joinpath(DESTINATIONS_FILE).write_text("{not json", encoding="utf-8")
        store = DefinitionStore(tmp_path)

        assert store.get_destination_definition("Postgres") is None

    def test_directory_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AIRBYTE_DEFINITIONS_DIR", str(tmp_path))
        assert DefinitionStore().directory == tmp_path

    def test_save_then_lookup(self, tmp_path):
        store = DefinitionStore(tmp_path / "defs")
        store.save(
            [ConnectorDefinition(definition_id="woo-def", name="WooCommerce")],
            [ConnectorDefinition(definition_id="pg-def", name="Postgres")],
        )

        reloaded = DefinitionStore(tmp_path / "defs")
        assert reloaded.get_destination_definition("postgres").definition_id == "pg-def"
        saved = json.loads((tmp_path / "defs" / SOURCES_FILE).read_text(encoding="utf-8"))
        assert saved[0]["definitionId"] == "woo-def"

    @pytest.mark.asyncio
    async def test_refresh_fetches_and_persists(self, tmp_path):
        client = MagicMock()
        client.list_source_definitions = AsyncMock(return_value=[
            ConnectorDefinition(definition_id="fb-def", name="Facebook Marketing"),
        ])
        client.list_destination_definitions = AsyncMock(return_value=[
            ConnectorDefinition(definition_id="pg-def", name="Postgres"),
        ])
        store = DefinitionStore(tmp_path)

        counts = await store.refresh(client)

        assert counts == (1, 1)
        assert store.get_source_definition("facebook marketing").definition_id == "fb-def"
        assert (tmp_path / DESTINATIONS_FILE).exists()


class TestModels:

    def test_definition_reads_any_id_field(self):
        assert ConnectorDefinition.from_dict({"sourceDefinitionId": "a", "name": "x"}).definition_id == "a"
        assert ConnectorDefinition.from_dict({"destinationDefinitionId": "b", "name": "x"}).definition_id == "b"
        assert ConnectorDefinition.from_dict({"definitionId": "c", "name": "x"}).definition_id == "c"

    def test_job_from_sync_response(self):
        job = AirbyteJob.from_dict({"job": {"id": 42, "status": "succeeded", "createdAt": 1700000000}})

        assert job.job_id == "42"
        assert job.status == AirbyteJobStatus.SUCCEEDED
        assert job.is_complete
        assert job.created_at.year == 2023

    def test_unknown_job_status_is_pending(self):
        assert AirbyteJobStatus.parse("queued") == AirbyteJobStatus.PENDING

    @pytest.mark.parametrize("value,expected", [
        ("mock-123", True),
        ("dev-source-1", True),
        ("3f1c7a52-0000-4000-8000-000000000000", False),
        (None, False),
        ("", False),
    ])
    def test_placeholder_ids(self, value, expected):
        assert is_placeholder_id(value) is expected

"""
Local cache of Airbyte connector definitions.

Looking up a definition id by name on every provisioning call costs a
request that lists hundreds of connectors. The lists are stored once in
``sources.json`` and ``destinations.json`` (refreshed with
scripts/refresh_airbyte_definitions.py) and read from there first.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from src.integrations.airbyte.client import AirbyteClient
from src.integrations.airbyte.models import ConnectorDefinition

logger = logging.getLogger(__name__)

DEFAULT_DEFINITIONS_DIR = Path(__file__).resolve().parents[3] / "data" / "airbyte_definitions"

SOURCES_FILE = "sources.json"
DESTINATIONS_FILE = "destinations.json"


def _to_dict(definition: ConnectorDefinition) -> Dict[str, Optional[str]]:
    return {
        "definitionId": definition.definition_id,
        "name": definition.name,
        "dockerRepository": definition.docker_repository,
        "dockerImageTag": definition.docker_image_tag,
    }


class DefinitionStore:
    """
    File-backed store of source and destination definitions.

    Files are loaded lazily on first lookup. Missing or unreadable files
    are treated as empty lists.
    """

    def __init__(self, directory: Optional[Path] = None):
        configured = os.getenv("AIRBYTE_DEFINITIONS_DIR")
        self.directory = Path(directory or configured or DEFAULT_DEFINITIONS_DIR)
        self._sources: Optional[List[ConnectorDefinition]] = None
        self._destinations: Optional[List[ConnectorDefinition]] = None

    def _read(self, filename: str) -> List[ConnectorDefinition]:
        path = self.directory / filename
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Could not read connector definitions",
                extra={"path": str(path), "error": str(e)},
            )
            return []
        return [ConnectorDefinition.from_dict(item) for item in raw]

    def load(self) -> Tuple[List[ConnectorDefinition], List[ConnectorDefinition]]:
        """Read both files, replacing whatever is held in memory."""
        self._sources = self._read(SOURCES_FILE)
        self._destinations = self._read(DESTINATIONS_FILE)
        logger.info(
            "Connector definitions loaded",
            extra={
                "directory": str(self.directory),
                "source_count": len(self._sources),
                "destination_count": len(self._destinations),
            },
        )
        return self._sources, self._destinations

    def save(
        self,
        sources: List[ConnectorDefinition],
        destinations: List[ConnectorDefinition],
    ) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        for filename, definitions in ((SOURCES_FILE, sources), (DESTINATIONS_FILE, destinations)):
            with open(self.directory / filename, "w", encoding="utf-8") as f:
                json.dump([_to_dict(d) for d in definitions], f, indent=2)

        self._sources = list(sources)
        self._destinations = list(destinations)
        logger.info(
            "Connector definitions saved",
            extra={
                "directory": str(self.directory),
                "source_count": len(sources),
                "destination_count": len(destinations),
            },
        )

    async def refresh(self, client: AirbyteClient) -> Tuple[int, int]:
        """
        Fetch both definition lists from the API and persist them.

        Returns:
            (source count, destination count)
        """
        sources = await client.list_source_definitions()
        destinations = await client.list_destination_definitions()
        self.save(sources, destinations)
        return len(sources), len(destinations)

    @staticmethod
    def _find(definitions: List[ConnectorDefinition], name: str) -> Optional[ConnectorDefinition]:
        wanted = name.strip().lower()
        for definition in definitions:
            if definition.name.lower() == wanted:
                return definition
        return None

    def get_source_definition(self, name: str) -> Optional[ConnectorDefinition]:
        """Case-insensitive lookup of a source definition by name."""
        if self._sources is None:
            self.load()
        return self._find(self._sources or [], name)

    def get_destination_definition(self, name: str) -> Optional[ConnectorDefinition]:
        if self._destinations is None:
            self.load()
        return self._find(self._destinations or [], name)

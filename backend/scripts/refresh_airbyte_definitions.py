#!/usr/bin/env python3
"""
Refresh the local cache of Airbyte connector definitions.

Fetches every source and destination definition from the Airbyte API and
writes them to sources.json / destinations.json in AIRBYTE_DEFINITIONS_DIR
(default: backend/data/airbyte_definitions). Provisioning reads definition
ids from these files before asking the API.

Usage:
    python backend/scripts/refresh_airbyte_definitions.py [--dir PATH]

Exit codes:
    0 - Definitions refreshed
    1 - Refresh failed
"""

import argparse
import asyncio
import os
import sys

# Add backend to path for imports (so src.integrations... imports work)
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv

# Definitions the provisioning flows look up by name
REQUIRED_SOURCES = ["WooCommerce", "Google Ads", "Facebook Marketing"]
REQUIRED_DESTINATIONS = ["Postgres"]


async def refresh_definitions(directory: str = None) -> bool:
    load_dotenv()

    from src.integrations.airbyte.client import AirbyteClient
    from src.integrations.airbyte.definitions import DefinitionStore
    from src.integrations.airbyte.exceptions import AirbyteError

    store = DefinitionStore(directory)

    async with AirbyteClient() as client:
        if not client.has_credentials:
            print("❌ AIRBYTE_CLIENT_ID / AIRBYTE_CLIENT_SECRET not set, cannot refresh.")
            return False

        try:
            source_count, destination_count = await store.refresh(client)
        except AirbyteError as e:
            print(f"❌ Failed to fetch definitions: {e.message}")
            return False

    print(f"✅ Saved {source_count} source and {destination_count} destination definitions")
    print(f"   Directory: {store.directory}")

    all_found = True
    for name in REQUIRED_SOURCES:
        definition = store.get_source_definition(name)
        found = definition is not None
        all_found = all_found and found
        print(f"   {'✅' if found else '⚠️'} source {name}: {definition.definition_id if found else 'missing'}")
    for name in REQUIRED_DESTINATIONS:
        definition = store.get_destination_definition(name)
        found = definition is not None
        all_found = all_found and found
        print(f"   {'✅' if found else '⚠️'} destination {name}: {definition.definition_id if found else 'missing'}")

    if not all_found:
        print("\n⚠️  Some definitions used by the sync flows are missing from this instance.")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Refresh cached Airbyte connector definitions")
    parser.add_argument("--dir", dest="directory", default=None, help="Output directory")
    args = parser.parse_args()

    try:
        return 0 if asyncio.run(refresh_definitions(args.directory)) else 1
    except KeyboardInterrupt:
        print("\n\nRefresh cancelled by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())

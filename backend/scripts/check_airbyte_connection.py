#!/usr/bin/env python3
"""
Airbyte connection diagnostic script.

Checks that the Airbyte API configured for Syncboard is reachable and
that the client credentials are accepted.

Usage:
    python backend/scripts/check_airbyte_connection.py

Prerequisites:
    - AIRBYTE_API_URL environment variable (or uses default)
    - AIRBYTE_CLIENT_ID / AIRBYTE_CLIENT_SECRET environment variables

Exit codes:
    0 - All checks passed
    1 - One or more checks failed
"""

import asyncio
import os
import sys

# Add backend to path for imports (so src.integrations... imports work)
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv


def print_status(passed: bool, message: str) -> None:
    """Print a status message with pass/fail indicator."""
    status = "✅" if passed else "❌"
    print(f"{status} {message}")


def print_header(title: str) -> None:
    """Print a section header."""
    print(f"\n{'=' * 60}")
    print(f" {title}")
    print(f"{'=' * 60}\n")


async def check_airbyte_connection() -> bool:
    """
    Run the configuration, health and token checks.

    Returns:
        True if all checks pass, False otherwise
    """
    load_dotenv()

    print_header("Airbyte Connection Check")

    from src.integrations.airbyte.client import AirbyteClient
    from src.integrations.airbyte.exceptions import (
        AirbyteError,
        AirbyteAuthenticationError,
    )

    check_passed = True

    async with AirbyteClient() as client:
        # 1. Configuration
        print("--- Configuration ---")
        config = client.get_config()
        print_status(True, f"API URL: {config['api_url']}")
        if config["effective_url"] != config["api_url"]:
            print_status(True, f"Docker environment detected, using: {config['effective_url']}")
        if client.has_credentials:
            print_status(True, f"Client ID: {config['client_id']}")
            print_status(True, f"Client secret: {config['client_secret']}")
        else:
            print_status(False, "AIRBYTE_CLIENT_ID / AIRBYTE_CLIENT_SECRET not set")
            print("    The backend will run sync calls in mock mode.")
            return False

        # 2. Token
        print("\n--- Access Token ---")
        try:
            authorization = await client._get_authorization()
            print_status(True, f"Token obtained ({len(authorization)} chars)")
        except AirbyteAuthenticationError as e:
            print_status(False, f"Authentication failed: {e.message}")
            print("    Check the client id and secret of the Airbyte application.")
            check_passed = False
        except AirbyteError as e:
            print_status(False, f"Token request failed: {e.message}")
            check_passed = False

        # 3. Health check
        print("\n--- Health Check ---")
        try:
            health = await client.check_health()
            print_status(health.available, "Airbyte API is available" if health.available
                         else "Airbyte API reported itself unavailable")
            check_passed = check_passed and health.available
        except AirbyteError as e:
            print_status(False, f"Health check failed: {e.message}")
            check_passed = False

        # 4. Workspaces
        print("\n--- Workspaces ---")
        try:
            workspaces = await client.list_workspaces()
            print_status(True, f"Found {len(workspaces)} workspace(s)")
            for workspace in workspaces[:5]:
                print(f"    - {workspace.name} ({workspace.workspace_id})")
        except AirbyteError as e:
            print_status(False, f"Failed to list workspaces: {e.message}")
            check_passed = False

    print_header("Summary")
    if check_passed:
        print("✅ Airbyte is reachable and the credentials are valid.")
    else:
        print("❌ Some checks failed.")
        print("\nTroubleshooting:")
        print("  1. Verify AIRBYTE_API_URL points at the /api/v1 base")
        print("  2. Regenerate the application client secret if needed")
        print("  3. When running in Docker, make sure host.docker.internal resolves")
    return check_passed


def main() -> int:
    """Main entry point."""
    try:
        result = asyncio.run(check_airbyte_connection())
        return 0 if result else 1
    except KeyboardInterrupt:
        print("\n\nCheck cancelled by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())

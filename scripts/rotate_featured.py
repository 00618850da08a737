#!/usr/bin/env python3
"""
Run the weekly featured-restaurant rotation once.

Usage:
    python scripts/rotate_featured.py
    python scripts/rotate_featured.py --force-new
    python scripts/rotate_featured.py --remote --city austin

Without ``--remote`` the rotation runs in this process against DATABASE_URL.
With ``--remote`` it asks a running API to rotate through the admin endpoint.

Environment Variables:
    ADMIN_API_SECRET: Admin secret sent as X-Admin-Secret (remote mode)
    API_URL: Base API URL (default: http://localhost:8000)
"""

import argparse
import asyncio
import json
import os
import sys

import dotenv
import requests

dotenv.load_dotenv()


def rotate_remote(city: str | None, force_new: bool, week: str | None) -> dict:
    """Trigger the rotation on a running API."""
    admin_secret = os.getenv("ADMIN_API_SECRET")
    if not admin_secret:
        print("Error: ADMIN_API_SECRET environment variable not set", file=sys.stderr)
        sys.exit(1)

    api_url = os.getenv("API_URL", "http://localhost:8000")
    payload = {"forceNew": force_new, "citySlug": city, "weekStartDate": week}

    try:
        response = requests.post(
            f"{api_url}/api/admin/rotation/run",
            headers={"X-Admin-Secret": admin_secret, "Content-Type": "application/json"},
            json={key: value for key, value in payload.items() if value is not None},
            timeout=180,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        print(f"Error triggering rotation: {e}", file=sys.stderr)
        if getattr(e, "response", None) is not None:
            print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)


async def rotate_local(force_new: bool) -> dict[str, str]:
    from app.database import engine
    from app.jobs.rotation import rotate_all_cities

    try:
        return await rotate_all_cities(force_new=force_new)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the weekly featured-restaurant rotation")
    parser.add_argument("--force-new", action="store_true", help="Replace this week's pick if one exists")
    parser.add_argument("--remote", action="store_true", help="Trigger the rotation on a running API")
    parser.add_argument("--city", help="City slug (remote mode; default: every active city)")
    parser.add_argument("--week", help="Week start date YYYY-MM-DD (remote mode)")
    args = parser.parse_args()

    if args.remote:
        result = rotate_remote(args.city, args.force_new, args.week)
        print(json.dumps(result, indent=2))
        return 0 if result.get("success") else 1

    results = asyncio.run(rotate_local(args.force_new))
    for slug, outcome in results.items():
        marker = "✓" if outcome == "ok" else "✗"
        print(f"{marker} {slug}: {outcome}")
    return 0 if all(outcome == "ok" for outcome in results.values()) else 1


if __name__ == "__main__":
    sys.exit(main())

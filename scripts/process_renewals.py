#!/usr/bin/env python3
"""
Daily renewal dispatch trigger.

Run once a day by the scheduler (cron, GitHub Actions, Vercel cron). It
calls POST /api/renewals/process with a service account token; the API
sends every renewal notice whose scheduled date is today.

Usage:
    python scripts/process_renewals.py --url <API_URL> --token <JWT> [--date YYYY-MM-DD]

    The token may also be given through RENEWALS_SERVICE_TOKEN.

Exit Codes:
    0: Dispatch ran and every eligible renewal was sent
    1: Request failed
    2: Dispatch ran but some renewals ended in error
"""

import argparse
import os
import sys
import requests


def trigger_dispatch(url: str, token: str, run_date: str = None, timeout: int = 120) -> dict:
    """POSTs the dispatch endpoint and returns the decoded JSON body."""
    body = {"date": run_date} if run_date else {}
    response = requests.post(
        f"{url.rstrip('/')}/api/renewals/process",
        json=body,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


def main():
    parser = argparse.ArgumentParser(description="Trigger the daily renewal dispatch")
    parser.add_argument("--url", required=True, help="Base URL of the API")
    parser.add_argument("--token", default=os.environ.get("RENEWALS_SERVICE_TOKEN"),
                        help="Access token of a user with dispatch permission")
    parser.add_argument("--date", help="Run for this date instead of today (YYYY-MM-DD)")
    args = parser.parse_args()

    if not args.token:
        print("✗ No token given (--token or RENEWALS_SERVICE_TOKEN)", file=sys.stderr)
        sys.exit(1)

    try:
        data = trigger_dispatch(args.url, args.token, args.date)
    except requests.exceptions.RequestException as e:
        print(f"✗ Dispatch request failed: {e}", file=sys.stderr)
        sys.exit(1)

    results = data.get("results", {})
    print(f"✓ {data.get('message')}")
    for error in results.get("errors", []):
        print(f"  ✗ {error}")

    sys.exit(2 if results.get("errors") else 0)


if __name__ == "__main__":
    main()

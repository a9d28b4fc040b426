#!/usr/bin/env python3
"""
Post-Deployment Health Check Script

Validates that a deployed backoffice API is up, can reach its database and
rejects anonymous access to protected routes.

Usage:
    python scripts/health_check.py --url <DEPLOYMENT_URL> --environment <staging|production> [--token <JWT>]

Checks Performed:
    1. API health endpoint (/api/health) returns 200 and the database is connected
    2. Protected endpoint (/api/clients) rejects requests without a token (401)
    3. Profile endpoint (/auth/me) returns 200 with a valid token (only with --token)

Exit Codes:
    0: All health checks passed
    1: One or more health checks failed
"""

import argparse
import sys
import time
import requests
from typing import Dict, Optional, Tuple


def check_endpoint(url: str, endpoint: str, timeout: int = 10, expected_status: int = 200,
                   token: Optional[str] = None) -> Tuple[bool, str]:
    """
    Checks if an endpoint returns the expected HTTP status code.

    Returns:
        Tuple[bool, str]: (success, message)
    """
    full_url = f"{url.rstrip('/')}{endpoint}"
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    try:
        response = requests.get(full_url, headers=headers, timeout=timeout, allow_redirects=True)

        if response.status_code == expected_status:
            return True, f"✓ {endpoint} returned {response.status_code}"
        else:
            return False, f"✗ {endpoint} returned {response.status_code} (expected {expected_status})"

    except requests.exceptions.Timeout:
        return False, f"✗ {endpoint} timed out after {timeout} seconds"
    except requests.exceptions.ConnectionError:
        return False, f"✗ {endpoint} connection failed"
    except requests.exceptions.RequestException as e:
        return False, f"✗ {endpoint} error: {str(e)}"


def check_health_endpoint(url: str, timeout: int = 10) -> Tuple[bool, str]:
    """Checks /api/health and verifies database connectivity."""
    full_url = f"{url.rstrip('/')}/api/health"

    try:
        response = requests.get(full_url, timeout=timeout)

        try:
            data = response.json()
        except ValueError:
            return False, f"✗ /api/health returned invalid JSON ({response.status_code})"

        db_status = data.get('database', {}).get('status', 'unknown')
        if response.status_code == 200 and db_status == 'connected':
            return True, "✓ /api/health returned 200, database connected"
        return False, f"✗ /api/health returned {response.status_code}, database status: {db_status}"

    except requests.exceptions.Timeout:
        return False, f"✗ /api/health timed out after {timeout} seconds"
    except requests.exceptions.ConnectionError:
        return False, "✗ /api/health connection failed"
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/health error: {str(e)}"


def run_health_checks(url: str, environment: str, token: Optional[str] = None) -> Dict[str, Tuple[bool, str]]:
    print(f"\n{'='*60}")
    print(f"Post-Deployment Health Checks - {environment.upper()}")
    print(f"{'='*60}\n")
    print(f"Target URL: {url}\n")

    results = {}

    print("Check 1: API health check with database (/api/health)...")
    success, message = check_health_endpoint(url, timeout=15)
    results["api_health"] = (success, message)
    print(f"  {message}\n")

    print("Check 2: Anonymous access is rejected (/api/clients)...")
    success, message = check_endpoint(url, "/api/clients", timeout=15, expected_status=401)
    results["auth_required"] = (success, message)
    print(f"  {message}\n")

    if token:
        print("Check 3: Token is accepted (/auth/me)...")
        success, message = check_endpoint(url, "/auth/me", timeout=15, expected_status=200, token=token)
        results["auth_profile"] = (success, message)
        print(f"  {message}\n")

    return results


def print_summary(results: Dict[str, Tuple[bool, str]], environment: str) -> bool:
    """Prints the results; True when every check passed."""
    print(f"{'='*60}")
    print(f"Health Check Summary - {environment.upper()}")
    print(f"{'='*60}\n")

    passed = sum(1 for success, _ in results.values() if success)
    total = len(results)

    for check_name, (success, _message) in results.items():
        symbol = "✓" if success else "✗"
        print(f"{symbol} {check_name}: {'PASS' if success else 'FAIL'}")

    print(f"\nTotal: {passed}/{total} checks passed\n")

    if passed == total:
        print("✓ All health checks passed. Deployment is healthy.\n")
        return True
    print(f"✗ {total - passed} health check(s) failed. Investigate issues above.\n")
    return False


def main():
    parser = argparse.ArgumentParser(description="Run post-deployment health checks")
    parser.add_argument("--url", required=True, help="Deployment URL to check")
    parser.add_argument("--environment", required=True, choices=["staging", "production"],
                        help="Deployment environment")
    parser.add_argument("--token", help="Supabase access token for the authenticated check")
    parser.add_argument("--retry", type=int, default=3,
                        help="Number of attempts if checks fail (default: 3)")
    parser.add_argument("--retry-delay", type=int, default=10,
                        help="Delay in seconds between attempts (default: 10)")

    args = parser.parse_args()

    for attempt in range(1, args.retry + 1):
        if attempt > 1:
            print(f"\n{'='*60}")
            print(f"Retry attempt {attempt}/{args.retry}")
            print(f"{'='*60}")
            time.sleep(args.retry_delay)

        results = run_health_checks(args.url, args.environment, args.token)
        if print_summary(results, args.environment):
            sys.exit(0)

    print(f"{'='*60}", file=sys.stderr)
    print(f"✗ HEALTH CHECKS FAILED AFTER {args.retry} ATTEMPTS", file=sys.stderr)
    print(f"{'='*60}\n", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()

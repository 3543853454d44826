"""Load test: race mutual likes across many pairs against a running Tandem API.

For every pair both users like each other at the same moment.  Afterwards
the script checks that each pair ended with exactly one match, that every
``matched: true`` response named that match, and that the pair can chat.
Usage: python -m scripts.load_test [--pairs 50] [--base-url http://localhost:8000]
"""
import argparse
import asyncio
import statistics
import sys
import time
import uuid
from typing import Any

import httpx


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_PAIRS = 50
PASSWORD = "load-test-password"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def create_user(client: httpx.AsyncClient, base_url: str, index: int) -> dict[str, Any] | None:
    """Sign up a single user; returns ``{"id", "token"}``."""
    payload = {
        "email": f"loadtest_{index}_{uuid.uuid4().hex[:8]}@test.com",
        "password": PASSWORD,
        "name": f"Load Test User {index}",
    }
    try:
        resp = await client.post(f"{base_url}/api/v1/users", json=payload)
        if resp.status_code == 201:
            body = resp.json()
            return {"id": body["user"]["id"], "token": body["token"]}
        print(f"  [WARN] User {index}: status {resp.status_code}")
        return None
    except httpx.HTTPError as e:
        print(f"  [ERROR] User {index}: {e}")
        return None


async def like(client: httpx.AsyncClient, base_url: str, actor: dict, target: dict) -> httpx.Response:
    return await client.post(
        f"{base_url}/api/v1/likes",
        json={"target_user_id": target["id"], "status": "like"},
        headers=_auth(actor["token"]),
    )


async def race_pair(
    client: httpx.AsyncClient,
    base_url: str,
    a: dict,
    b: dict,
) -> list[str]:
    """Fire both likes concurrently and return any invariant violations."""
    problems: list[str] = []
    label = f"{a['id'][:8]}x{b['id'][:8]}"

    responses = await asyncio.gather(
        like(client, base_url, a, b),
        like(client, base_url, b, a),
    )
    for resp in responses:
        if resp.status_code != 201:
            problems.append(f"{label}: like returned {resp.status_code} {resp.text}")
    if problems:
        return problems

    bodies = [r.json() for r in responses]
    matched_ids = {body["match"]["id"] for body in bodies if body["matched"]}
    if not matched_ids:
        problems.append(f"{label}: neither like reported matched")
    if len(matched_ids) > 1:
        problems.append(f"{label}: responses named different matches {matched_ids}")

    for user in (a, b):
        resp = await client.get(f"{base_url}/api/v1/matches", headers=_auth(user["token"]))
        partner = b if user is a else a
        entries = [m for m in resp.json() if m["matched_user"]["id"] == partner["id"]]
        if len(entries) != 1:
            problems.append(f"{label}: {len(entries)} matches listed for {user['id'][:8]}")
        elif matched_ids and entries[0]["id"] not in matched_ids:
            problems.append(f"{label}: listed match differs from reported match")

    resp = await client.post(
        f"{base_url}/api/v1/messages",
        json={"receiver_id": b["id"], "content": "hello"},
        headers=_auth(a["token"]),
    )
    if resp.status_code != 201:
        problems.append(f"{label}: message after match returned {resp.status_code}")

    return problems


async def run_load_test(base_url: str, n_pairs: int) -> dict[str, Any]:
    """Run the full load test pipeline."""
    print(f"\n{'='*60}")
    print(f"Tandem Load Test — {n_pairs} racing pairs")
    print(f"Target: {base_url}")
    print(f"{'='*60}\n")

    results: dict[str, Any] = {
        "pairs": n_pairs,
        "users_created": 0,
        "pairs_ok": 0,
        "errors": [],
        "timings": {"user_creation": [], "pair_race": []},
    }

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Phase 1: Create users
        count = n_pairs * 2
        print(f"[1/2] Creating {count} users...")
        users = []
        for i in range(count):
            t0 = time.monotonic()
            user = await create_user(client, base_url, i)
            results["timings"]["user_creation"].append(time.monotonic() - t0)
            if user:
                users.append(user)
                results["users_created"] += 1
            if (i + 1) % 20 == 0:
                print(f"  Created {i + 1}/{count} users")

        print(f"  -> {results['users_created']} users created\n")

        # Phase 2: Race mutual likes, all pairs at once
        pairs = list(zip(users[0::2], users[1::2]))
        print(f"[2/2] Racing {len(pairs)} pairs...")

        async def timed(a: dict, b: dict) -> list[str]:
            t0 = time.monotonic()
            try:
                return await race_pair(client, base_url, a, b)
            except httpx.HTTPError as e:
                return [f"{a['id'][:8]}x{b['id'][:8]}: {e}"]
            finally:
                results["timings"]["pair_race"].append(time.monotonic() - t0)

        outcomes = await asyncio.gather(*(timed(a, b) for a, b in pairs))
        for problems in outcomes:
            if problems:
                results["errors"].extend(problems)
            else:
                results["pairs_ok"] += 1

        print(f"  -> {results['pairs_ok']}/{len(pairs)} pairs consistent\n")

    # Summary
    print(f"{'='*60}")
    print("LOAD TEST RESULTS")
    print(f"{'='*60}")
    print(f"Users created: {results['users_created']}/{count}")
    print(f"Pairs OK:      {results['pairs_ok']}/{n_pairs}")

    for phase, timings in results["timings"].items():
        if timings:
            print(f"\n{phase} latency:")
            print(f"  mean:   {statistics.mean(timings):.2f}s")
            print(f"  median: {statistics.median(timings):.2f}s")
            print(f"  p95:    {sorted(timings)[int(len(timings)*0.95)]:.2f}s")
            print(f"  max:    {max(timings):.2f}s")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for e in results["errors"][:10]:
            print(f"  - {e}")

    print(f"\n{'='*60}\n")
    return results


def main():
    parser = argparse.ArgumentParser(description="Tandem Load Test")
    parser.add_argument("--pairs", type=int, default=DEFAULT_PAIRS, help="Number of racing pairs")
    parser.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()

    results = asyncio.run(run_load_test(args.base_url, args.pairs))

    # Any inconsistency is a failure
    if results["errors"] or results["pairs_ok"] < results["pairs"]:
        print(f"FAIL: {results['pairs'] - results['pairs_ok']} pair(s) inconsistent")
        sys.exit(1)
    print("PASS: every pair converged on a single match")


if __name__ == "__main__":
    main()

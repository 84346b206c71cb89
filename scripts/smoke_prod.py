#!/usr/bin/env python3
"""Smoke test against a running API: /health, /sangam/embed/stats, /sangam/embed, /sangam/ask.

Run with: python scripts/smoke_prod.py
Requires: API running. Start it with ENV=test (deterministic providers) unless real keys are configured.
"""

import os
import sys

import requests

API_BASE = os.getenv("API_BASE", "http://localhost:8000").rstrip("/")
TENANT = os.getenv("SMOKE_TENANT", "smoke_smoke")
AUTH_HEADER = f"Bearer tenant:{TENANT}"


def _get(path: str) -> requests.Response:
    return requests.get(f"{API_BASE}{path}", headers={"Authorization": AUTH_HEADER}, timeout=30)


def _post(path: str, body: dict) -> requests.Response:
    return requests.post(f"{API_BASE}{path}", json=body, headers={"Authorization": AUTH_HEADER}, timeout=120)


def main() -> int:
    failures: list[str] = []

    print("1. GET /health ...")
    try:
        r = requests.get(f"{API_BASE}/health", timeout=10)
    except requests.RequestException as e:
        print(f"   FAIL: {e}")
        return 1
    if r.status_code != 200 or not r.json().get("ok"):
        failures.append(f"/health => {r.status_code}")
    else:
        body = r.json()
        print(f"   ok embeddings={body.get('embedding_provider')} generation={body.get('llm_provider')}")

    print("2. GET /sangam/embed/stats ...")
    r = _get("/sangam/embed/stats")
    if r.status_code != 200 or not r.json().get("success"):
        failures.append(f"/sangam/embed/stats => {r.status_code} {r.text[:200]}")
    else:
        print(f"   {r.json().get('stats')}")

    print("3. POST /sangam/embed ...")
    r = _post("/sangam/embed", {"batch_size": 10})
    if r.status_code != 200 or not r.json().get("success"):
        failures.append(f"/sangam/embed => {r.status_code} {r.text[:200]}")
    else:
        print(f"   {r.json().get('message')}")

    print("4. POST /sangam/ask ...")
    r = _post("/sangam/ask", {"question": "What deadlines were mentioned recently?"})
    if r.status_code != 200 or not r.json().get("success"):
        failures.append(f"/sangam/ask => {r.status_code} {r.text[:200]}")
    else:
        print(f"   {r.json().get('processing_time')} ms")

    if failures:
        print("\nFAILURES:", failures)
        return 1
    print("\nSmoke passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Seed script for the chapter dashboard API.

Uploads a JSON file of chapters (or a small built-in sample) to a running
API, then reads the list and statistics twice to show the response cache.

Usage:
    python scripts/seed_chapters.py [chapters.json] [--url http://localhost:3000]

The admin key is read from ADMIN_SECRET_KEY.
"""

import argparse
import json
import os
import time
from pathlib import Path

import httpx

SAMPLE_CHAPTERS = [
    {
        "subject": "Physics",
        "chapter": "Laws of Motion",
        "class": "Class 11",
        "unit": "Mechanics",
        "yearWiseQuestionCount": {"2023": 4, "2024": 6, "2025": 5},
        "questionSolved": 9,
        "status": "In Progress",
        "isWeakChapter": False,
    },
    {
        "subject": "Chemistry",
        "chapter": "Chemical Bonding",
        "class": "Class 11",
        "unit": "Physical Chemistry",
        "yearWiseQuestionCount": {"2022": 3, "2024": 7},
        "questionSolved": 10,
        "status": "Completed",
        "isWeakChapter": False,
    },
    {
        "subject": "Mathematics",
        "chapter": "Definite Integration",
        "class": "Class 12",
        "unit": "Calculus",
        "yearWiseQuestionCount": {"2021": 5, "2023": 8, "2025": 6},
        "questionSolved": 2,
        "status": "Not Started",
        "isWeakChapter": True,
    },
]


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def upload(client: httpx.Client, path: Path | None, admin_key: str) -> None:
    print_section("Bulk Upload")
    headers = {"x-admin-key": admin_key}

    if path is None:
        print(f"\n📝 Uploading {len(SAMPLE_CHAPTERS)} sample chapters as JSON body...")
        response = client.post("/api/v1/chapters", json=SAMPLE_CHAPTERS, headers=headers)
    else:
        print(f"\n📝 Uploading {path}...")
        with path.open("rb") as f:
            response = client.post(
                "/api/v1/chapters",
                files={"chapters": (path.name, f, "application/json")},
                headers=headers,
            )

    body = response.json()
    print(f"  HTTP {response.status_code}: {body.get('message')}")
    data = body.get("data") or {}
    for chapter in data.get("savedChapters", []):
        print(f"  ✓ {chapter['subject']} / {chapter['chapter']} ({chapter['id']})")
    for failure in data.get("failedChapters", []):
        reasons = "; ".join(f"{e['field']}: {e['message']}" for e in failure["errors"])
        print(f"  ✗ item {failure['index']}: {reasons}")


def read_twice(client: httpx.Client, path: str, params: dict | None = None) -> None:
    for attempt in ("first", "second"):
        start = time.perf_counter()
        response = client.get(path, params=params)
        elapsed_ms = (time.perf_counter() - start) * 1000
        cached = response.json().get("cached", False)
        remaining = response.headers.get("RateLimit-Remaining", "?")
        print(
            f"  {attempt:<6} HTTP {response.status_code} in {elapsed_ms:6.1f} ms"
            f"  cached={cached}  remaining={remaining}"
        )


def show_reads(client: httpx.Client) -> None:
    print_section("Cached Reads")

    print("\n🔍 GET /api/v1/chapters?class=Class 11&limit=5")
    read_twice(client, "/api/v1/chapters", {"class": "Class 11", "limit": 5})

    print("\n🔍 GET /api/v1/chapters/stats")
    read_twice(client, "/api/v1/chapters/stats")

    stats = client.get("/api/v1/chapters/stats").json()["data"]
    print("\n📊 Overview:")
    print(json.dumps(stats["overview"], indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the chapter dashboard API")
    parser.add_argument("file", nargs="?", type=Path, help="JSON file with an array of chapters")
    parser.add_argument("--url", default=os.getenv("API_URL", "http://localhost:3000"))
    args = parser.parse_args()

    admin_key = os.getenv("ADMIN_SECRET_KEY", "default_admin_key")

    with httpx.Client(base_url=args.url, timeout=30.0) as client:
        upload(client, args.file, admin_key)
        show_reads(client)

    print_section("Done")


if __name__ == "__main__":
    main()

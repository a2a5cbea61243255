#!/usr/bin/env python3
"""Live upstream verification script — run with network access.

Usage:
  python scripts/verify_upstream.py

Steps:
  Step 1: Show effective configuration
  Step 2: Status page parses
  Step 3: Rankings JSON API returns rows
  Step 4: Records page parses
  Step 5: Lifter profile parses
  Step 6: One refresh cycle over a throwaway in-memory cache
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def step_header(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}\n")


def ok(msg: str) -> None:
    print(f"  ✅ {msg}")


def fail(msg: str) -> None:
    print(f"  ❌ {msg}")


def info(msg: str) -> None:
    print(f"  ℹ️  {msg}")


async def build_context():
    from app.config import Settings
    from app.context import create_context

    settings = Settings(database_url="sqlite+aiosqlite:///:memory:", scheduler_enabled=False, refresh_delay_seconds=0.5)
    ctx = create_context(settings)
    await ctx.database.init()
    return ctx


async def step1_config(ctx) -> bool:
    step_header(1, "Effective Configuration")
    info(f"Base URL: {ctx.settings.base_url}")
    info(f"API URL: {ctx.settings.api_url}")
    info(f"Units: {ctx.settings.upstream_units}")
    info(f"Refresh interval: {ctx.settings.refresh_interval_seconds}s")
    ok("Settings loaded")
    return True


async def step2_status(ctx) -> bool:
    step_header(2, "Status Page")
    from app.pipelines.status import fetch_status

    try:
        data = await fetch_status(ctx.scraper)
    except Exception as e:
        fail(f"Status failed: {e}")
        return False
    ok(f"Server version: {data['server_version'] or '(none)'}")
    ok(f"Federations tracked: {len(data['federations'])}")
    return True


async def step3_rankings(ctx) -> bool:
    step_header(3, "Rankings JSON API")
    from app.pipelines.rankings import fetch_rankings

    try:
        data = await fetch_rankings(ctx.scraper, 1, 10)
    except Exception as e:
        fail(f"Rankings failed: {e}")
        return False
    if not data["rows"]:
        fail("Rankings returned no rows")
        return False
    top = data["rows"][0]
    ok(f"Total lifters: {data['total_length']}")
    ok(f"#1: {top['full_name']} | dots={top['dots']}")
    return True


async def step4_records(ctx) -> bool:
    step_header(4, "Records Page")
    from app.pipelines.records import fetch_records

    try:
        data = await fetch_records(ctx.scraper, "raw/men")
    except Exception as e:
        fail(f"Records failed: {e}")
        return False
    ok(f"Record categories: {len(data)}")
    return bool(data)


async def step5_lifter(ctx) -> bool:
    step_header(5, "Lifter Profile")
    from app.pipelines.lifters import fetch_lifter

    try:
        data = await fetch_lifter(ctx.scraper, "johnhaack")
    except Exception as e:
        fail(f"Lifter failed: {e}")
        return False
    ok(f"Name: {data['name']} | results={len(data['competition_results'])}")
    return True


async def step6_refresh(ctx) -> bool:
    step_header(6, "Refresh Cycle")
    from app.pipelines.rankings import get_rankings
    from app.pipelines.status import get_status

    await get_status(ctx.scraper)
    await get_rankings(ctx.scraper, 1, 10)
    await ctx.scraper.drain()

    summary = await ctx.refresher.refresh_cache()
    if summary is None:
        fail("Refresh skipped")
        return False
    info(f"total={summary.total} successful={summary.successful} failed={summary.failed} skipped={summary.skipped}")
    for failure in summary.failed_endpoints:
        fail(f"{failure['key']}: {failure['error']}")
    ok(f"Cycle took {summary.duration_ms}ms")
    return summary.failed == 0


async def main():
    print("\n🏋️  Close Powerlifting — Live Upstream Verification")
    ctx = await build_context()

    steps = [step1_config, step2_status, step3_rankings, step4_records, step5_lifter, step6_refresh]
    results = {}
    try:
        for n, step in enumerate(steps, start=1):
            results[n] = await step(ctx)
    finally:
        await ctx.database.close()

    # Summary
    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    for step_n, passed in sorted(results.items()):
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  Step {step_n}: {status}")

    total_passed = sum(1 for v in results.values() if v)
    print(f"\n  {total_passed}/{len(results)} steps passed")
    print(f"{'='*60}\n")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())

#!/usr/bin/env python3
"""
Optionally drop placeholder (MOCK) campaign records, then run a forced sync
against the Graph API with the stored FACEBOOK token.

Run from the project root:
  python scripts/clear_and_resync.py

Drop placeholders first (they are re-provisioned for still-linked campaigns
that the sync does not return):
  python scripts/clear_and_resync.py --clear-mock
"""

import asyncio
import argparse
import sys
from pathlib import Path

# Ensure project root is on path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from adpulse.cache import LocalCache
from adpulse.config import get_settings
from adpulse.errors import SyncFailedError
from adpulse.schemas import DataSource, SyncTrigger
from adpulse.services.repository import CAMPAIGNS, CampaignRepository
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import LiveSyncEngine, SyncOptions
from adpulse.store import SqlDocumentStore


async def clear_mock(repo: CampaignRepository) -> int:
    kept = [c for c in repo.campaigns if c.data_source != DataSource.MOCK]
    removed = len(repo.campaigns) - len(kept)
    await repo.save(CAMPAIGNS, kept)
    return removed


async def main():
    parser = argparse.ArgumentParser(description="Force a live campaign sync")
    parser.add_argument("--clear-mock", action="store_true", help="Drop MOCK placeholder campaigns before syncing")
    parser.add_argument("--client", help="Only sync this client id")
    args = parser.parse_args()

    settings = get_settings()
    repo = CampaignRepository(SqlDocumentStore(), LocalCache(settings.local_cache_path))
    await repo.load()
    print(f"Loaded {len(repo.clients)} client(s), {len(repo.campaigns)} campaign(s)")

    if args.clear_mock:
        removed = await clear_mock(repo)
        print(f"  Cleared {removed} placeholder campaign(s)")

    engine = LiveSyncEngine(repo, SecretVault(repo))
    try:
        outcome = await engine.sync(SyncOptions(force=True, trigger=SyncTrigger.MANUAL, scope_client_id=args.client))
    except SyncFailedError as e:
        print(f"Sync failed: {e}")
        for failure in e.failures:
            print(f"  {failure.account_id}: {failure.message}")
        sys.exit(1)

    if outcome.status == "skipped":
        print(f"Sync skipped: {outcome.reason}")
        sys.exit(1)

    print(f"Updated {len(outcome.updated)} campaign(s)")
    for failure in outcome.failures:
        print(f"  Failed {failure.account_id}: {failure.message}")


if __name__ == "__main__":
    asyncio.run(main())

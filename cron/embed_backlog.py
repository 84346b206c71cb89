#!/usr/bin/env python3
"""Embed backlog: drain unembedded chat messages for each tenant in TENANTS.

Per tenant, runs ingestion pages until a page processes nothing, a page fails
outright, or EMBED_MAX_PAGES is reached. Exit code 1 if any tenant errored.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from apps.sangam.services.container import get_services
from cron.config import config
from cron.logging import get_logger

logger = get_logger("embed_backlog")


def drain_tenant(sangam, tenant_id: str, batch_size: int, max_pages: int) -> tuple[int, bool]:
    """Returns (messages processed, ok)."""
    total = 0
    for page in range(1, max_pages + 1):
        result = sangam.process_unembedded_messages(tenant_id, batch_size)
        if result.error:
            logger.error("tenant=%s page=%d error=%s", tenant_id, page, result.error)
            return total, False
        total += result.processed_count
        if result.failed_batches:
            logger.warning("tenant=%s page=%d failed_batches=%d", tenant_id, page, result.failed_batches)
        if result.processed_count == 0:
            break
    else:
        logger.info("tenant=%s stopped at max_pages=%d (backlog may remain)", tenant_id, max_pages)
    return total, True


def main() -> int:
    if not config.TENANTS:
        logger.warning("TENANTS not set; nothing to do")
        return 0
    sangam = get_services().sangam
    failed = []
    for tenant_id in config.TENANTS:
        processed, ok = drain_tenant(sangam, tenant_id, config.EMBED_BATCH_SIZE, config.EMBED_MAX_PAGES)
        report = sangam.get_embedding_stats(tenant_id) if ok else None
        stats = report.stats if report is not None and report.success else None
        logger.info(
            "tenant=%s processed=%d remaining=%s",
            tenant_id,
            processed,
            stats.unembedded_messages if stats else "unknown",
        )
        if not ok:
            failed.append(tenant_id)
    if failed:
        logger.error("embed_backlog finished with failures tenants=%s", ",".join(failed))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

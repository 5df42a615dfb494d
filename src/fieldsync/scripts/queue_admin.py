"""
Queue admin script: inspect and manage the local mutation queue.

Usage:
    python -m fieldsync.scripts.queue_admin list [--tenant T] [--limit 50]
    python -m fieldsync.scripts.queue_admin retry ID
    python -m fieldsync.scripts.queue_admin discard ID
    python -m fieldsync.scripts.queue_admin sync [--tenant T]

`sync` runs a single pass against the configured remote and exits.
"""
import argparse
import asyncio
import logging
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _build(tenant: str):
    from fieldsync.config import get_settings
    from fieldsync.sync.engine import build_sync_engine

    settings = get_settings()
    tenant_id = tenant or settings.tenant_id
    return build_sync_engine(settings=settings, tenant_provider=lambda: tenant_id), tenant_id


def _list(args) -> int:
    sync, tenant_id = _build(args.tenant)
    if not tenant_id:
        logger.error("No tenant: pass --tenant or set FIELDSYNC_TENANT_ID")
        return 1
    items = sync.queue.get_all_items(tenant_id, limit=args.limit)
    for item in items:
        print(
            f"#{item.id:<6} {item.status.value:<8} {item.operation.value:<6} "
            f"{item.resource}/{item.record_id}  attempts={item.attempts}"
            + (f"  error={item.last_error}" if item.last_error else "")
        )
    print(f"{sync.get_pending_count(tenant_id)} outstanding (pending + failed)")
    return 0


def _retry(args) -> int:
    sync, _ = _build("")
    if sync.retry_item(args.id):
        logger.info("Item #%s re-queued", args.id)
        return 0
    logger.error("Item #%s not found or not failed", args.id)
    return 1


def _discard(args) -> int:
    sync, _ = _build("")
    if sync.discard_item(args.id):
        logger.info("Item #%s discarded", args.id)
        return 0
    logger.error("Item #%s not found or currently syncing", args.id)
    return 1


async def _sync_once(tenant: str) -> int:
    sync, tenant_id = _build(tenant)
    if not tenant_id:
        logger.error("No tenant: pass --tenant or set FIELDSYNC_TENANT_ID")
        return 1
    result = await sync.trigger_sync_now()
    sync.driver.cancel_pending_revert()
    if result is None:
        logger.info("Nothing synced (status=%s, error=%s)", sync.state.status.value, sync.state.last_error)
    else:
        logger.info(
            "Pass finished: %d total, %d synced, %d failed, %d collapsed",
            result.total, result.succeeded, result.failed, result.collapsed,
        )
    return 0 if sync.state.last_error is None else 2


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Manage the local mutation queue")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List queued items, newest first")
    p_list.add_argument("--tenant", default="", help="Tenant id (default: FIELDSYNC_TENANT_ID)")
    p_list.add_argument("--limit", type=int, default=50)

    p_retry = sub.add_parser("retry", help="Re-queue a failed item")
    p_retry.add_argument("id", type=int)

    p_discard = sub.add_parser("discard", help="Permanently drop an item")
    p_discard.add_argument("id", type=int)

    p_sync = sub.add_parser("sync", help="Run one sync pass and exit")
    p_sync.add_argument("--tenant", default="")

    args = parser.parse_args(argv)
    if args.command == "list":
        return _list(args)
    if args.command == "retry":
        return _retry(args)
    if args.command == "discard":
        return _discard(args)
    return asyncio.run(_sync_once(args.tenant))


if __name__ == "__main__":
    sys.exit(main())

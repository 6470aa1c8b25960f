import asyncio
import logging

from sqlmodel import Session

from htmlhost.core.config import settings
from htmlhost.core.db import engine
from htmlhost.lifecycle import LifecycleReaper, SweepReport

logger = logging.getLogger(__name__)


def run_sweep() -> SweepReport:
    """在独立会话中执行一次过期清理（必要时顺带清理孤儿目录）。"""
    with Session(engine) as session:
        reaper = LifecycleReaper(session)
        report = reaper.sweep()
        if settings.RECONCILE_ORPHANS:
            reaper.reconcile()
        return report


async def reap_periodically(interval: float) -> None:
    logger.info(f"Reaper started, sweeping every {interval}s")
    while True:
        try:
            await asyncio.to_thread(run_sweep)
        except Exception:
            # 单次失败不终止循环，下个周期重试
            logger.exception("Periodic sweep failed")
        await asyncio.sleep(interval)

import asyncio
import math
import traceback
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from pharos_bot.logger import logger
from pharos_bot.utils import Range, get_random_delay

T = TypeVar("T")


@dataclass
class ScheduledItem(Generic[T]):
    item: T
    index: int
    thread: int
    proxy: Optional[str] = None

    @property
    def wallet_id(self) -> str:
        return f"T{self.thread}-W{self.index}"


def partition_accounts(items: Sequence[T], threads: int,
                       proxies: Optional[Sequence[str]] = None) -> List[List[ScheduledItem[T]]]:
    """
    Split ``items`` into contiguous groups of ``ceil(n / threads)``.

    Empty groups are dropped. ``index`` is the 1-based position in ``items``
    and the proxy for an item is ``proxies[(index - 1) % len(proxies)]``.
    """
    if threads < 1:
        raise ValueError("threads must be at least 1")
    if not items:
        return []

    batch_size = math.ceil(len(items) / threads)
    groups = []
    for thread in range(threads):
        start = thread * batch_size
        if start >= len(items):
            continue
        group = []
        for offset, item in enumerate(items[start:start + batch_size]):
            global_idx = start + offset
            proxy = proxies[global_idx % len(proxies)] if proxies else None
            group.append(ScheduledItem(item=item, index=global_idx + 1, thread=thread + 1, proxy=proxy))
        groups.append(group)
    return groups


Handler = Callable[[ScheduledItem], Awaitable[Any]]


class BatchRunner:
    """Runs every group concurrently; accounts inside one group run one after another."""

    def __init__(self, threads: int = 1, delay_between_accounts: Range = 0,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.threads = max(1, int(threads))
        self.delay_between_accounts = delay_between_accounts
        self._sleep = sleep

    async def run_group(self, group: List[ScheduledItem], handler: Handler, total: int) -> List[Any]:
        thread = group[0].thread
        logger.info(f"Thread {thread}: starting {len(group)} account(s)")
        results = []
        for position, entry in enumerate(group):
            logger.info(f"Thread {thread}: account {position + 1}/{len(group)} (global {entry.index}/{total})",
                        entry.wallet_id)
            try:
                results.append(await handler(entry))
            except Exception as e:
                logger.error(f"Error processing account: {e}", entry.wallet_id)
                logger.debug(traceback.format_exc(), entry.wallet_id)
                results.append(None)

            if position < len(group) - 1:
                delay = get_random_delay(self.delay_between_accounts)
                if delay > 0:
                    logger.info(f"⏳ Waiting {delay}s before next account...", entry.wallet_id)
                    await self._sleep(delay)
        logger.info(f"Thread {thread}: completed")
        return results

    async def run(self, items: Sequence[T], handler: Handler, proxies: Optional[Sequence[str]] = None) -> List[Any]:
        groups = partition_accounts(items, self.threads, proxies)
        if not groups:
            return []
        if len(groups) > 1:
            logger.info(f"🚀 Running {len(items)} account(s) across {len(groups)} thread(s)")
        group_results = await asyncio.gather(*(self.run_group(group, handler, len(items)) for group in groups))
        return [result for results in group_results for result in results]

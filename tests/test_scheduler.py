import asyncio

import pytest

from conftest import SleepRecorder
from pharos_bot.scheduler import BatchRunner, ScheduledItem, partition_accounts


def test_partition_uses_ceil_sized_contiguous_groups():
    groups = partition_accounts(list("abcdefghij"), 3)

    assert [len(group) for group in groups] == [4, 4, 2]
    assert [entry.item for entry in groups[1]] == list("efgh")
    assert [entry.index for entry in groups[2]] == [9, 10]
    assert {entry.thread for entry in groups[2]} == {3}


def test_partition_drops_empty_groups():
    groups = partition_accounts([1, 2, 3, 4, 5], 4)

    # ceil(5 / 4) == 2, so the fourth worker gets nothing
    assert [len(group) for group in groups] == [2, 2, 1]


def test_more_threads_than_accounts():
    groups = partition_accounts(["a", "b"], 5)

    assert [[entry.item for entry in group] for group in groups] == [["a"], ["b"]]


def test_partition_empty_and_invalid():
    assert partition_accounts([], 3) == []
    with pytest.raises(ValueError):
        partition_accounts([1], 0)


def test_proxy_follows_global_index():
    proxies = ["http://p0:1", "http://p1:1", "http://p2:1"]
    groups = partition_accounts(list(range(7)), 2, proxies)

    flat = [entry for group in groups for entry in group]
    assert [entry.proxy for entry in flat] == [proxies[i % 3] for i in range(7)]


def test_wallet_id_format():
    assert ScheduledItem(item=None, index=5, thread=2).wallet_id == "T2-W5"


def test_runner_keeps_group_order_and_pauses_between_accounts():
    sleeper = SleepRecorder()
    runner = BatchRunner(threads=2, delay_between_accounts=3, sleep=sleeper)
    seen = []

    async def handler(entry):
        seen.append((entry.thread, entry.item))
        return entry.item * 10

    results = asyncio.run(runner.run([1, 2, 3, 4, 5], handler))

    assert [item for thread, item in seen if thread == 1] == [1, 2, 3]
    assert [item for thread, item in seen if thread == 2] == [4, 5]
    assert results == [10, 20, 30, 40, 50]
    # two pauses in the first group, one in the second
    assert sleeper.calls == [3, 3, 3]


def test_failing_account_does_not_stop_its_group():
    runner = BatchRunner(threads=1, sleep=SleepRecorder())
    processed = []

    async def handler(entry):
        if entry.item == "bad":
            raise RuntimeError("boom")
        processed.append(entry.item)
        return True

    results = asyncio.run(runner.run(["a", "bad", "c"], handler))

    assert processed == ["a", "c"]
    assert results == [True, None, True]


def test_groups_run_concurrently():
    runner = BatchRunner(threads=2, sleep=SleepRecorder())

    async def scenario():
        second_started = asyncio.Event()

        async def handler(entry):
            if entry.thread == 1:
                # only completes if the second group is already running
                await asyncio.wait_for(second_started.wait(), timeout=1)
            else:
                second_started.set()
            return entry.thread

        return await runner.run(["a", "b"], handler)

    assert asyncio.run(scenario()) == [1, 2]

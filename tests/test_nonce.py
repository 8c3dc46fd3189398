import asyncio

from pharos_bot.nonce import NonceManager

ADDRESS = "0x90F8bf6A479f320ead074411a4B0e7944Ea8c9C1"


class PendingCounter:
    def __init__(self, value=0):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def test_first_lease_seeds_from_pending_count():
    nonces = NonceManager()
    pending = PendingCounter(7)

    async def scenario():
        async with nonces.lease(ADDRESS, pending) as lease:
            lease.commit()
            return lease.nonce

    assert asyncio.run(scenario()) == 7
    assert nonces.peek(ADDRESS) == 8
    assert pending.calls == 1


def test_committed_leases_are_strictly_increasing():
    nonces = NonceManager()
    pending = PendingCounter(0)

    async def scenario():
        seen = []
        for _ in range(5):
            async with nonces.lease(ADDRESS, pending) as lease:
                seen.append(lease.nonce)
                lease.commit()
        return seen

    assert asyncio.run(scenario()) == [0, 1, 2, 3, 4]
    assert pending.calls == 1


def test_uncommitted_lease_leaves_counter_unchanged():
    nonces = NonceManager()

    async def scenario():
        async with nonces.lease(ADDRESS, PendingCounter(3)) as lease:
            first = lease.nonce
        async with nonces.lease(ADDRESS, PendingCounter(99)) as lease:
            second = lease.nonce
        return first, second

    assert asyncio.run(scenario()) == (3, 3)


def test_exception_inside_lease_does_not_advance():
    nonces = NonceManager()

    async def scenario():
        try:
            async with nonces.lease(ADDRESS, PendingCounter(1)):
                raise RuntimeError("send failed")
        except RuntimeError:
            pass
        return nonces.peek(ADDRESS)

    assert asyncio.run(scenario()) == 1


def test_concurrent_leases_are_serialized_in_issuance_order():
    nonces = NonceManager()
    pending = PendingCounter(0)
    order = []

    async def sender(tag):
        async with nonces.lease(ADDRESS, pending) as lease:
            await asyncio.sleep(0)
            order.append((tag, lease.nonce))
            lease.commit()

    async def scenario():
        await asyncio.gather(*(sender(i) for i in range(10)))

    asyncio.run(scenario())

    assert [nonce for _, nonce in order] == list(range(10))
    assert len({nonce for _, nonce in order}) == 10


def test_addresses_have_independent_counters():
    nonces = NonceManager()
    other = "0xFFcf8FDEE72ac11b5c542428B35EEF5769C409f0"

    async def scenario():
        async with nonces.lease(ADDRESS, PendingCounter(5)) as lease:
            lease.commit()
        async with nonces.lease(other, PendingCounter(0)) as lease:
            lease.commit()

    asyncio.run(scenario())

    assert nonces.peek(ADDRESS) == 6
    assert nonces.peek(other) == 1


def test_resync_replaces_local_counter():
    nonces = NonceManager()
    nonces.set(ADDRESS, 10)

    result = asyncio.run(nonces.resync(ADDRESS, PendingCounter(4)))

    assert result == 4
    assert nonces.peek(ADDRESS) == 4

import asyncio

import pytest
from web3 import Web3

from conftest import FakeChain
from pharos_bot.errors import TransactionError, TxErrorKind
from pharos_bot.nonce import NonceManager
from pharos_bot.transaction import FeePolicy, RetryState, TransactionIntent, TransactionIssuer, TxResult, should_retry

RECIPIENT = "0x000000000000000000000000000000000000dEaD"


def replay_error():
    return TransactionError(TxErrorKind.TRANSIENT, "execution reverted: TX_REPLAY_ATTACK", stale_nonce=True)


def make_issuer(sleeper, max_attempts=3, fee_policy=None):
    return TransactionIssuer(NonceManager(), max_attempts=max_attempts, retry_delay=5,
                             fee_policy=fee_policy, sleep=sleeper)


def transfer_intent(**kwargs):
    return TransactionIntent(to=RECIPIENT, value=1000, **kwargs)


def test_replay_then_success_takes_three_attempts_and_two_delays(account, sleeper):
    chain = FakeChain(send_errors=[replay_error(), replay_error(), None])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent(), label="Transfer"))

    assert result.success
    assert result.attempts == 3
    assert result.tx_hash is not None
    assert sleeper.calls == [5, 5]
    assert len(chain.submitted) == 3
    # initial seed plus one resync per stale-nonce failure
    assert chain.nonce_reads == 3


def test_insufficient_balance_never_submits(account, sleeper):
    chain = FakeChain(balance=10)
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent(), required_balance=11))

    assert not result
    assert result.error_kind is TxErrorKind.INSUFFICIENT_BALANCE
    assert result.attempts == 0
    assert chain.submitted == []
    assert sleeper.calls == []


def test_unrecognised_error_aborts_after_first_attempt(account, sleeper):
    chain = FakeChain(send_errors=[TransactionError(TxErrorKind.OTHER, "execution reverted: bad input")])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert not result.success
    assert result.error_kind is TxErrorKind.OTHER
    assert result.attempts == 1
    assert sleeper.calls == []


def test_insufficient_funds_from_node_is_not_retried(account, sleeper):
    chain = FakeChain(send_errors=[TransactionError(TxErrorKind.INSUFFICIENT_BALANCE, "insufficient funds for gas")])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert result.error_kind is TxErrorKind.INSUFFICIENT_BALANCE
    assert result.attempts == 1
    assert sleeper.calls == []


def test_transient_failures_stop_at_max_attempts(account, sleeper):
    chain = FakeChain(send_errors=[replay_error() for _ in range(10)])
    issuer = make_issuer(sleeper, max_attempts=3)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert not result.success
    assert result.error_kind is TxErrorKind.TRANSIENT
    assert result.attempts == 3
    assert len(chain.submitted) == 3
    assert sleeper.calls == [5, 5]


def test_single_attempt_cap_never_sleeps(account, sleeper):
    chain = FakeChain(send_errors=[replay_error()])
    issuer = make_issuer(sleeper, max_attempts=1)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert result.attempts == 1
    assert sleeper.calls == []


def test_reverted_receipt_is_reported_without_retry(account, sleeper):
    chain = FakeChain(receipt_errors=[TransactionError(TxErrorKind.OTHER, "Transaction reverted: 0xabc")])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert result.error_kind is TxErrorKind.OTHER
    assert result.attempts == 1
    assert "reverted" in result.error


def test_receipt_timeout_waits_again_on_the_same_hash(account, sleeper):
    chain = FakeChain(receipt_errors=[TransactionError(TxErrorKind.TRANSIENT, "Read timed out"), None])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert result.success
    assert len(chain.accepted) == 1
    assert chain.receipt_waits == [result.tx_hash, result.tx_hash]
    assert result.attempts == 2
    assert sleeper.calls == [5]


def test_receipt_wait_exhausted_reports_the_accepted_hash(account, sleeper):
    timeout = TransactionError(TxErrorKind.TRANSIENT, "max retries exceeded")
    chain = FakeChain(receipt_errors=[timeout, timeout, timeout])
    issuer = make_issuer(sleeper, max_attempts=3)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert not result.success
    assert result.error_kind is TxErrorKind.TRANSIENT
    assert len(chain.accepted) == 1
    assert result.tx_hash == chain.receipt_waits[0]
    assert len(chain.receipt_waits) == 3
    assert sleeper.calls == [5, 5]


def test_send_retry_then_receipt_retry_share_one_attempt_budget(account, sleeper):
    chain = FakeChain(send_errors=[replay_error(), None],
                      receipt_errors=[TransactionError(TxErrorKind.TRANSIENT, "Read timed out"), None])
    issuer = make_issuer(sleeper, max_attempts=3)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert result.success
    assert result.attempts == 3
    assert len(chain.submitted) == 2
    assert len(chain.accepted) == 1


def test_transient_balance_read_is_retried_before_sending(account, sleeper):
    chain = FakeChain(balance_errors=[TransactionError(TxErrorKind.TRANSIENT, "Connection reset by peer"), None])
    issuer = make_issuer(sleeper)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent(), required_balance=1000))

    assert result.success
    assert chain.balance_reads == 2
    assert len(chain.accepted) == 1
    assert sleeper.calls == [5]


def test_balance_read_failing_every_time_never_submits(account, sleeper):
    chain = FakeChain(balance_errors=[TransactionError(TxErrorKind.TRANSIENT, "Read timed out")] * 5)
    issuer = make_issuer(sleeper, max_attempts=3)

    result = asyncio.run(issuer.issue(account, chain, transfer_intent(), required_balance=1000))

    assert result.error_kind is TxErrorKind.TRANSIENT
    assert result.attempts == 0
    assert chain.balance_reads == 3
    assert chain.submitted == []
    assert sleeper.calls == [5, 5]


def test_read_does_not_retry_non_transient_errors(account, sleeper):
    issuer = make_issuer(sleeper)

    async def failing_read():
        raise TransactionError(TxErrorKind.OTHER, "execution reverted")

    with pytest.raises(TransactionError):
        asyncio.run(issuer.read(account, failing_read, "Token balance"))
    assert sleeper.calls == []


def test_fee_floors_apply_when_node_reports_nothing(account, sleeper):
    chain = FakeChain()
    issuer = make_issuer(sleeper)

    asyncio.run(issuer.issue(account, chain, transfer_intent()))

    tx = chain.accepted[0]
    assert tx["maxFeePerGas"] == Web3.to_wei(1, "gwei")
    assert tx["maxPriorityFeePerGas"] == Web3.to_wei(0.5, "gwei")
    assert tx["type"] == 2
    assert tx["chainId"] == 688688
    assert tx["gas"] == 21000


def test_intent_fee_overrides_replace_default_floors(account, sleeper):
    chain = FakeChain()
    issuer = make_issuer(sleeper)
    intent = transfer_intent(fee_overrides=FeePolicy(max_fee_gwei=5, priority_fee_gwei=1))

    asyncio.run(issuer.issue(account, chain, intent))

    tx = chain.accepted[0]
    assert tx["maxFeePerGas"] == Web3.to_wei(5, "gwei")
    assert tx["maxPriorityFeePerGas"] == Web3.to_wei(1, "gwei")


def test_node_fee_data_wins_over_floors(account, sleeper):
    chain = FakeChain(fee_data={"maxFeePerGas": 7, "maxPriorityFeePerGas": 3})
    issuer = make_issuer(sleeper)

    asyncio.run(issuer.issue(account, chain, transfer_intent()))

    assert chain.accepted[0]["maxFeePerGas"] == 7
    assert chain.accepted[0]["maxPriorityFeePerGas"] == 3


def test_consecutive_issues_use_increasing_nonces(account, sleeper):
    chain = FakeChain(pending_nonce=4)
    issuer = make_issuer(sleeper)

    async def issue_three():
        for _ in range(3):
            await issuer.issue(account, chain, transfer_intent())

    asyncio.run(issue_three())

    assert [tx["nonce"] for tx in chain.accepted] == [4, 5, 6]
    assert chain.nonce_reads == 1


def test_rejected_send_does_not_burn_a_nonce(account, sleeper):
    chain = FakeChain(send_errors=[TransactionError(TxErrorKind.OTHER, "invalid sender")])
    issuer = make_issuer(sleeper)

    async def issue_twice():
        first = await issuer.issue(account, chain, transfer_intent())
        second = await issuer.issue(account, chain, transfer_intent())
        return first, second

    first, second = asyncio.run(issue_twice())

    assert not first.success
    assert second.success
    assert chain.submitted[0]["nonce"] == chain.accepted[0]["nonce"] == 0


def test_concurrent_issues_for_one_address_never_share_a_nonce(account, sleeper):
    chain = FakeChain()
    issuer = make_issuer(sleeper)

    async def issue_many():
        return await asyncio.gather(*(issuer.issue(account, chain, transfer_intent()) for _ in range(8)))

    results = asyncio.run(issue_many())

    assert all(results)
    assert sorted(tx["nonce"] for tx in chain.accepted) == list(range(8))


def test_intent_build_encodes_bytes_data(account):
    intent = TransactionIntent(to=RECIPIENT, data=bytes.fromhex("d0e30db0"), value=5, gas_limit=100000)

    tx = intent.build(account.address, 3, 688688, 10, 2)

    assert tx["data"] == "0xd0e30db0"
    assert tx["nonce"] == 3
    assert tx["from"] == account.address
    assert tx["to"] == Web3.to_checksum_address(RECIPIENT)


def test_fee_policy_never_returns_max_fee_below_priority():
    assert FeePolicy().resolve({"maxFeePerGas": 1, "maxPriorityFeePerGas": 9}) == (9, 9)


def test_should_retry_depends_only_on_kind_and_budget():
    state = RetryState(max_attempts=3, attempt=1)
    assert should_retry(TransactionError(TxErrorKind.TRANSIENT, "anything"), state)
    assert not should_retry(TransactionError(TxErrorKind.OTHER, "nonce too low"), state)
    state.attempt = 3
    assert not should_retry(TransactionError(TxErrorKind.TRANSIENT, "anything"), state)


def test_tx_result_truthiness():
    assert TxResult(success=True, tx_hash="0x1", attempts=1)
    assert not TxResult.failed(TxErrorKind.OTHER, "boom")

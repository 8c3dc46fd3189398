"""
Retry-wrapped transaction issuing.

``TransactionIssuer.issue`` takes one ``TransactionIntent`` to a confirmed
receipt or to an explicit failure. Nonces come from the shared
``NonceManager``; fees come from the node with ``FeePolicy`` floors when the
node does not report them.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar, Union

from web3 import Web3

from pharos_bot.accounts import WalletAccount
from pharos_bot.errors import TransactionError, TxErrorKind
from pharos_bot.logger import logger
from pharos_bot.nonce import NonceManager

T = TypeVar("T")


@dataclass(frozen=True)
class FeePolicy:
    max_fee_gwei: Union[int, float, str] = 1
    priority_fee_gwei: Union[int, float, str] = 0.5

    def floors(self) -> Tuple[int, int]:
        max_fee = Web3.to_wei(Decimal(str(self.max_fee_gwei)), "gwei")
        priority_fee = Web3.to_wei(Decimal(str(self.priority_fee_gwei)), "gwei")
        return max_fee, priority_fee

    def resolve(self, fee_data: Dict[str, Optional[int]]) -> Tuple[int, int]:
        floor_max, floor_priority = self.floors()
        max_fee = fee_data.get("maxFeePerGas") or floor_max
        priority_fee = fee_data.get("maxPriorityFeePerGas") or floor_priority
        return max(max_fee, priority_fee), priority_fee


@dataclass
class TransactionIntent:
    to: str
    data: Union[bytes, str] = b""
    value: int = 0
    gas_limit: int = 21000
    fee_overrides: Optional[FeePolicy] = None

    def build(self, sender: str, nonce: int, chain_id: int, max_fee: int, priority_fee: int) -> Dict[str, Any]:
        tx = {
            "chainId": chain_id,
            "from": Web3.to_checksum_address(sender),
            "to": Web3.to_checksum_address(self.to),
            "value": int(self.value),
            "gas": int(self.gas_limit),
            "maxFeePerGas": int(max_fee),
            "maxPriorityFeePerGas": int(priority_fee),
            "nonce": nonce,
            "type": 2,
        }
        if self.data:
            tx["data"] = Web3.to_hex(self.data) if isinstance(self.data, bytes) else self.data
        return tx


@dataclass
class RetryState:
    max_attempts: int
    attempt: int = 0
    last_error: Optional[TransactionError] = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass
class TxResult:
    success: bool
    tx_hash: Optional[str] = None
    attempts: int = 0
    error_kind: Optional[TxErrorKind] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failed(cls, kind: TxErrorKind, error: str, attempts: int = 0, tx_hash: Optional[str] = None) -> "TxResult":
        return cls(success=False, tx_hash=tx_hash, attempts=attempts, error_kind=kind, error=error)


def should_retry(error: TransactionError, state: RetryState) -> bool:
    return error.kind is TxErrorKind.TRANSIENT and not state.exhausted


class TransactionIssuer:
    def __init__(self, nonces: NonceManager, max_attempts: int = 3, retry_delay: float = 5,
                 fee_policy: Optional[FeePolicy] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.nonces = nonces
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = retry_delay
        self.fee_policy = fee_policy or FeePolicy()
        self._sleep = sleep

    async def _submit(self, account: WalletAccount, chain, intent: TransactionIntent) -> str:
        fee_data = await chain.get_fee_data()
        max_fee, priority_fee = (intent.fee_overrides or self.fee_policy).resolve(fee_data)

        async with self.nonces.lease(account.address, lambda: chain.get_pending_nonce(account.address)) as lease:
            tx = intent.build(account.address, lease.nonce, chain.chain_id, max_fee, priority_fee)
            tx_hash = await chain.send_transaction(account.private_key, tx)
            lease.commit()
        return tx_hash

    def _warn_retry(self, account: WalletAccount, error: TransactionError, state: RetryState, label: str):
        logger.warning(
            f"{label} attempt {state.attempt}/{state.max_attempts} failed: {error}. "
            f"Retrying in {self.retry_delay}s...", account.wallet_id
        )

    async def _backoff(self, account: WalletAccount, chain, error: TransactionError, state: RetryState, label: str):
        self._warn_retry(account, error, state, label)
        await self._sleep(self.retry_delay)
        if error.stale_nonce:
            try:
                await self.nonces.resync(account.address, lambda: chain.get_pending_nonce(account.address))
            except TransactionError as sync_error:
                logger.debug(f"Nonce resync failed: {sync_error}", account.wallet_id)

    async def read(self, account: WalletAccount, fn: Callable[[], Awaitable[T]], label: str) -> T:
        """Run a chain read, retrying transient failures under the same cap and delay as sends."""
        state = RetryState(max_attempts=self.max_attempts)
        while True:
            state.attempt += 1
            try:
                return await fn()
            except TransactionError as e:
                if not should_retry(e, state):
                    raise
                self._warn_retry(account, e, state, label)
                await self._sleep(self.retry_delay)

    async def check_balance(self, account: WalletAccount, chain, required_balance: int, label: str) -> Optional[TxResult]:
        try:
            balance = await self.read(account, lambda: chain.get_balance(account.address), f"{label} balance check")
        except TransactionError as e:
            logger.error(f"{label}: balance check failed: {e}", account.wallet_id)
            return TxResult.failed(e.kind, str(e))

        if balance < required_balance:
            message = (f"Insufficient balance for {label}: have {Web3.from_wei(balance, 'ether')} PHRS, "
                       f"need {Web3.from_wei(required_balance, 'ether')} PHRS")
            logger.warning(message, account.wallet_id)
            return TxResult.failed(TxErrorKind.INSUFFICIENT_BALANCE, message)
        return None

    async def issue(self, account: WalletAccount, chain, intent: TransactionIntent,
                    label: str = "Transaction", required_balance: Optional[int] = None) -> TxResult:
        """
        Send ``intent`` once and wait for its receipt.

        Attempts before the node accepts the transaction resubmit it. After
        acceptance only the receipt wait for that hash is retried, so one
        intent never produces two transactions on chain.
        """
        wallet = account.wallet_id

        if required_balance is not None:
            rejected = await self.check_balance(account, chain, required_balance, label)
            if rejected is not None:
                return rejected

        state = RetryState(max_attempts=self.max_attempts)
        tx_hash: Optional[str] = None
        while not state.exhausted:
            state.attempt += 1
            try:
                if tx_hash is None:
                    tx_hash = await self._submit(account, chain, intent)
                    logger.info(f"{label} sent: {tx_hash}", wallet)
                await chain.wait_for_receipt(tx_hash)
            except TransactionError as e:
                state.last_error = e
                if should_retry(e, state):
                    await self._backoff(account, chain, e, state, label)
                    continue
                logger.error(f"{label} failed after {state.attempt} attempt(s): {e}", wallet)
                return TxResult.failed(e.kind, str(e), attempts=state.attempt, tx_hash=tx_hash)

            logger.success(f"{label} confirmed: {tx_hash}", wallet)
            return TxResult(success=True, tx_hash=tx_hash, attempts=state.attempt)

        last = state.last_error
        return TxResult.failed(last.kind if last else TxErrorKind.OTHER,
                               str(last) if last else "No attempts made", attempts=state.attempt, tx_hash=tx_hash)

import asyncio
from typing import Any, Callable, Dict, Optional

from eth_account import Account
from web3 import Web3

from pharos_bot.constants import CHAIN_ID, ERC20_ABI, RPC_URL
from pharos_bot.errors import TransactionError, TxErrorKind, to_transaction_error


class ProviderCache:
    """One Web3 client per proxy; ``None`` is the direct connection."""

    def __init__(self, rpc_url: str = RPC_URL, timeout: int = 60, proxy_timeout: int = 90):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.proxy_timeout = proxy_timeout
        self._providers: Dict[Optional[str], Web3] = {}

    def __len__(self) -> int:
        return len(self._providers)

    def _create(self, proxy: Optional[str]) -> Web3:
        request_kwargs: Dict[str, Any] = {"timeout": self.proxy_timeout if proxy else self.timeout}
        if proxy:
            request_kwargs["proxies"] = {"http": proxy, "https": proxy}
        return Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs=request_kwargs))

    def get(self, proxy: Optional[str] = None) -> Web3:
        if proxy not in self._providers:
            self._providers[proxy] = self._create(proxy)
        return self._providers[proxy]


class ChainClient:
    """
    Async facade over a synchronous Web3 client.

    Blocking RPC calls run in a worker thread. Any failure leaves this class
    as a ``TransactionError`` so callers only deal with typed kinds.
    """

    def __init__(self, web3: Web3, chain_id: int = CHAIN_ID, receipt_timeout: int = 300):
        self.web3 = web3
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout

    async def _call(self, fn: Callable, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            raise to_transaction_error(e) from e

    def checksum(self, address: str) -> str:
        return self.web3.to_checksum_address(address)

    def token(self, token_address: str):
        return self.contract(token_address, ERC20_ABI)

    def contract(self, address: str, abi: list):
        return self.web3.eth.contract(address=self.checksum(address), abi=abi)

    async def call(self, address: str, abi: list, fn_name: str, *args):
        """Read-only contract call, e.g. ``call(controller, abi, "rentPrice", name, duration)``."""
        functions = self.contract(address, abi).functions
        return await self._call(lambda: getattr(functions, fn_name)(*args).call())

    async def get_balance(self, address: str) -> int:
        return await self._call(self.web3.eth.get_balance, self.checksum(address))

    async def get_token_balance(self, token_address: str, address: str) -> int:
        fn = self.token(token_address).functions.balanceOf(self.checksum(address))
        return await self._call(fn.call)

    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        fn = self.token(token_address).functions.allowance(self.checksum(owner), self.checksum(spender))
        return await self._call(fn.call)

    async def get_pending_nonce(self, address: str) -> int:
        return await self._call(self.web3.eth.get_transaction_count, self.checksum(address), "pending")

    async def get_fee_data(self) -> Dict[str, Optional[int]]:
        """Mirror of an EIP-1559 fee estimate; missing pieces come back as ``None``."""
        try:
            block = await self._call(self.web3.eth.get_block, "latest")
            base_fee = block.get("baseFeePerGas")
        except TransactionError:
            base_fee = None
        try:
            priority_fee = await self._call(lambda: self.web3.eth.max_priority_fee)
        except TransactionError:
            priority_fee = None

        max_fee = None
        if base_fee is not None and priority_fee is not None:
            max_fee = base_fee * 2 + priority_fee
        return {"maxFeePerGas": max_fee, "maxPriorityFeePerGas": priority_fee}

    async def send_transaction(self, private_key: str, tx: Dict[str, Any]) -> str:
        try:
            signed = Account.sign_transaction(tx, private_key)
        except Exception as e:
            raise TransactionError(TxErrorKind.OTHER, f"Sign transaction failed: {e}") from e
        tx_hash = await self._call(self.web3.eth.send_raw_transaction, signed.raw_transaction)
        return self.web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        receipt = await self._call(self.web3.eth.wait_for_transaction_receipt, tx_hash, timeout=self.receipt_timeout)
        if receipt.get("status") != 1:
            raise TransactionError(TxErrorKind.OTHER, f"Transaction reverted: {tx_hash}")
        return receipt

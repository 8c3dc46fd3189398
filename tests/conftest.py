from typing import Any, Dict, List, Optional

import pytest

from pharos_bot.accounts import WalletAccount

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float):
        self.calls.append(delay)


class FakeChain:
    """In-memory stand-in for ``ChainClient``."""

    chain_id = 688688

    def __init__(self, balance: int = 10 ** 18, pending_nonce: int = 0,
                 send_errors: Optional[List[Optional[Exception]]] = None,
                 receipt_errors: Optional[List[Optional[Exception]]] = None,
                 balance_errors: Optional[List[Optional[Exception]]] = None,
                 fee_data: Optional[Dict[str, Optional[int]]] = None,
                 token_balances: Optional[Dict[str, int]] = None,
                 allowances: Optional[Dict[str, int]] = None,
                 call_results: Optional[Dict[str, Any]] = None):
        self.balance = balance
        self.pending_nonce = pending_nonce
        self.send_errors = list(send_errors or [])
        self.receipt_errors = list(receipt_errors or [])
        self.balance_errors = list(balance_errors or [])
        self.fee_data = fee_data or {"maxFeePerGas": None, "maxPriorityFeePerGas": None}
        self.token_balances = {k.lower(): v for k, v in (token_balances or {}).items()}
        self.allowances = {k.lower(): v for k, v in (allowances or {}).items()}
        self.call_results = dict(call_results or {})
        self.submitted: List[Dict[str, Any]] = []
        self.accepted: List[Dict[str, Any]] = []
        self.receipt_waits: List[str] = []
        self.contract_calls: List[tuple] = []
        self.nonce_reads = 0
        self.balance_reads = 0

    async def get_fee_data(self):
        return dict(self.fee_data)

    async def get_pending_nonce(self, address: str) -> int:
        self.nonce_reads += 1
        return self.pending_nonce

    async def get_balance(self, address: str) -> int:
        self.balance_reads += 1
        if self.balance_errors:
            error = self.balance_errors.pop(0)
            if error is not None:
                raise error
        return self.balance

    async def get_token_balance(self, token: str, address: str) -> int:
        return self.token_balances.get(token.lower(), 0)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get(token.lower(), 0)

    async def call(self, address: str, abi: list, fn_name: str, *args):
        self.contract_calls.append((address, fn_name, args))
        return self.call_results[fn_name]

    async def send_transaction(self, private_key: str, tx: Dict[str, Any]) -> str:
        self.submitted.append(tx)
        if self.send_errors:
            error = self.send_errors.pop(0)
            if error is not None:
                raise error
        self.accepted.append(tx)
        self.pending_nonce = max(self.pending_nonce, tx["nonce"] + 1)
        return "0x" + f"{len(self.accepted):064x}"

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        self.receipt_waits.append(tx_hash)
        if self.receipt_errors:
            error = self.receipt_errors.pop(0)
            if error is not None:
                raise error
        return {"status": 1, "transactionHash": tx_hash}


class FakeResponse:
    def __init__(self, status: int, body):
        self.status = status
        self.body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise RuntimeError(f"{self.status} error")

    async def json(self, content_type=None):
        return self.body


class FakeSession:
    """Replays scripted replies; an Exception entry is raised from ``request``."""

    def __init__(self, replies):
        self.replies = replies
        self.requests = []

    def __call__(self, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def request(self, method, url, headers=None, params=None, json=None, data=None, proxy=None, proxy_auth=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "params": params, "json": json,
                              "data": data, "proxy": proxy})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return FakeResponse(*reply)


def install_session(monkeypatch, replies) -> FakeSession:
    session = FakeSession(list(replies))
    monkeypatch.setattr("pharos_bot.api.ClientSession", session)
    monkeypatch.setattr("pharos_bot.api.build_proxy_config", lambda url, ssl_context: (None, url, None))
    return session


@pytest.fixture
def account() -> WalletAccount:
    return WalletAccount.from_private_key(TEST_PRIVATE_KEY, index=1, thread=1)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()

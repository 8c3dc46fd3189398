"""
Failure taxonomy for everything that touches the chain.

The submission layer turns raw web3 / HTTP exceptions into a
``TransactionError`` carrying one ``TxErrorKind``; retry decisions only
ever look at the kind.
"""

import asyncio
from enum import Enum
from typing import Optional

from aiohttp import ClientConnectionError, ClientProxyConnectionError
from aiohttp_socks import ProxyError
from requests.exceptions import ConnectionError as RequestsConnectionError, Timeout as RequestsTimeout


class TxErrorKind(Enum):
    TRANSIENT = "transient"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    OTHER = "other"


class TransactionError(Exception):
    """``stale_nonce`` marks rejections that mean the local nonce is behind the node."""

    def __init__(self, kind: TxErrorKind, message: str, stale_nonce: bool = False):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.stale_nonce = stale_nonce

    def __str__(self) -> str:
        return self.message


PROXY_ERROR_PATTERNS = [
    'econnreset',
    'etimedout',
    'econnrefused',
    'esockettimedout',
    'socket hang up',
    'network error',
    'timeout',
    'timed out',
    'failed to fetch',
    'unable to connect',
    'proxy connection failed',
    '403 forbidden',
    '429 too many requests',
    'socket disconnected',
    'connection refused',
    'connection reset',
    'connection aborted',
    'remote end closed connection',
    'cannot connect to host',
    'tunnel connection failed',
    'tunneling socket',
    'eproto',
    'enotfound',
    'name or service not known',
    'temporary failure in name resolution',
    'max retries exceeded',
]

REPLAY_PATTERNS = [
    'tx_replay_attack',
    'nonce too low',
    'replacement transaction underpriced',
    'already known',
]

INSUFFICIENT_PATTERNS = [
    'insufficient funds',
    'insufficient balance',
    'insufficient allowance',
    'exceeds balance',
    'exceeds allowance',
]

TRANSIENT_EXCEPTIONS = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    ClientConnectionError,
    ClientProxyConnectionError,
    ProxyError,
    RequestsConnectionError,
    RequestsTimeout,
)


def is_proxy_error(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(pattern in lowered for pattern in PROXY_ERROR_PATTERNS)


def is_replay_error(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(pattern in lowered for pattern in REPLAY_PATTERNS)


def classify_error(exc: BaseException) -> TxErrorKind:
    if isinstance(exc, TransactionError):
        return exc.kind

    message = str(exc)
    lowered = message.lower()

    if any(pattern in lowered for pattern in INSUFFICIENT_PATTERNS):
        return TxErrorKind.INSUFFICIENT_BALANCE
    if is_replay_error(message):
        return TxErrorKind.TRANSIENT
    if isinstance(exc, TRANSIENT_EXCEPTIONS) or is_proxy_error(message):
        return TxErrorKind.TRANSIENT
    return TxErrorKind.OTHER


def to_transaction_error(exc: BaseException) -> TransactionError:
    if isinstance(exc, TransactionError):
        return exc
    message = str(exc) or exc.__class__.__name__
    return TransactionError(classify_error(exc), message, stale_nonce=is_replay_error(message))

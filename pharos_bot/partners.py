"""
REST clients for the partner dApps on the Pharos testnet.

Both reuse ``RestClient`` so retries, proxy rotation and re-login behave the
same way as the Pharos points API.
"""

import time
from base64 import b64encode
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from pharos_bot.accounts import WalletAccount
from pharos_bot.api import RestClient
from pharos_bot.constants import (AQUAFLUX_API, AUTOSTAKING_API, AUTOSTAKING_SITE_URL, CHAIN_ID, TOKEN_ADDRESSES,
                                  TOKEN_DECIMALS)
from pharos_bot.logger import logger

AUTOSTAKING_PUBLIC_KEY = b"""-----BEGIN PUBLIC KEY-----
MIGfMA0GCSqGSIb3DQEBAQUAA4GNADCBiQKBgQDWPv2qP8+xLABhn3F/U/hp76HP
e8dD7kvPUh70TC14kfvwlLpCTHhYf2/6qulU1aLWpzCz3PJr69qonyqocx8QlThq
5Hik6H/5fmzHsjFvoPeGN5QRwYsVUH07MbP7MNbJH5M2zD5Z1WEp9AHJklITbS1z
h23cf2WfZ0vwDYzZ8QIDAQAB
-----END PUBLIC KEY-----
"""

PORTFOLIO_PROMPT = (
    "1. Mandatory Requirement: The product's TVL must be higher than one million USD.\n"
    "2. Balance Preference: Prioritize products that have a good balance of high current APY and high TVL.\n"
    "3. Portfolio Allocation: Select the 3 products with the best combined ranking in terms of current APY and TVL "
    "among those with TVL > 1,000,000 USD. To determine the combined ranking, rank all eligible products by current "
    "APY (highest to lowest) and by TVL (highest to lowest), then sum the two ranks for each product. Choose the 3 "
    "products with the smallest sum of ranks. Allocate the investment equally among these 3 products, with each "
    "receiving approximately 33.3% of the investment."
)

STAKING_TICKERS = ("USDC", "USDT", "MockUSD")

AQUAFLUX_SITE_URL = "https://playground.aquaflux.pro"


def generate_auth_token(address: str) -> str:
    """AutoStaking expects the wallet address RSA-OAEP encrypted with its public key."""
    public_key = serialization.load_pem_public_key(AUTOSTAKING_PUBLIC_KEY)
    ciphertext = public_key.encrypt(
        address.encode("utf-8"),
        padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA256()), algorithm=hashes.SHA256(), label=None),
    )
    return b64encode(ciphertext).decode("utf-8")


def build_recommendation_payload(address: str, amounts: Dict[str, Decimal]) -> Dict[str, Any]:
    assets = []
    for ticker in STAKING_TICKERS:
        amount = Decimal(str(amounts[ticker]))
        decimals = TOKEN_DECIMALS[ticker]
        assets.append({
            "chain": {"id": CHAIN_ID},
            "name": ticker,
            "symbol": ticker,
            "decimals": decimals,
            "address": TOKEN_ADDRESSES[ticker],
            "assets": str(int(amount * 10 ** decimals)),
            "price": 1,
            "assetsUsd": float(amount),
        })
    return {
        "user": address,
        "profile": PORTFOLIO_PROMPT,
        "userPositions": [],
        "userAssets": assets,
        "chainIds": [CHAIN_ID],
        "tokens": list(STAKING_TICKERS),
        "protocols": ["MockVault"],
        "env": "pharos",
    }


def extract_staking_calldata(response: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Pull the router calldata out of a generate-change-transactions reply.

    The chain entry has been keyed both as ``"688688"`` and as
    ``"688688-<router>"``; either form is accepted.
    """
    data = (response or {}).get("data") or {}
    entry = data.get(str(CHAIN_ID))
    if entry is None:
        entry = next((value for key, value in data.items() if key.startswith(f"{CHAIN_ID}-")), None)
    if not isinstance(entry, dict):
        return None
    return entry.get("data")


class AutoStakingAPI(RestClient):
    origin = AUTOSTAKING_SITE_URL

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("base_url", AUTOSTAKING_API)
        kwargs.setdefault("timeout", 120)
        super().__init__(*args, **kwargs)
        self.auth_tokens: Dict[str, str] = {}

    def authorization(self, account: WalletAccount) -> Optional[str]:
        if account.address not in self.auth_tokens:
            self.auth_tokens[account.address] = generate_auth_token(account.address)
        return self.auth_tokens[account.address]

    async def portfolio_recommendation(self, account: WalletAccount,
                                       amounts: Dict[str, Decimal]) -> Optional[List[Dict[str, Any]]]:
        result = await self._request(account, "POST", "/investment/financial-portfolio-recommendation",
                                     "Portfolio recommendation",
                                     json_data=build_recommendation_payload(account.address, amounts))
        changes = ((result or {}).get("data") or {}).get("changes")
        if not changes:
            logger.error(f"Portfolio recommendation returned no changes: {result}", account.wallet_id)
            return None
        return changes

    async def change_transactions(self, account: WalletAccount, changes: List[Dict[str, Any]]) -> Optional[str]:
        payload = {"user": account.address, "changes": changes, "prevTransactionResults": {}}
        result = await self._request(account, "POST", "/investment/generate-change-transactions",
                                     "Generate staking calldata", json_data=payload)
        calldata = extract_staking_calldata(result)
        if not calldata:
            logger.error("Staking calldata missing from response", account.wallet_id)
        return calldata


class AquaFluxAPI(RestClient):
    origin = AQUAFLUX_SITE_URL

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("base_url", AQUAFLUX_API)
        super().__init__(*args, **kwargs)
        self.access_tokens: Dict[str, str] = {}

    def authorization(self, account: WalletAccount) -> Optional[str]:
        token = self.access_tokens.get(account.address)
        return f"Bearer {token}" if token else None

    async def relogin(self, account: WalletAccount) -> bool:
        self.access_tokens.pop(account.address, None)
        return await self.login(account)

    async def login(self, account: WalletAccount, now_ms: Optional[int] = None) -> bool:
        message = f"Sign in to AquaFlux with timestamp: {now_ms or int(time.time() * 1000)}"
        payload = {"address": account.address, "message": message, "signature": account.sign_message(message)}
        result = await self._request(account, "POST", "/users/wallet-login", "AquaFlux login",
                                     json_data=payload, auth=False)
        token = ((result or {}).get("data") or {}).get("accessToken")
        if not token:
            logger.error(f"AquaFlux login failed: {result}", account.wallet_id)
            return False
        self.access_tokens[account.address] = token
        logger.success("AquaFlux login successful", account.wallet_id)
        return True

    async def holds_token(self, account: WalletAccount) -> bool:
        result = await self._request(account, "POST", "/users/check-token-holding", "AquaFlux holding check",
                                     json_data={})
        return bool(((result or {}).get("data") or {}).get("isHoldingToken"))

    async def nft_signature(self, account: WalletAccount, nft_type: int = 0) -> Optional[Tuple[str, int]]:
        payload = {"requestedNftType": nft_type, "walletAddress": account.address}
        result = await self._request(account, "POST", "/users/get-signature", "AquaFlux NFT signature",
                                     json_data=payload)
        data = (result or {}).get("data") or {}
        if not data.get("signature") or not data.get("expiresAt"):
            logger.error(f"AquaFlux signature request failed: {result}", account.wallet_id)
            return None
        return data["signature"], int(data["expiresAt"])

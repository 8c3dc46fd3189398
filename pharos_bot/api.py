import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiohttp import ClientSession, ClientTimeout
from fake_useragent import FakeUserAgent

from pharos_bot.accounts import WalletAccount
from pharos_bot.constants import BASE_API, CHAIN_ID, SITE_URL
from pharos_bot.database import Database
from pharos_bot.errors import is_proxy_error
from pharos_bot.logger import logger
from pharos_bot.proxy import ProxyPool, build_proxy_config, create_ssl_context
from pharos_bot.utils import mask_proxy

SITE_DOMAIN = SITE_URL.split("://", 1)[1]


def build_login_message(address: str, nonce: str, issued_at: str, chain_id: int = CHAIN_ID) -> str:
    return (
        f"{SITE_DOMAIN} wants you to sign in with your Ethereum account:\n{address}\n\n"
        f"I accept the Pharos Terms of Service: {SITE_DOMAIN}/privacy-policy/Pharos-PrivacyPolicy.pdf\n\n"
        f"URI: {SITE_URL}\n\nVersion: 1\n\nChain ID: {chain_id}\n\nNonce: {nonce}\n\nIssued At: {issued_at}"
    )


def build_login_payload(account: WalletAccount, invite_code: Optional[str] = None,
                        now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    nonce = str(int(now.timestamp()) * 1000 + now.microsecond // 1000)
    issued_at = now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"
    message = build_login_message(account.address, nonce, issued_at)
    payload = {
        "address": account.address,
        "signature": account.sign_message(message),
        "wallet": "OKX Wallet",
        "nonce": nonce,
        "chain_id": str(CHAIN_ID),
        "timestamp": issued_at,
        "domain": SITE_DOMAIN,
    }
    if invite_code:
        payload["invite_code"] = invite_code
    return payload


class RestClient:
    """
    aiohttp JSON client shared by the Pharos and partner APIs.

    Every call goes through ``_request``: fixed-delay retries, proxy rotation
    on network errors and one ``relogin`` on a 401.
    """

    origin = SITE_URL

    def __init__(self, proxies: ProxyPool, use_proxy: bool = False, rotate_proxy: bool = False,
                 base_url: str = BASE_API, retries: int = 5, retry_delay: float = 5, timeout: int = 60,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.proxies = proxies
        self.use_proxy = use_proxy and bool(proxies)
        self.rotate_proxy = rotate_proxy
        self.base_url = base_url
        self.retries = max(1, int(retries))
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.ssl_context = create_ssl_context()
        self.user_agents: Dict[str, str] = {}
        self._ua = None
        self._sleep = sleep

    def _user_agent(self, address: str) -> str:
        if address not in self.user_agents:
            if self._ua is None:
                self._ua = FakeUserAgent()
            self.user_agents[address] = self._ua.random
        return self.user_agents[address]

    def authorization(self, account: WalletAccount) -> Optional[str]:
        return None

    def headers(self, account: WalletAccount, auth: bool = True) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": "en-US,en;q=0.9",
            "Origin": self.origin,
            "Referer": f"{self.origin}/",
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-site",
            "User-Agent": self._user_agent(account.address),
        }
        authorization = self.authorization(account) if auth else None
        if authorization:
            headers["Authorization"] = authorization
        return headers

    def proxy_for(self, address: str) -> Optional[str]:
        return self.proxies.assign(address) if self.use_proxy else None

    async def relogin(self, account: WalletAccount) -> bool:
        return False

    def proxy_rotated(self, address: str, proxy: Optional[str]):
        pass

    async def _request(self, account: WalletAccount, method: str, path: str, label: str,
                       params: Optional[Dict[str, Any]] = None, json_data: Optional[Any] = None,
                       form: Optional[Dict[str, Any]] = None, auth: bool = True) -> Optional[Dict[str, Any]]:
        address = account.address
        wallet = account.wallet_id
        url = f"{self.base_url}{path}"
        relogged = False

        for attempt in range(self.retries):
            proxy_url = self.proxy_for(address)
            connector, proxy, proxy_auth = build_proxy_config(proxy_url, self.ssl_context)
            try:
                async with ClientSession(connector=connector, timeout=ClientTimeout(total=self.timeout)) as session:
                    async with session.request(method, url, headers=self.headers(account, auth), params=params,
                                               json=json_data, data=form, proxy=proxy,
                                               proxy_auth=proxy_auth) as response:
                        if response.status == 401 and auth and not relogged:
                            logger.warning(f"{label}: 401 Unauthorized - token expired, logging in again...", wallet)
                            relogged = True
                            if await self.relogin(account):
                                continue
                            return None
                        response.raise_for_status()
                        return await response.json(content_type=None)
            except Exception as e:
                if self.use_proxy and self.rotate_proxy and is_proxy_error(str(e)):
                    new_proxy = self.proxies.rotate(address)
                    self.proxy_rotated(address, new_proxy)
                    logger.warning(f"{label}: proxy error, rotated to {mask_proxy(new_proxy)}", wallet)
                if attempt < self.retries - 1:
                    logger.debug(f"{label} attempt {attempt + 1}/{self.retries} failed: {e}", wallet)
                    await self._sleep(self.retry_delay)
                    continue
                logger.error(f"{label} failed: {e}", wallet)
        return None


class PharosAPI(RestClient):
    """REST client for the Pharos points API."""

    def __init__(self, db: Database, proxies: ProxyPool, use_proxy: bool = False, rotate_proxy: bool = False,
                 base_url: str = BASE_API, retries: int = 5, retry_delay: float = 5,
                 invite_code: Optional[str] = None, token_ttl_hours: int = 24,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        super().__init__(proxies, use_proxy=use_proxy, rotate_proxy=rotate_proxy, base_url=base_url,
                         retries=retries, retry_delay=retry_delay, sleep=sleep)
        self.db = db
        self.invite_code = invite_code
        self.token_ttl_hours = token_ttl_hours
        self.access_tokens: Dict[str, str] = {}
        self._login_locks: Dict[str, asyncio.Lock] = {}

    def authorization(self, account: WalletAccount) -> Optional[str]:
        return f"Bearer {self.access_tokens.get(account.address) or 'null'}"

    async def relogin(self, account: WalletAccount) -> bool:
        self.drop_token(account)
        return await self.login(account)

    def proxy_rotated(self, address: str, proxy: Optional[str]):
        self.db.set_proxy(address, proxy)

    def drop_token(self, account: WalletAccount):
        self.access_tokens.pop(account.address, None)
        account.auth_token = None
        self.db.clear_token(account.address)

    def _lock_for(self, address: str) -> asyncio.Lock:
        lock = self._login_locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._login_locks[address] = lock
        return lock

    async def login(self, account: WalletAccount) -> bool:
        async with self._lock_for(account.address):
            payload = build_login_payload(account, self.invite_code)
            result = await self._request(account, "POST", "/user/login", "Login", json_data=payload, auth=False)
            if not result or result.get("code") != 0:
                message = result.get("msg") if result else "no response"
                logger.error(f"Login failed: {message}", account.wallet_id)
                return False

            token = result.get("data", {}).get("jwt")
            if not token:
                logger.error(f"Login response missing token: {result}", account.wallet_id)
                return False

            self.access_tokens[account.address] = token
            account.auth_token = token
            self.db.save_token(account.address, token, expires_in_hours=self.token_ttl_hours)
            logger.success("Logged in successfully", account.wallet_id)
            return True

    async def ensure_token(self, account: WalletAccount) -> bool:
        if self.access_tokens.get(account.address):
            return True
        cached = self.db.get_token(account.address)
        if cached:
            logger.debug("Using cached valid token", account.wallet_id)
            self.access_tokens[account.address] = cached
            account.auth_token = cached
            return True
        return await self.login(account)

    async def profile(self, account: WalletAccount) -> Optional[Dict[str, Any]]:
        result = await self._request(account, "GET", "/user/profile", "Fetch profile",
                                     params={"address": account.address})
        if result and result.get("code") == 0:
            return result.get("data", {}).get("user_info")
        return None

    async def sign_in(self, account: WalletAccount) -> bool:
        result = await self._request(account, "POST", "/sign/in", "Daily sign-in",
                                     params={"address": account.address})
        if result and result.get("code") == 0:
            logger.success("Daily sign-in successful", account.wallet_id)
            return True
        message = result.get("msg") if result else "no response"
        logger.warning(f"Daily sign-in skipped: {message or 'already signed in today'}", account.wallet_id)
        return False

    async def faucet_status(self, account: WalletAccount) -> Optional[Dict[str, Any]]:
        result = await self._request(account, "GET", "/faucet/status", "Faucet status",
                                     params={"address": account.address})
        if result and result.get("code") == 0:
            return result.get("data", {})
        return None

    async def claim_faucet(self, account: WalletAccount, captcha_token: Optional[str] = None) -> bool:
        params = {"address": account.address}
        if captcha_token:
            params["recaptcha_token"] = captcha_token
        result = await self._request(account, "POST", "/faucet/daily", "Claim faucet", params=params)
        if result and result.get("code") == 0:
            logger.success("Faucet claimed successfully", account.wallet_id)
            return True
        message = result.get("msg") if result else "no response"
        logger.error(f"Faucet claim failed: {message}", account.wallet_id)
        return False

    async def verify_task(self, account: WalletAccount, task_id: int, tx_hash: Optional[str] = None) -> bool:
        form = {"address": account.address, "task_id": task_id}
        if tx_hash:
            form["tx_hash"] = tx_hash
        result = await self._request(account, "POST", "/task/verify", f"Verify task {task_id}", form=form)
        if result and result.get("code") == 0 and result.get("data", {}).get("verified"):
            logger.success(f"Task {task_id} verified", account.wallet_id)
            return True
        message = result.get("msg") if result else "no response"
        logger.warning(f"Task {task_id} not verified: {message}", account.wallet_id)
        return False

    async def user_tasks(self, account: WalletAccount) -> List[Dict[str, Any]]:
        result = await self._request(account, "GET", "/user/tasks", "Fetch tasks",
                                     params={"address": account.address})
        if result and result.get("code") == 0:
            return result.get("data", {}).get("user_tasks") or []
        return []


def seconds_until(timestamp: Optional[int]) -> int:
    if not timestamp:
        return 0
    return max(0, int(timestamp) - int(time.time()))

import re
import ssl
from typing import Dict, List, Optional

import certifi
from aiohttp import BasicAuth, TCPConnector
from aiohttp_socks import ProxyConnector

from pharos_bot.utils import check_proxy_scheme


def create_ssl_context() -> ssl.SSLContext:
    try:
        return ssl.create_default_context(cafile=certifi.where())
    except Exception:
        return ssl.create_default_context()


def build_proxy_config(proxy: Optional[str] = None, ssl_context: Optional[ssl.SSLContext] = None):
    if ssl_context is None:
        ssl_context = create_ssl_context()
    if not proxy:
        return TCPConnector(ssl=ssl_context), None, None
    if proxy.startswith("socks"):
        connector = ProxyConnector.from_url(proxy, ssl=ssl_context)
        return connector, None, None
    elif proxy.startswith("http"):
        match = re.match(r"(https?)://(.*?):(.*?)@(.*)", proxy)
        if match:
            scheme, username, password, host_port = match.groups()
            clean_url = f"{scheme}://{host_port}"
            auth = BasicAuth(username, password)
            return TCPConnector(ssl=ssl_context), clean_url, auth
        return TCPConnector(ssl=ssl_context), proxy, None
    raise ValueError(f"Unsupported proxy type: {proxy}")


class ProxyPool:
    """Round-robin proxy assignment, sticky per address until rotated."""

    def __init__(self, proxies: Optional[List[str]] = None):
        self.proxies = [check_proxy_scheme(p) for p in (proxies or [])]
        self.proxy_index = 0
        self.account_proxies: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.proxies)

    def __bool__(self) -> bool:
        return bool(self.proxies)

    def _take_next(self) -> str:
        proxy = self.proxies[self.proxy_index]
        self.proxy_index = (self.proxy_index + 1) % len(self.proxies)
        return proxy

    def assign(self, address: str) -> Optional[str]:
        if address not in self.account_proxies:
            if not self.proxies:
                return None
            self.account_proxies[address] = self._take_next()
        return self.account_proxies[address]

    def rotate(self, address: str) -> Optional[str]:
        if not self.proxies:
            return None
        current = self.account_proxies.get(address)
        proxy = self._take_next()
        if proxy == current and len(self.proxies) > 1:
            proxy = self._take_next()
        self.account_proxies[address] = proxy
        return proxy

    def pin(self, address: str, proxy: Optional[str]):
        if proxy:
            self.account_proxies[address] = check_proxy_scheme(proxy)

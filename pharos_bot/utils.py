import os
import random
from typing import List, Dict, Any, Optional, Union

import yaml
from eth_account import Account
from eth_utils import is_address, to_checksum_address

REQUIRED_SECTIONS = ['SETTINGS', 'TRANSACTIONS', 'TASKS']

DATA_FILES = {
    "data/private_keys.txt": "# Private keys to farm with, one per line (0x...)\n",
    "data/wallets.txt": "# Target addresses for transfers, one per line\n",
    "data/proxies.txt": "# Proxies, one per line\n# Format: http://user:pass@ip:port or socks5://user:pass@ip:port\n",
}

Range = Union[int, float, List[Union[int, float]]]


def mask_proxy(proxy: Optional[str]) -> str:
    if not proxy:
        return "No proxy"

    try:
        protocol = "http"
        rest = proxy
        if "://" in proxy:
            protocol, rest = proxy.split("://", 1)

        auth = None
        host_port = rest
        if "@" in rest:
            auth, host_port = rest.rsplit("@", 1)

        if ":" in host_port:
            ip, port = host_port.rsplit(":", 1)
            parts = ip.split(".")
            if len(parts) == 4:
                masked_ip = f"{parts[0]}.{parts[1]}.***"
            else:
                masked_ip = ip[:3] + "***"
            masked_host = f"{masked_ip}:{port}"
        else:
            masked_host = host_port[:3] + "***"

        if auth is None:
            return f"{protocol}://{masked_host}"

        if ":" in auth:
            user, password = auth.split(":", 1)
            masked_user = user[0] + "***" if user else "***"
            masked_pass = password[0] + "***" if password else "***"
            masked_auth = f"{masked_user}:{masked_pass}"
        else:
            masked_auth = auth[:1] + "***"
        return f"{protocol}://{masked_auth}@{masked_host}"
    except Exception:
        return proxy[:10] + "***" if len(proxy) > 10 else "***"


def load_settings(filename: str = "settings.yaml") -> Dict[str, Any]:
    try:
        with open(filename, 'r', encoding='utf-8') as f:
            settings = yaml.safe_load(f)
    except FileNotFoundError:
        raise Exception(f"Settings file '{filename}' not found")
    except yaml.YAMLError as e:
        raise Exception(f"Error parsing settings file: {e}")
    return settings or {}


def validate_settings(settings: Dict[str, Any]) -> bool:
    for section in REQUIRED_SECTIONS:
        if section not in settings:
            raise Exception(f"Missing required section '{section}' in settings.yaml")

    threads = settings['SETTINGS'].get('THREADS', 1)
    if not isinstance(threads, int) or threads < 1:
        raise Exception("SETTINGS.THREADS must be a positive integer")

    attempts = settings['SETTINGS'].get('ATTEMPTS', 3)
    if not isinstance(attempts, int) or attempts < 1:
        raise Exception("SETTINGS.ATTEMPTS must be a positive integer")

    return True


def load_lines(filename: str) -> List[str]:
    if not os.path.exists(filename):
        return []

    lines = []
    with open(filename, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                lines.append(line)
    return lines


def normalize_private_key(key: str) -> Optional[str]:
    key = key.strip()
    if not key.startswith('0x'):
        key = f"0x{key}"
    try:
        Account.from_key(key)
    except Exception:
        return None
    return key


def load_private_keys(filename: str = "data/private_keys.txt") -> List[str]:
    if not os.path.exists(filename):
        raise FileNotFoundError(f"File '{filename}' not found")

    keys = []
    for line in load_lines(filename):
        key = normalize_private_key(line)
        if key and key not in keys:
            keys.append(key)
    return keys


def load_target_wallets(filename: str = "data/wallets.txt") -> List[str]:
    wallets = []
    for line in load_lines(filename):
        if is_address(line):
            wallets.append(to_checksum_address(line))
    return wallets


def load_proxies(filename: str = "data/proxies.txt") -> List[str]:
    return load_lines(filename)


def filter_accounts(accounts: List[Any], settings: Dict[str, Any]) -> List[Any]:
    settings_section = settings.get('SETTINGS', {})

    accounts_range = settings_section.get('ACCOUNTS_RANGE', [0, 0])
    exact_accounts = settings_section.get('EXACT_ACCOUNTS_TO_USE', [])
    shuffle = settings_section.get('SHUFFLE_WALLETS', False)

    if exact_accounts:
        filtered = [accounts[i-1] for i in exact_accounts if 0 < i <= len(accounts)]
    elif accounts_range and list(accounts_range) != [0, 0]:
        start, end = accounts_range
        filtered = accounts[start-1:end] if start > 0 else accounts[:end]
    else:
        filtered = list(accounts)

    if shuffle:
        random.shuffle(filtered)

    return filtered


def parse_range(value: Optional[Range], default: Range) -> List[Union[int, float]]:
    if value is None:
        value = default
    if isinstance(value, (list, tuple)) and len(value) == 2:
        low, high = value
        return [min(low, high), max(low, high)]
    if isinstance(value, (int, float)):
        return [value, value]
    return parse_range(default, default)


def get_random_delay(delay_range: Range) -> float:
    low, high = parse_range(delay_range, 0)
    if isinstance(low, int) and isinstance(high, int):
        return random.randint(low, high)
    return round(random.uniform(low, high), 2)


def format_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def check_proxy_scheme(proxy: str) -> str:
    schemes = ["http://", "https://", "socks4://", "socks5://"]
    if any(proxy.startswith(scheme) for scheme in schemes):
        return proxy
    return f"http://{proxy}"


def create_data_directory():
    os.makedirs("data", exist_ok=True)
    os.makedirs("logs", exist_ok=True)

    for path, header in DATA_FILES.items():
        if not os.path.exists(path):
            with open(path, 'w', encoding='utf-8') as f:
                f.write(header)

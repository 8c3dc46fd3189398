import asyncio
import random
import secrets
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from eth_account import Account
from eth_utils import to_hex
from web3 import Web3

from pharos_bot.accounts import WalletAccount
from pharos_bot.api import PharosAPI, seconds_until
from pharos_bot.calldata import (build_approve_calldata, build_claim_faucet_calldata, build_claim_nft_calldata,
                                 build_claim_tokens_calldata, build_combine_calldata, build_commit_calldata,
                                 build_deposit_calldata, build_mint_calldata, build_register_calldata,
                                 build_swap_calldata, build_tip_calldata, build_withdraw_calldata, sort_pair, to_units)
from pharos_bot.captcha import CaptchaSolver
from pharos_bot.constants import (APPROVE_GAS_LIMIT, AQUAFLUX_CLAIM_GAS_LIMIT, AQUAFLUX_COMBINE_AMOUNT,
                                  AQUAFLUX_CONTRACT_ADDRESS, AQUAFLUX_NFT_GAS_LIMIT, DOMAIN_COMMIT_GAS_LIMIT,
                                  DOMAIN_CONTROLLER_ABI, DOMAIN_CONTROLLER_ADDRESS, DOMAIN_DURATION,
                                  DOMAIN_REGISTER_GAS_LIMIT, DOMAIN_RESOLVER_ADDRESS, LIQUIDITY_GAS_LIMIT,
                                  MAX_UINT256, MVMUSD_CONTRACT_ADDRESS, MVMUSD_FAUCET_ABI, POSITION_MANAGER_ADDRESS,
                                  PRIMUS_TIP_CONTRACT_ADDRESS, SITE_URL, STAKING_FAUCET_GAS_LIMIT, STAKING_GAS_LIMIT,
                                  STAKING_ROUTER_ADDRESS, SWAP_GAS_LIMIT, SWAP_ROUTER_ADDRESS, TASK_LIQUIDITY,
                                  TASK_SELF_TRANSFER, TASK_SWAP, TIP_GAS_LIMIT, TIP_USERNAMES, TOKEN_ADDRESSES,
                                  TOKEN_DECIMALS, TRANSFER_GAS_LIMIT, USDT_CONTRACT_ADDRESS,
                                  WPHRS_CONTRACT_ADDRESS, WRAP_GAS_LIMIT)
from pharos_bot.database import Database
from pharos_bot.errors import TransactionError, TxErrorKind
from pharos_bot.logger import logger
from pharos_bot.partners import STAKING_TICKERS, AquaFluxAPI, AutoStakingAPI
from pharos_bot.transaction import FeePolicy, TransactionIntent, TransactionIssuer, TxResult
from pharos_bot.utils import Range, get_random_delay, parse_range

SWAP_FEES = FeePolicy(max_fee_gwei=2, priority_fee_gwei=1)
LIQUIDITY_FEES = FeePolicy(max_fee_gwei=5, priority_fee_gwei=1)

TRANSFER_GAS_BUFFER = Web3.to_wei(Decimal("0.0005"), "ether")
WRAP_GAS_RESERVE = Web3.to_wei(Decimal("0.001"), "ether")

SWAP_DEADLINE = 300
LIQUIDITY_DEADLINE = 600

STAKING_FEES = FeePolicy(max_fee_gwei=1, priority_fee_gwei=1)
TIP_AMOUNT_RANGE = (100_000_000_000, 150_000_000_000)
DOMAIN_NAME_LENGTH = 9
DOMAIN_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


@dataclass
class SwapOption:
    from_ticker: str
    to_ticker: str
    amount: float

    @property
    def token_in(self) -> str:
        return TOKEN_ADDRESSES[self.from_ticker]

    @property
    def token_out(self) -> str:
        return TOKEN_ADDRESSES[self.to_ticker]


@dataclass
class TaskConfig:
    transfer_count: List[int] = field(default_factory=lambda: [10, 10])
    transfer_amount: float = 0.001
    self_transfer_amount: float = 0.001
    wrap_amount: float = 0.0001
    swap_count: List[int] = field(default_factory=lambda: [10, 10])
    wphrs_swap_amount: float = 0.0001
    usdt_swap_amount: float = 0.45
    liquidity_count: List[int] = field(default_factory=lambda: [10, 10])
    liquidity_usdt_amount: float = 0.45
    liquidity_wphrs_amount: float = 0.001
    pause_between_actions: Range = 1
    pause_between_transfers: Range = 2
    pause_between_swaps: Range = 3
    pause_after_approve: Range = 10
    captcha_site_key: str = ""
    staking_count: List[int] = field(default_factory=lambda: [1, 1])
    staking_usdc_amount: float = 0.25
    staking_usdt_amount: float = 0.25
    staking_musd_amount: float = 0.25
    domain_mint_count: List[int] = field(default_factory=lambda: [1, 1])
    domain_commit_wait: Range = 60
    nft_mint_count: List[int] = field(default_factory=lambda: [1, 1])
    tip_count: List[int] = field(default_factory=lambda: [1, 1])
    tip_username: str = ""

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "TaskConfig":
        tx = settings.get('TRANSACTIONS', {})
        bot = settings.get('SETTINGS', {})
        captcha = settings.get('CAPTCHA', {})
        return cls(
            transfer_count=parse_range(tx.get('TRANSFER_COUNT'), 10),
            transfer_amount=tx.get('TRANSFER_AMOUNT', 0.001),
            self_transfer_amount=tx.get('SELF_TRANSFER_AMOUNT', 0.001),
            wrap_amount=tx.get('WRAP_AMOUNT', 0.0001),
            swap_count=parse_range(tx.get('SWAP_COUNT'), 10),
            wphrs_swap_amount=tx.get('WPHRS_SWAP_AMOUNT', 0.0001),
            usdt_swap_amount=tx.get('USDT_SWAP_AMOUNT', 0.45),
            liquidity_count=parse_range(tx.get('LIQUIDITY_COUNT'), 10),
            liquidity_usdt_amount=tx.get('LIQUIDITY_USDT_AMOUNT', 0.45),
            liquidity_wphrs_amount=tx.get('LIQUIDITY_WPHRS_AMOUNT', 0.001),
            pause_between_actions=bot.get('PAUSE_BETWEEN_ACTIONS', 1),
            pause_between_transfers=bot.get('PAUSE_BETWEEN_TRANSFERS', 2),
            pause_between_swaps=bot.get('PAUSE_BETWEEN_SWAPS', 3),
            pause_after_approve=bot.get('PAUSE_AFTER_APPROVE', 10),
            captcha_site_key=captcha.get('SITE_KEY', ''),
            staking_count=parse_range(tx.get('STAKING_COUNT'), 1),
            staking_usdc_amount=tx.get('STAKING_USDC_AMOUNT', 0.25),
            staking_usdt_amount=tx.get('STAKING_USDT_AMOUNT', 0.25),
            staking_musd_amount=tx.get('STAKING_MUSD_AMOUNT', 0.25),
            domain_mint_count=parse_range(tx.get('DOMAIN_MINT_COUNT'), 1),
            domain_commit_wait=bot.get('DOMAIN_COMMIT_WAIT', 60),
            nft_mint_count=parse_range(tx.get('NFT_MINT_COUNT'), 1),
            tip_count=parse_range(tx.get('TIP_COUNT'), 1),
            tip_username=tx.get('TIP_USERNAME') or '',
        )

    def swap_options(self) -> List[SwapOption]:
        return [
            SwapOption("WPHRS", "USDT", self.wphrs_swap_amount),
            SwapOption("USDT", "WPHRS", self.usdt_swap_amount),
        ]

    def staking_amounts(self) -> Dict[str, Decimal]:
        return {
            "USDC": Decimal(str(self.staking_usdc_amount)),
            "USDT": Decimal(str(self.staking_usdt_amount)),
            "MockUSD": Decimal(str(self.staking_musd_amount)),
        }


def pick_count(count_range: Sequence[int]) -> int:
    low, high = count_range
    return random.randint(int(low), int(high))


def generate_random_recipient() -> str:
    return Account.from_key(to_hex(secrets.token_bytes(32))).address


def random_domain_name(length: int = DOMAIN_NAME_LENGTH) -> str:
    """Letters, digits and single inner hyphens, starting with a letter."""
    name = [secrets.choice(DOMAIN_ALPHABET[:26])]
    while len(name) < length:
        inner = len(name) < length - 1
        if inner and name[-1] != "-" and secrets.randbelow(8) == 0:
            name.append("-")
        else:
            name.append(secrets.choice(DOMAIN_ALPHABET))
    return "".join(name)


class PharosTasks:
    """On-chain and REST tasks for one account, built on the shared issuer."""

    def __init__(self, issuer: TransactionIssuer, api: Optional[PharosAPI], db: Optional[Database],
                 config: Optional[TaskConfig] = None, captcha: Optional[CaptchaSolver] = None,
                 target_wallets: Optional[List[str]] = None,
                 staking_api: Optional[AutoStakingAPI] = None, aquaflux_api: Optional[AquaFluxAPI] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.issuer = issuer
        self.api = api
        self.db = db
        self.config = config or TaskConfig()
        self.captcha = captcha
        self.target_wallets = target_wallets or []
        self.staking_api = staking_api
        self.aquaflux_api = aquaflux_api
        self._sleep = sleep

    async def pause(self, delay_range: Range, reason: str, wallet: Optional[str] = None):
        delay = get_random_delay(delay_range)
        if delay > 0:
            logger.debug(f"⏳ Waiting {delay}s {reason}...", wallet)
            await self._sleep(delay)

    def record(self, account: WalletAccount, action: str, result: Union[TxResult, bool], details: str = ""):
        if self.db is None:
            return
        if isinstance(result, TxResult):
            status = "success" if result.success else "failed"
            if not result.success and result.error:
                details = f"{details} ({result.error_kind.value}: {result.error})" if details else result.error
            self.db.add_statistic(account.db_id, action, status, details, result.tx_hash)
        else:
            self.db.add_statistic(account.db_id, action, "success" if result else "failed", details)

    async def verify(self, account: WalletAccount, task_id: int, tx_hash: Optional[str]) -> bool:
        if self.api is None or not tx_hash:
            return False
        await self.pause(self.config.pause_between_actions, "before task verification", account.wallet_id)
        return await self.api.verify_task(account, task_id, tx_hash)

    async def daily_sign_in(self, account: WalletAccount) -> bool:
        logger.action("SIGN-IN", f"{account.short_address} daily check-in", account.wallet_id)
        success = await self.api.sign_in(account)
        self.record(account, "sign_in", success)
        return success

    async def claim_faucet(self, account: WalletAccount) -> bool:
        wallet = account.wallet_id
        logger.action("FAUCET", f"{account.short_address} checking faucet status", wallet)

        status = await self.api.faucet_status(account)
        if status is None:
            logger.error("Could not read faucet status", wallet)
            self.record(account, "faucet", False, "status unavailable")
            return False

        if not status.get("is_able_to_faucet"):
            wait = seconds_until(status.get("avaliable_timestamp"))
            message = f"Faucet not available yet, next claim in {wait // 3600}h {wait % 3600 // 60}m" \
                if wait else "Faucet not available yet"
            logger.warning(message, wallet)
            self.record(account, "faucet", False, "not available")
            return False

        captcha_token = None
        if self.captcha is not None and self.captcha.enabled:
            if not self.config.captcha_site_key:
                logger.warning("Captcha enabled but CAPTCHA.SITE_KEY is empty, claiming without token", wallet)
            else:
                captcha_token = await self.captcha.solve_recaptcha(self.config.captcha_site_key, SITE_URL)
                if not captcha_token:
                    logger.error("Failed to solve reCAPTCHA", wallet)
                    self.record(account, "faucet", False, "captcha failed")
                    return False

        await self.pause(self.config.pause_between_actions, "before faucet claim", wallet)
        success = await self.api.claim_faucet(account, captcha_token)
        self.record(account, "faucet", success)
        return success

    def pick_recipient(self, account: WalletAccount) -> str:
        candidates = [w for w in self.target_wallets if w.lower() != account.address.lower()]
        if candidates:
            return random.choice(candidates)
        return generate_random_recipient()

    async def transfers(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        wallet = account.wallet_id
        count = pick_count(self.config.transfer_count) if count is None else count
        amount_wei = Web3.to_wei(Decimal(str(self.config.transfer_amount)), "ether")
        logger.action("TRANSFERS", f"{account.short_address} performing {count} transfers", wallet)

        succeeded = 0
        for i in range(count):
            recipient = self.pick_recipient(account)
            logger.info(f"📤 Transfer {i + 1}/{count}: {self.config.transfer_amount} PHRS to {recipient[:10]}...",
                        wallet)
            intent = TransactionIntent(to=recipient, value=amount_wei, gas_limit=TRANSFER_GAS_LIMIT)
            result = await self.issuer.issue(account, chain, intent, label=f"Transfer {i + 1}/{count}",
                                             required_balance=amount_wei + TRANSFER_GAS_BUFFER)
            self.record(account, "transfer", result, f"{self.config.transfer_amount} PHRS to {recipient}")
            if result:
                succeeded += 1
            elif result.error_kind is TxErrorKind.INSUFFICIENT_BALANCE:
                break

            if i < count - 1:
                await self.pause(self.config.pause_between_transfers, "before next transfer", wallet)
        return succeeded

    async def self_transfer(self, account: WalletAccount, chain) -> TxResult:
        wallet = account.wallet_id
        amount = self.config.self_transfer_amount
        amount_wei = Web3.to_wei(Decimal(str(amount)), "ether")
        logger.action("SELF-TRANSFER", f"{account.short_address} sending {amount} PHRS to itself", wallet)

        intent = TransactionIntent(to=account.address, value=amount_wei, gas_limit=TRANSFER_GAS_LIMIT)
        result = await self.issuer.issue(account, chain, intent, label="Self transfer",
                                         required_balance=amount_wei + TRANSFER_GAS_BUFFER)
        self.record(account, "self_transfer", result, f"{amount} PHRS")
        if result:
            await self.verify(account, TASK_SELF_TRANSFER, result.tx_hash)
        return result

    async def wrap(self, account: WalletAccount, chain) -> TxResult:
        amount = self.config.wrap_amount
        amount_wei = Web3.to_wei(Decimal(str(amount)), "ether")
        logger.action("WRAP", f"{account.short_address} wrapping {amount} PHRS to WPHRS", account.wallet_id)

        intent = TransactionIntent(to=WPHRS_CONTRACT_ADDRESS, data=build_deposit_calldata(), value=amount_wei,
                                   gas_limit=WRAP_GAS_LIMIT)
        result = await self.issuer.issue(account, chain, intent, label="Wrap",
                                         required_balance=amount_wei + WRAP_GAS_RESERVE)
        self.record(account, "wrap", result, f"{amount} PHRS")
        return result

    async def token_shortfall(self, account: WalletAccount, chain, ticker: str, amount: int) -> Optional[TxResult]:
        try:
            balance = await self.issuer.read(
                account, lambda: chain.get_token_balance(TOKEN_ADDRESSES[ticker], account.address),
                f"{ticker} balance check"
            )
        except TransactionError as e:
            logger.error(f"{ticker} balance check failed: {e}", account.wallet_id)
            return TxResult.failed(e.kind, str(e))

        if balance < amount:
            decimals = TOKEN_DECIMALS[ticker]
            message = (f"Insufficient {ticker} balance: have {Decimal(balance) / 10 ** decimals}, "
                       f"need {Decimal(amount) / 10 ** decimals}")
            logger.warning(message, account.wallet_id)
            return TxResult.failed(TxErrorKind.INSUFFICIENT_BALANCE, message)
        return None

    async def unwrap(self, account: WalletAccount, chain) -> TxResult:
        amount = self.config.wrap_amount
        amount_wei = Web3.to_wei(Decimal(str(amount)), "ether")
        logger.action("UNWRAP", f"{account.short_address} unwrapping {amount} WPHRS to PHRS", account.wallet_id)

        result = await self.token_shortfall(account, chain, "WPHRS", amount_wei)
        if result is None:
            intent = TransactionIntent(to=WPHRS_CONTRACT_ADDRESS, data=build_withdraw_calldata(amount_wei),
                                       gas_limit=WRAP_GAS_LIMIT)
            result = await self.issuer.issue(account, chain, intent, label="Unwrap")
        self.record(account, "unwrap", result, f"{amount} WPHRS")
        return result

    async def ensure_allowance(self, account: WalletAccount, chain, token: str, spender: str, amount: int,
                               ticker: str) -> bool:
        wallet = account.wallet_id
        try:
            allowance = await chain.get_allowance(token, account.address, spender)
        except TransactionError as e:
            logger.error(f"{ticker} allowance check failed: {e}", wallet)
            return False

        if allowance >= amount:
            return True

        logger.info(f"🔓 Approving {ticker} for {spender[:10]}...", wallet)
        intent = TransactionIntent(to=token, data=build_approve_calldata(spender, MAX_UINT256),
                                   gas_limit=APPROVE_GAS_LIMIT)
        result = await self.issuer.issue(account, chain, intent, label=f"Approve {ticker}")
        self.record(account, "approve", result, f"{ticker} for {spender}")
        if result:
            await self.pause(self.config.pause_after_approve, "after approval", wallet)
        return result.success

    async def swap(self, account: WalletAccount, chain, option: SwapOption) -> TxResult:
        wallet = account.wallet_id
        amount_in = to_units(option.amount, TOKEN_DECIMALS[option.from_ticker])
        details = f"{option.amount} {option.from_ticker} -> {option.to_ticker}"
        logger.info(f"🔄 Swapping {details}", wallet)

        result = await self.token_shortfall(account, chain, option.from_ticker, amount_in)
        if result is None:
            approved = await self.ensure_allowance(account, chain, option.token_in, SWAP_ROUTER_ADDRESS, amount_in,
                                                   option.from_ticker)
            if not approved:
                result = TxResult.failed(TxErrorKind.OTHER, f"{option.from_ticker} approval failed")
            else:
                deadline = int(time.time()) + SWAP_DEADLINE
                calldata = build_swap_calldata(option.token_in, option.token_out, account.address, amount_in, deadline)
                intent = TransactionIntent(to=SWAP_ROUTER_ADDRESS, data=calldata, gas_limit=SWAP_GAS_LIMIT,
                                           fee_overrides=SWAP_FEES)
                result = await self.issuer.issue(account, chain, intent, label=f"Swap {details}")

        self.record(account, "swap", result, details)
        if result:
            await self.verify(account, TASK_SWAP, result.tx_hash)
        return result

    async def swaps(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        wallet = account.wallet_id
        count = pick_count(self.config.swap_count) if count is None else count
        logger.action("SWAPS", f"{account.short_address} performing {count} swaps", wallet)

        succeeded = 0
        options = self.config.swap_options()
        for i in range(count):
            logger.info(f"Swap {i + 1}/{count}", wallet)
            result = await self.swap(account, chain, random.choice(options))
            if result:
                succeeded += 1
            if i < count - 1:
                await self.pause(self.config.pause_between_swaps, "before next swap", wallet)
        return succeeded

    async def add_liquidity(self, account: WalletAccount, chain) -> TxResult:
        wallet = account.wallet_id
        usdt_amount = to_units(self.config.liquidity_usdt_amount, TOKEN_DECIMALS["USDT"])
        wphrs_amount = to_units(self.config.liquidity_wphrs_amount, TOKEN_DECIMALS["WPHRS"])
        details = f"{self.config.liquidity_usdt_amount} USDT + {self.config.liquidity_wphrs_amount} WPHRS"
        logger.info(f"💧 Adding liquidity: {details}", wallet)

        result = await self.token_shortfall(account, chain, "USDT", usdt_amount)
        if result is None:
            result = await self.token_shortfall(account, chain, "WPHRS", wphrs_amount)

        if result is None:
            for token, amount, ticker in ((USDT_CONTRACT_ADDRESS, usdt_amount, "USDT"),
                                          (WPHRS_CONTRACT_ADDRESS, wphrs_amount, "WPHRS")):
                if not await self.ensure_allowance(account, chain, token, POSITION_MANAGER_ADDRESS, amount, ticker):
                    result = TxResult.failed(TxErrorKind.OTHER, f"{ticker} approval failed")
                    break

        if result is None:
            token0, amount0, token1, amount1 = sort_pair(USDT_CONTRACT_ADDRESS, usdt_amount,
                                                         WPHRS_CONTRACT_ADDRESS, wphrs_amount)
            deadline = int(time.time()) + LIQUIDITY_DEADLINE
            calldata = build_mint_calldata(token0, token1, amount0, amount1, account.address, deadline)
            intent = TransactionIntent(to=POSITION_MANAGER_ADDRESS, data=calldata, gas_limit=LIQUIDITY_GAS_LIMIT,
                                       fee_overrides=LIQUIDITY_FEES)
            result = await self.issuer.issue(account, chain, intent, label="Add liquidity")

        self.record(account, "liquidity", result, details)
        if result:
            await self.verify(account, TASK_LIQUIDITY, result.tx_hash)
        return result

    async def liquidity(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        wallet = account.wallet_id
        count = pick_count(self.config.liquidity_count) if count is None else count
        logger.action("LIQUIDITY", f"{account.short_address} adding liquidity {count} time(s)", wallet)

        succeeded = 0
        for i in range(count):
            logger.info(f"Liquidity {i + 1}/{count}", wallet)
            result = await self.add_liquidity(account, chain)
            if result:
                succeeded += 1
            elif result.error_kind is TxErrorKind.INSUFFICIENT_BALANCE:
                break
            if i < count - 1:
                await self.pause(self.config.pause_between_swaps, "before next liquidity add", wallet)
        return succeeded

    async def repeat(self, account: WalletAccount, count: int, name: str,
                     step: Callable[[], Awaitable[TxResult]]) -> int:
        wallet = account.wallet_id
        succeeded = 0
        for i in range(count):
            logger.info(f"{name} {i + 1}/{count}", wallet)
            result = await step()
            if result:
                succeeded += 1
            elif result.error_kind is TxErrorKind.INSUFFICIENT_BALANCE:
                break
            if i < count - 1:
                await self.pause(self.config.pause_between_actions, f"before next {name.lower()}", wallet)
        return succeeded

    async def tip(self, account: WalletAccount, chain) -> TxResult:
        username = self.config.tip_username or random.choice(TIP_USERNAMES)
        amount = random.randint(*TIP_AMOUNT_RANGE)
        details = f"{Web3.from_wei(amount, 'ether')} PHRS to x/{username}"
        logger.info(f"🎁 Tipping {details}", account.wallet_id)

        intent = TransactionIntent(to=PRIMUS_TIP_CONTRACT_ADDRESS, data=build_tip_calldata(username, amount),
                                   value=amount, gas_limit=TIP_GAS_LIMIT)
        result = await self.issuer.issue(account, chain, intent, label="Tip",
                                         required_balance=amount + TRANSFER_GAS_BUFFER)
        self.record(account, "tip", result, details)
        return result

    async def tips(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        count = pick_count(self.config.tip_count) if count is None else count
        logger.action("TIPS", f"{account.short_address} sending {count} tip(s)", account.wallet_id)
        return await self.repeat(account, count, "Tip", lambda: self.tip(account, chain))

    async def register_domain(self, account: WalletAccount, chain, name: Optional[str] = None) -> TxResult:
        """
        Commit-reveal registration of ``<name>.phrs`` for one year.

        The commitment is computed by the controller itself, then the
        register call must follow the commit by at least the controller's
        minimum commitment age.
        """
        wallet = account.wallet_id
        name = name or random_domain_name()
        secret = secrets.token_bytes(32)
        resolver = Web3.to_checksum_address(DOMAIN_RESOLVER_ADDRESS)
        logger.info(f"🌐 Registering {name}.phrs", wallet)

        try:
            commitment = await self.issuer.read(
                account, lambda: chain.call(DOMAIN_CONTROLLER_ADDRESS, DOMAIN_CONTROLLER_ABI, "makeCommitment", name,
                                            account.address, DOMAIN_DURATION, secret, resolver, [], True, 0),
                "Domain commitment"
            )
        except TransactionError as e:
            logger.error(f"Could not compute commitment for {name}: {e}", wallet)
            result = TxResult.failed(e.kind, str(e))
            self.record(account, "domain_mint", result, name)
            return result

        intent = TransactionIntent(to=DOMAIN_CONTROLLER_ADDRESS, data=build_commit_calldata(commitment),
                                   gas_limit=DOMAIN_COMMIT_GAS_LIMIT)
        result = await self.issuer.issue(account, chain, intent, label=f"Commit {name}")
        if result:
            await self.pause(self.config.domain_commit_wait, "for the commitment to mature", wallet)
            try:
                base, premium = await self.issuer.read(
                    account, lambda: chain.call(DOMAIN_CONTROLLER_ADDRESS, DOMAIN_CONTROLLER_ABI, "rentPrice", name,
                                                DOMAIN_DURATION),
                    "Domain price"
                )
            except TransactionError as e:
                logger.error(f"Could not read price for {name}: {e}", wallet)
                result = TxResult.failed(e.kind, str(e))
            else:
                price = int(base) + int(premium)
                calldata = build_register_calldata(name, account.address, DOMAIN_DURATION, secret, resolver)
                intent = TransactionIntent(to=DOMAIN_CONTROLLER_ADDRESS, data=calldata, value=price,
                                           gas_limit=DOMAIN_REGISTER_GAS_LIMIT)
                result = await self.issuer.issue(account, chain, intent, label=f"Register {name}",
                                                 required_balance=price + TRANSFER_GAS_BUFFER)

        self.record(account, "domain_mint", result, f"{name}.phrs")
        return result

    async def domain_mints(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        count = pick_count(self.config.domain_mint_count) if count is None else count
        logger.action("DOMAINS", f"{account.short_address} registering {count} domain(s)", account.wallet_id)
        return await self.repeat(account, count, "Domain", lambda: self.register_domain(account, chain))

    async def mint_aquaflux_nft(self, account: WalletAccount, chain) -> TxResult:
        wallet = account.wallet_id
        api = self.aquaflux_api
        result: Optional[TxResult] = None

        if api is None or not await api.login(account):
            result = TxResult.failed(TxErrorKind.OTHER, "AquaFlux login failed")

        steps = (("Claim P/C tokens", build_claim_tokens_calldata(), AQUAFLUX_CLAIM_GAS_LIMIT),
                 ("Combine tokens", build_combine_calldata(AQUAFLUX_COMBINE_AMOUNT), AQUAFLUX_CLAIM_GAS_LIMIT))
        for label, calldata, gas_limit in steps:
            if result is not None:
                break
            intent = TransactionIntent(to=AQUAFLUX_CONTRACT_ADDRESS, data=calldata, gas_limit=gas_limit)
            step = await self.issuer.issue(account, chain, intent, label=label)
            if not step:
                result = step

        if result is None and not await api.holds_token(account):
            logger.warning("AquaFlux does not see the combined tokens yet", wallet)
            result = TxResult.failed(TxErrorKind.OTHER, "token holding check failed")

        if result is None:
            signed = await api.nft_signature(account)
            if signed is None:
                result = TxResult.failed(TxErrorKind.OTHER, "NFT signature unavailable")
            else:
                signature, expires_at = signed
                intent = TransactionIntent(to=AQUAFLUX_CONTRACT_ADDRESS,
                                           data=build_claim_nft_calldata(signature, expires_at),
                                           gas_limit=AQUAFLUX_NFT_GAS_LIMIT)
                result = await self.issuer.issue(account, chain, intent, label="Mint AquaFlux NFT")

        self.record(account, "nft_mint", result, "AquaFlux")
        return result

    async def nft_mints(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        count = pick_count(self.config.nft_mint_count) if count is None else count
        logger.action("NFT", f"{account.short_address} minting {count} AquaFlux NFT(s)", account.wallet_id)
        return await self.repeat(account, count, "NFT mint", lambda: self.mint_aquaflux_nft(account, chain))

    async def claim_staking_faucet(self, account: WalletAccount, chain) -> Optional[TxResult]:
        wallet = account.wallet_id
        try:
            next_claim = await self.issuer.read(
                account, lambda: chain.call(MVMUSD_CONTRACT_ADDRESS, MVMUSD_FAUCET_ABI, "getNextFaucetClaimTime",
                                            account.address),
                "MockUSD faucet check"
            )
        except TransactionError as e:
            logger.warning(f"MockUSD faucet check failed: {e}", wallet)
            return None

        if time.time() < next_claim:
            logger.info(f"MockUSD faucet already claimed, next claim in {int(next_claim - time.time())}s", wallet)
            return None

        intent = TransactionIntent(to=MVMUSD_CONTRACT_ADDRESS, data=build_claim_faucet_calldata(),
                                   gas_limit=STAKING_FAUCET_GAS_LIMIT, fee_overrides=STAKING_FEES)
        result = await self.issuer.issue(account, chain, intent, label="MockUSD faucet")
        self.record(account, "staking_faucet", result)
        return result

    async def stake(self, account: WalletAccount, chain) -> TxResult:
        wallet = account.wallet_id
        api = self.staking_api
        amounts = self.config.staking_amounts()
        details = " + ".join(f"{amounts[t]} {t}" for t in STAKING_TICKERS)
        logger.info(f"🏦 Staking {details} through AutoStaking", wallet)

        result: Optional[TxResult] = None
        units = {t: to_units(amounts[t], TOKEN_DECIMALS[t]) for t in STAKING_TICKERS}
        for ticker in STAKING_TICKERS:
            result = await self.token_shortfall(account, chain, ticker, units[ticker])
            if result is not None:
                break

        changes = None
        if result is None:
            changes = await api.portfolio_recommendation(account, amounts) if api is not None else None
            if not changes:
                result = TxResult.failed(TxErrorKind.OTHER, "no portfolio recommendation")

        if result is None:
            for ticker in STAKING_TICKERS:
                if not await self.ensure_allowance(account, chain, TOKEN_ADDRESSES[ticker], STAKING_ROUTER_ADDRESS,
                                                   units[ticker], ticker):
                    result = TxResult.failed(TxErrorKind.OTHER, f"{ticker} approval failed")
                    break

        if result is None:
            calldata = await api.change_transactions(account, changes)
            if not calldata:
                result = TxResult.failed(TxErrorKind.OTHER, "no staking calldata")
            else:
                intent = TransactionIntent(to=STAKING_ROUTER_ADDRESS, data=calldata, gas_limit=STAKING_GAS_LIMIT,
                                           fee_overrides=STAKING_FEES)
                result = await self.issuer.issue(account, chain, intent, label="Stake")

        self.record(account, "staking", result, details)
        return result

    async def staking(self, account: WalletAccount, chain, count: Optional[int] = None) -> int:
        count = pick_count(self.config.staking_count) if count is None else count
        logger.action("STAKING", f"{account.short_address} staking {count} time(s)", account.wallet_id)
        await self.claim_staking_faucet(account, chain)
        return await self.repeat(account, count, "Stake", lambda: self.stake(account, chain))

    async def balances(self, account: WalletAccount, chain) -> Dict[str, Optional[Decimal]]:
        result: Dict[str, Optional[Decimal]] = {}
        try:
            result["PHRS"] = Decimal(await chain.get_balance(account.address)) / 10 ** TOKEN_DECIMALS["PHRS"]
        except TransactionError as e:
            logger.debug(f"PHRS balance read failed: {e}", account.wallet_id)
            result["PHRS"] = None

        for ticker, token in TOKEN_ADDRESSES.items():
            try:
                raw = await chain.get_token_balance(token, account.address)
                result[ticker] = Decimal(raw) / 10 ** TOKEN_DECIMALS[ticker]
            except TransactionError as e:
                logger.debug(f"{ticker} balance read failed: {e}", account.wallet_id)
                result[ticker] = None
        return result

    async def show_balances(self, account: WalletAccount, chain) -> Dict[str, Optional[Decimal]]:
        result = await self.balances(account, chain)
        line = " | ".join(f"{ticker}: {value if value is not None else 'N/A'}" for ticker, value in result.items())
        logger.info(f"💰 {line}", account.wallet_id)
        return result

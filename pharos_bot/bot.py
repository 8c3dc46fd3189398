import asyncio
import sys
from typing import Any, Dict, List, Optional

from pharos_bot.accounts import WalletAccount
from pharos_bot.api import PharosAPI
from pharos_bot.captcha import CaptchaSolver
from pharos_bot.chain import ChainClient, ProviderCache
from pharos_bot.database import Database
from pharos_bot.logger import logger
from pharos_bot.nonce import NonceManager
from pharos_bot.partners import AquaFluxAPI, AutoStakingAPI
from pharos_bot.proxy import ProxyPool
from pharos_bot.scheduler import BatchRunner, ScheduledItem
from pharos_bot.tasks import PharosTasks, TaskConfig
from pharos_bot.transaction import TransactionIssuer
from pharos_bot.utils import (filter_accounts, get_random_delay, load_private_keys, load_proxies,
                              load_target_wallets, mask_proxy)

ACTION_ALL = 1
ACTION_SIGN_IN = 2
ACTION_FAUCET = 3
ACTION_TRANSFERS = 4
ACTION_SELF_TRANSFER = 5
ACTION_WRAP = 6
ACTION_UNWRAP = 7
ACTION_SWAPS = 8
ACTION_LIQUIDITY = 9
ACTION_STAKING = 10
ACTION_DOMAIN_MINT = 11
ACTION_NFT_MINT = 12
ACTION_TIP = 13
ACTION_BALANCES = 14

ACTION_NAMES = {
    ACTION_ALL: "Run all enabled tasks",
    ACTION_SIGN_IN: "Daily sign-in",
    ACTION_FAUCET: "Claim faucet",
    ACTION_TRANSFERS: "Random transfers",
    ACTION_SELF_TRANSFER: "Self transfer + verify",
    ACTION_WRAP: "Wrap PHRS",
    ACTION_UNWRAP: "Unwrap WPHRS",
    ACTION_SWAPS: "Swaps WPHRS/USDT",
    ACTION_LIQUIDITY: "Add liquidity USDT/WPHRS",
    ACTION_STAKING: "AutoStaking deposit",
    ACTION_DOMAIN_MINT: "Register .phrs domain",
    ACTION_NFT_MINT: "Mint AquaFlux NFT",
    ACTION_TIP: "PrimusLabs tip",
    ACTION_BALANCES: "Check balances & points",
}

# actions that can run without a REST session
CHAIN_ONLY_ACTIONS = {ACTION_TRANSFERS, ACTION_WRAP, ACTION_UNWRAP, ACTION_STAKING, ACTION_DOMAIN_MINT,
                      ACTION_NFT_MINT, ACTION_TIP}


class PharosBot:
    def __init__(self, db: Database, settings: Dict[str, Any]):
        self.db = db
        self.settings = settings

        bot_settings = settings.get('SETTINGS', {})
        self.threads = bot_settings.get('THREADS', 1)
        self.attempts = bot_settings.get('ATTEMPTS', 3)
        self.retry_delay = bot_settings.get('RETRY_DELAY', 5)
        self.api_retries = bot_settings.get('API_RETRIES', 5)
        self.init_pause = bot_settings.get('RANDOM_INITIALIZATION_PAUSE', [1, 3])
        self.pause_between_accounts = bot_settings.get('RANDOM_PAUSE_BETWEEN_ACCOUNTS', [3, 10])
        self.pause_between_actions = bot_settings.get('PAUSE_BETWEEN_ACTIONS', 1)
        self.invite_code = bot_settings.get('INVITE_CODE') or None

        self.enabled_tasks = settings.get('TASKS', {})

        captcha_config = settings.get('CAPTCHA', {})
        self.captcha_solver = CaptchaSolver(
            provider=captcha_config.get('PROVIDER', 'capsolver'),
            api_key=captcha_config.get('API_KEY', ''),
            enabled=captcha_config.get('ENABLED', False),
        )

        self.nonces = NonceManager()
        self.issuer = TransactionIssuer(self.nonces, max_attempts=self.attempts, retry_delay=self.retry_delay)
        self.providers = ProviderCache()
        self.proxies = ProxyPool()
        self.use_proxy = False
        self.api: Optional[PharosAPI] = None
        self.tasks: Optional[PharosTasks] = None
        self.task_config = TaskConfig.from_settings(settings)

    def setup(self, use_proxy: bool, rotate_proxy: bool, target_wallets: Optional[List[str]] = None):
        self.use_proxy = use_proxy and bool(self.proxies)
        self.api = PharosAPI(self.db, self.proxies, use_proxy=self.use_proxy, rotate_proxy=rotate_proxy,
                             retries=self.api_retries, retry_delay=self.retry_delay, invite_code=self.invite_code)
        partner_options = dict(use_proxy=self.use_proxy, rotate_proxy=rotate_proxy, retries=self.api_retries,
                               retry_delay=self.retry_delay)
        self.tasks = PharosTasks(self.issuer, self.api, self.db, config=self.task_config,
                                 captcha=self.captcha_solver, target_wallets=target_wallets,
                                 staking_api=AutoStakingAPI(self.proxies, **partner_options),
                                 aquaflux_api=AquaFluxAPI(self.proxies, **partner_options))

    def chain_for(self, account: WalletAccount) -> ChainClient:
        proxy = self.proxies.assign(account.address) if self.use_proxy else None
        return ChainClient(self.providers.get(proxy))

    async def process_user_login(self, account: WalletAccount) -> bool:
        logger.info("🔐 Logging in...", account.wallet_id)
        if await self.api.ensure_token(account):
            return True

        logger.warning("⚠️ Initial login failed, trying one more time...", account.wallet_id)
        await asyncio.sleep(5)
        if self.use_proxy:
            new_proxy = self.proxies.rotate(account.address)
            self.db.set_proxy(account.address, new_proxy)
            logger.info(f"🔄 Using new proxy: {mask_proxy(new_proxy)}", account.wallet_id)
        return await self.api.login(account)

    async def show_profile(self, account: WalletAccount):
        user = await self.api.profile(account)
        if not user:
            logger.warning("⚠️ Failed to fetch profile", account.wallet_id)
            return
        logger.info(
            f"💎 Points: {user.get('TotalPoints', 0)} "
            f"(tasks {user.get('TaskPoints', 0)}, invites {user.get('InvitePoints', 0)})",
            account.wallet_id
        )
        done = [task for task in await self.api.user_tasks(account) if task.get("CompleteTimes")]
        if done:
            summary = ", ".join(f"{task.get('TaskId')}x{task.get('CompleteTimes')}" for task in done)
            logger.info(f"📋 Completed tasks: {summary}", account.wallet_id)

    async def between_actions(self):
        delay = get_random_delay(self.pause_between_actions)
        if delay > 0:
            await asyncio.sleep(delay)

    async def run_all(self, account: WalletAccount, chain: ChainClient):
        steps = [
            ('SIGN_IN', lambda: self.tasks.daily_sign_in(account)),
            ('FAUCET', lambda: self.tasks.claim_faucet(account)),
            ('TRANSFERS', lambda: self.tasks.transfers(account, chain)),
            ('SELF_TRANSFER', lambda: self.tasks.self_transfer(account, chain)),
            ('WRAP', lambda: self.tasks.wrap(account, chain)),
            ('UNWRAP', lambda: self.tasks.unwrap(account, chain)),
            ('SWAPS', lambda: self.tasks.swaps(account, chain)),
            ('LIQUIDITY', lambda: self.tasks.liquidity(account, chain)),
            ('STAKING', lambda: self.tasks.staking(account, chain)),
            ('DOMAIN_MINT', lambda: self.tasks.domain_mints(account, chain)),
            ('NFT_MINT', lambda: self.tasks.nft_mints(account, chain)),
            ('TIP', lambda: self.tasks.tips(account, chain)),
        ]
        for name, step in steps:
            if not self.enabled_tasks.get(name, True):
                logger.debug(f"Task {name} disabled, skipping", account.wallet_id)
                continue
            await step()
            await self.between_actions()

        await self.tasks.show_balances(account, chain)
        await self.show_profile(account)

    async def process_account(self, entry: ScheduledItem, action_type: int, total: int) -> bool:
        """Process single account"""
        account: WalletAccount = entry.item
        account.index = entry.index
        account.thread = entry.thread
        wallet = account.wallet_id

        if self.use_proxy and entry.proxy:
            self.proxies.pin(account.address, entry.proxy)
        account.proxy = self.proxies.assign(account.address) if self.use_proxy else None
        account.db_id = self.db.add_account(account.address, account.proxy)

        logger.separator()
        logger.account(entry.index, total, account.address, wallet)
        if self.use_proxy:
            logger.info(f"🌐 Proxy: {mask_proxy(account.proxy)}", wallet)

        init_delay = get_random_delay(self.init_pause)
        logger.debug(f"⏳ Initial pause: {init_delay}s", wallet)
        await asyncio.sleep(init_delay)

        chain = self.chain_for(account)

        if action_type not in CHAIN_ONLY_ACTIONS:
            if not await self.process_user_login(account):
                logger.error("❌ Login failed after all attempts, skipping account", wallet)
                self.db.add_statistic(account.db_id, "login", "failed")
                return False
            chain = self.chain_for(account)

        if action_type == ACTION_ALL:
            await self.run_all(account, chain)
        elif action_type == ACTION_SIGN_IN:
            await self.tasks.daily_sign_in(account)
        elif action_type == ACTION_FAUCET:
            await self.tasks.claim_faucet(account)
        elif action_type == ACTION_TRANSFERS:
            await self.tasks.transfers(account, chain)
        elif action_type == ACTION_SELF_TRANSFER:
            await self.tasks.self_transfer(account, chain)
        elif action_type == ACTION_WRAP:
            await self.tasks.wrap(account, chain)
        elif action_type == ACTION_UNWRAP:
            await self.tasks.unwrap(account, chain)
        elif action_type == ACTION_SWAPS:
            await self.tasks.swaps(account, chain)
        elif action_type == ACTION_LIQUIDITY:
            await self.tasks.liquidity(account, chain)
        elif action_type == ACTION_STAKING:
            await self.tasks.staking(account, chain)
        elif action_type == ACTION_DOMAIN_MINT:
            await self.tasks.domain_mints(account, chain)
        elif action_type == ACTION_NFT_MINT:
            await self.tasks.nft_mints(account, chain)
        elif action_type == ACTION_TIP:
            await self.tasks.tips(account, chain)
        elif action_type == ACTION_BALANCES:
            await self.tasks.show_balances(account, chain)
            await self.show_profile(account)
        else:
            logger.error(f"Unknown action: {action_type}", wallet)
            return False

        logger.success("✅ Account finished", wallet)
        return True

    def load_accounts(self) -> List[WalletAccount]:
        try:
            keys = load_private_keys()
        except FileNotFoundError as e:
            logger.error(f"❌ {e}")
            return []
        return [WalletAccount.from_private_key(key) for key in keys]

    async def run(self, action_type: int, use_proxy: bool, rotate_proxy: bool):
        """Main run method"""
        logger.separator()
        logger.info("📂 Loading private keys from data/private_keys.txt...")
        accounts = self.load_accounts()
        if not accounts:
            logger.error("❌ ERROR: No valid private keys found in data/private_keys.txt!")
            logger.separator()
            sys.exit(1)

        accounts = filter_accounts(accounts, self.settings)
        if not accounts:
            logger.error("❌ No accounts to process after filtering!")
            return

        logger.info(f"✅ Total accounts to process: {len(accounts)}")
        logger.info(f"🔄 Using {self.threads} thread(s)")

        target_wallets = load_target_wallets()
        if target_wallets:
            logger.info(f"🎯 Loaded {len(target_wallets)} target wallets")
        elif action_type in (ACTION_ALL, ACTION_TRANSFERS):
            logger.warning("No target wallets in data/wallets.txt, transfers go to fresh random addresses")

        if use_proxy:
            self.proxies = ProxyPool(load_proxies())
            if not self.proxies:
                logger.warning("No proxies loaded")
            else:
                logger.info(f"🔄 Loaded {len(self.proxies)} proxies")

        self.setup(use_proxy, rotate_proxy, target_wallets)
        logger.info(f"▶️  Action: {ACTION_NAMES.get(action_type, action_type)}")

        runner = BatchRunner(threads=self.threads, delay_between_accounts=self.pause_between_accounts)
        results = await runner.run(
            accounts,
            lambda entry: self.process_account(entry, action_type, len(accounts)),
            proxies=self.proxies.proxies if self.use_proxy else None,
        )

        logger.separator()
        done = sum(1 for result in results if result)
        logger.success(f"All accounts processed! {done}/{len(accounts)} finished")

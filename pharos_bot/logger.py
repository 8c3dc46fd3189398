import os
from datetime import datetime
from typing import Optional
from colorama import Fore, Style, init
import pytz

init(autoreset=True)

DEFAULT_TIMEZONE = 'Asia/Jakarta'

_COLOR_CODES = [Fore.CYAN, Fore.GREEN, Fore.RED, Fore.YELLOW,
                Fore.BLUE, Fore.MAGENTA, Fore.WHITE, Style.BRIGHT, Style.RESET_ALL]


class Logger:
    def __init__(self, log_to_file: bool = True, log_dir: str = "logs", timezone: str = DEFAULT_TIMEZONE):
        self.log_to_file = log_to_file
        self.log_dir = log_dir
        self.timezone = pytz.timezone(timezone)
        self.log_file = None

        if log_to_file:
            os.makedirs(log_dir, exist_ok=True)
            self.log_file = os.path.join(
                log_dir,
                f"bot_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
            )

    def set_timezone(self, timezone: str):
        self.timezone = pytz.timezone(timezone)

    def _get_timestamp(self) -> str:
        return datetime.now().astimezone(self.timezone).strftime('%Y-%m-%d %X %Z')

    @staticmethod
    def _with_wallet(message: str, wallet: Optional[str]) -> str:
        return f"[{wallet}] {message}" if wallet else message

    def _write_to_file(self, message: str):
        if self.log_to_file and self.log_file:
            with open(self.log_file, 'a', encoding='utf-8') as f:
                clean_message = message
                for code in _COLOR_CODES:
                    clean_message = clean_message.replace(code, '')
                f.write(f"{self._get_timestamp()} | {clean_message}\n")

    def _emit(self, tag: str, color: str, message: str, wallet: Optional[str] = None):
        message = self._with_wallet(message, wallet)
        log_msg = (
            f"{Fore.CYAN}{self._get_timestamp()}{Style.RESET_ALL} "
            f"{color + Style.BRIGHT}[{tag}]{Style.RESET_ALL} "
            f"{Fore.WHITE}{message}{Style.RESET_ALL}"
        )
        print(log_msg, flush=True)
        self._write_to_file(f"[{tag}] {message}")

    def info(self, message: str, wallet: Optional[str] = None):
        self._emit("INFO", Fore.CYAN, message, wallet)

    def success(self, message: str, wallet: Optional[str] = None):
        self._emit("SUCCESS", Fore.GREEN, message, wallet)

    def error(self, message: str, wallet: Optional[str] = None):
        self._emit("ERROR", Fore.RED, message, wallet)

    def warning(self, message: str, wallet: Optional[str] = None):
        self._emit("WARNING", Fore.YELLOW, message, wallet)

    def debug(self, message: str, wallet: Optional[str] = None):
        self._emit("DEBUG", Fore.MAGENTA, message, wallet)

    def action(self, action_name: str, details: str = "", wallet: Optional[str] = None):
        self._emit(action_name, Fore.BLUE, details, wallet)

    def account(self, account_num: int, total: int, address: str, wallet: Optional[str] = None):
        separator = "=" * 25
        label = f"Account {account_num}/{total}"
        if wallet:
            label = f"{label} ({wallet})"
        log_msg = (
            f"\n{Fore.CYAN + Style.BRIGHT}{separator}[ "
            f"{Fore.WHITE + Style.BRIGHT}{label}{Fore.CYAN + Style.BRIGHT} "
            f"]{separator}{Style.RESET_ALL}\n"
            f"{Fore.CYAN + Style.BRIGHT}Address:{Style.RESET_ALL} "
            f"{Fore.BLUE + Style.BRIGHT}{address[:8]}...{address[-6:]}{Style.RESET_ALL}"
        )
        print(log_msg, flush=True)
        self._write_to_file(f"\n{'='*70}\n{label} | Address: {address}")

    def separator(self):
        sep = "=" * 70
        print(f"{Fore.CYAN + Style.BRIGHT}{sep}{Style.RESET_ALL}")
        self._write_to_file(sep)

    @staticmethod
    def clear_terminal():
        os.system('cls' if os.name == 'nt' else 'clear')

    @staticmethod
    def print_banner():
        banner = f"""
{Fore.BLUE + Style.BRIGHT}╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║   {Fore.CYAN + Style.BRIGHT}██████╗ ██╗  ██╗ █████╗ ██████╗  ██████╗ ███████╗{Fore.BLUE}           ║
║   {Fore.CYAN + Style.BRIGHT}██╔══██╗██║  ██║██╔══██╗██╔══██╗██╔═══██╗██╔════╝{Fore.BLUE}           ║
║   {Fore.CYAN + Style.BRIGHT}██████╔╝███████║███████║██████╔╝██║   ██║███████╗{Fore.BLUE}           ║
║   {Fore.CYAN + Style.BRIGHT}██╔═══╝ ██╔══██║██╔══██║██╔══██╗██║   ██║╚════██║{Fore.BLUE}           ║
║   {Fore.CYAN + Style.BRIGHT}██║     ██║  ██║██║  ██║██║  ██║╚██████╔╝███████║{Fore.BLUE}           ║
║   {Fore.CYAN + Style.BRIGHT}╚═╝     ╚═╝  ╚═╝╚═╝  ╚═╝╚═╝  ╚═╝ ╚═════╝ ╚══════╝{Fore.BLUE}           ║
║                                                               ║
║              {Fore.WHITE + Style.BRIGHT}PHAROS TESTNET BOT v1.0{Fore.BLUE}                          ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝{Style.RESET_ALL}
"""
        print(banner)


logger = Logger()

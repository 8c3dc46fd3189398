import asyncio
import sys
import traceback
from colorama import Fore, Style, init
from pharos_bot.bot import ACTION_BALANCES, ACTION_NAMES, PharosBot
from pharos_bot.database import Database
from pharos_bot.logger import logger
from pharos_bot.utils import create_data_directory, load_settings, mask_proxy, validate_settings

init(autoreset=True)


class CLI:

    def __init__(self):
        create_data_directory()

        try:
            self.settings = load_settings()
            validate_settings(self.settings)
        except Exception as e:
            logger.error(f"Failed to load settings: {e}")
            sys.exit(1)

        timezone = self.settings['SETTINGS'].get('TIMEZONE')
        if timezone:
            logger.set_timezone(timezone)

        self.db = Database(self.settings['SETTINGS'].get('DATABASE', 'database.sqlite3'))

    def print_menu(self):

        logger.clear_terminal()
        logger.print_banner()

        menu = f"""
    {Fore.CYAN + Style.BRIGHT}╔══════════════════════════════════════════════╗
    ║              MAIN MENU                       ║
    ╠══════════════════════════════════════════════╣
    ║                                              ║
    ║  {Fore.GREEN}1.{Fore.CYAN} Run Bot (Farm Tasks)                     {Fore.CYAN}║
    ║  {Fore.GREEN}2.{Fore.CYAN} Check Balances & Points                  {Fore.CYAN}║
    ║  {Fore.GREEN}3.{Fore.CYAN} View Statistics                          {Fore.CYAN}║
    ║  {Fore.GREEN}4.{Fore.CYAN} Export Statistics                        {Fore.CYAN}║
    ║  {Fore.GREEN}5.{Fore.CYAN} Remove All Proxies                       {Fore.CYAN}║
    ║  {Fore.GREEN}6.{Fore.CYAN} Database Info                            {Fore.CYAN}║
    ║  {Fore.GREEN}7.{Fore.CYAN} Settings                                 {Fore.CYAN}║
    ║  {Fore.GREEN}0.{Fore.CYAN} Exit                                     {Fore.CYAN}║
    ║                                              ║
    ╚══════════════════════════════════════════════╝{Style.RESET_ALL}
        """
        print(menu)

    def print_bot_menu(self):
        lines = []
        for number, name in ACTION_NAMES.items():
            if number == ACTION_BALANCES:
                continue
            lines.append(f"    ║  {Fore.GREEN}{str(number) + '.':<3}{Fore.CYAN} {name:<39}{Fore.CYAN}║")
        body = "\n".join(lines)

        menu = f"""
    {Fore.CYAN + Style.BRIGHT}╔══════════════════════════════════════════════╗
    ║           BOT ACTION MENU                    ║
    ╠══════════════════════════════════════════════╣
    ║                                              ║
{body}
    ║  {Fore.GREEN}0.{Fore.CYAN} Back to Main Menu                        {Fore.CYAN}║
    ║                                              ║
    ╚══════════════════════════════════════════════╝{Style.RESET_ALL}
        """
        print(menu)

    def get_input(self, prompt: str) -> str:
        return input(f"{Fore.YELLOW + Style.BRIGHT}{prompt}{Style.RESET_ALL}").strip()

    def get_yes_no(self, prompt: str) -> bool:
        while True:
            response = self.get_input(f"{prompt} (y/n): ").lower()
            if response in ['y', 'yes']:
                return True
            elif response in ['n', 'no']:
                return False
            else:
                logger.error("Invalid input. Please enter 'y' or 'n'")

    def get_number(self, prompt: str, min_val: int = 0) -> int:
        while True:
            try:
                value = int(self.get_input(prompt))
                if value >= min_val:
                    return value
                else:
                    logger.error(f"Value must be >= {min_val}")
            except ValueError:
                logger.error("Invalid input. Please enter a number")

    async def start_bot(self, action_type: int):
        try:
            use_proxy = self.get_yes_no("Use proxies?")
            rotate_proxy = False

            if use_proxy:
                rotate_proxy = self.get_yes_no("Rotate invalid proxies?")

            bot = PharosBot(self.db, self.settings)
            await bot.run(action_type, use_proxy, rotate_proxy)

        except Exception as e:
            logger.error(f"Error running bot: {e}")
            traceback.print_exc()

        self.get_input("\nPress Enter to continue...")

    async def run_bot(self):
        self.print_bot_menu()
        choice = self.get_input("Select option: ")

        if choice == '0':
            return

        if not choice.isdigit() or int(choice) not in ACTION_NAMES or int(choice) == ACTION_BALANCES:
            logger.error("Invalid option. Please try again.")
            self.get_input("\nPress Enter to continue...")
            return

        await self.start_bot(int(choice))

    async def check_balances(self):
        logger.clear_terminal()
        logger.print_banner()
        await self.start_bot(ACTION_BALANCES)

    def view_statistics(self):
        logger.clear_terminal()
        logger.print_banner()

        logger.info("Statistics")
        logger.separator()

        stats = self.db.get_success_rate()
        logger.info(f"Total Actions: {stats['total']}")
        logger.success(f"Successful: {stats['success']}")
        logger.error(f"Failed: {stats['failed']}")
        logger.info(f"Success Rate: {stats['success_rate']:.2f}%")

        logger.separator()

        recent = self.db.get_statistics(limit=10)
        if recent:
            logger.info("Recent Actions (Last 10):")
            for action in recent:
                status_color = Fore.GREEN if action[2] == 'success' else Fore.RED
                address = action[0] or "-"
                print(f"  {status_color}{action[1]}: {action[2]}{Style.RESET_ALL} "
                      f"- {address[:10]} - {action[5]}")

        self.get_input("\nPress Enter to continue...")

    def export_statistics(self):
        logger.clear_terminal()
        logger.print_banner()

        filename = self.get_input("Enter filename (default: statistics_export.json): ")
        if not filename:
            filename = "statistics_export.json"

        try:
            count = self.db.export_statistics(filename)
            logger.success(f"Exported {count} records to {filename}")
        except Exception as e:
            logger.error(f"Failed to export statistics: {e}")

        self.get_input("\nPress Enter to continue...")

    def remove_all_proxies(self):
        logger.clear_terminal()
        logger.print_banner()

        confirm = self.get_yes_no("Are you sure you want to remove all proxies from all accounts?")

        if confirm:
            try:
                count = self.db.remove_all_proxies()
                logger.success(f"Removed proxies from {count} accounts")
            except Exception as e:
                logger.error(f"Failed to remove proxies: {e}")
        else:
            logger.info("Operation cancelled")

        self.get_input("\nPress Enter to continue...")

    def database_info(self):
        logger.clear_terminal()
        logger.print_banner()

        logger.info("Database Information")
        logger.separator()

        count = self.db.get_account_count()
        logger.info(f"Total Accounts: {count}")
        for row in self.db.get_all_accounts():
            proxy = mask_proxy(row["proxy"]) if row["proxy"] else "no proxy"
            token = "token cached" if row["access_token"] else "no token"
            logger.info(f"  #{row['id']} {row['address']} | {proxy} | {token}")

        stats = self.db.get_success_rate()
        logger.info(f"Total Actions: {stats['total']}")

        if stats['total'] and self.get_yes_no("Remove statistics older than 30 days?"):
            deleted = self.db.cleanup_old_stats(days=30)
            logger.success(f"Removed {deleted} old records")

        self.get_input("\nPress Enter to continue...")

    def show_settings(self):
        logger.clear_terminal()
        logger.print_banner()

        logger.info("Current Settings")
        logger.separator()

        settings = self.settings.get('SETTINGS', {})
        logger.info(f"Threads: {settings.get('THREADS', 1)}")
        logger.info(f"Attempts: {settings.get('ATTEMPTS', 3)}")
        logger.info(f"Retry Delay: {settings.get('RETRY_DELAY', 5)}s")
        logger.info(f"Shuffle Wallets: {settings.get('SHUFFLE_WALLETS', False)}")

        transactions = self.settings.get('TRANSACTIONS', {})
        logger.info(f"Transfers: {transactions.get('TRANSFER_COUNT')} x {transactions.get('TRANSFER_AMOUNT')} PHRS")
        logger.info(f"Swaps: {transactions.get('SWAP_COUNT')}")
        logger.info(f"Liquidity: {transactions.get('LIQUIDITY_COUNT')}")

        tasks = self.settings.get('TASKS', {})
        enabled = [name for name, value in tasks.items() if value]
        logger.info(f"Enabled Tasks: {', '.join(enabled) if enabled else 'none'}")

        captcha = self.settings.get('CAPTCHA', {})
        logger.info(f"Captcha: {captcha.get('PROVIDER', 'N/A')} "
                    f"({'enabled' if captcha.get('ENABLED') else 'disabled'})")

        self.get_input("\nPress Enter to continue...")

    async def main_loop(self):
        while True:
            self.print_menu()
            choice = self.get_input("Select option: ")

            if choice == '1':
                await self.run_bot()
            elif choice == '2':
                await self.check_balances()
            elif choice == '3':
                self.view_statistics()
            elif choice == '4':
                self.export_statistics()
            elif choice == '5':
                self.remove_all_proxies()
            elif choice == '6':
                self.database_info()
            elif choice == '7':
                self.show_settings()
            elif choice == '0':
                logger.info("Goodbye!")
                break
            else:
                logger.error("Invalid option. Please try again.")
                self.get_input("\nPress Enter to continue...")


def main():
    try:
        cli = CLI()
        asyncio.run(cli.main_loop())
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user. Exiting...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()

__version__ = "1.0.0"

from pharos_bot.bot import PharosBot
from pharos_bot.database import Database
from pharos_bot.logger import logger
from pharos_bot.captcha import CaptchaSolver
from pharos_bot.transaction import TransactionIssuer, TxResult
from pharos_bot import utils

__all__ = [
    'PharosBot',
    'Database',
    'logger',
    'CaptchaSolver',
    'TransactionIssuer',
    'TxResult',
    'utils'
]

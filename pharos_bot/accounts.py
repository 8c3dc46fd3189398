from dataclasses import dataclass, field
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_hex

from pharos_bot.utils import format_address


@dataclass
class WalletAccount:
    private_key: str
    address: str
    index: int = 1
    thread: int = 1
    proxy: Optional[str] = None
    auth_token: Optional[str] = field(default=None, repr=False)
    db_id: Optional[int] = None

    @classmethod
    def from_private_key(cls, private_key: str, index: int = 1, thread: int = 1,
                         proxy: Optional[str] = None) -> "WalletAccount":
        address = Account.from_key(private_key).address
        return cls(private_key=private_key, address=address, index=index, thread=thread, proxy=proxy)

    @property
    def wallet_id(self) -> str:
        return f"T{self.thread}-W{self.index}"

    @property
    def short_address(self) -> str:
        return format_address(self.address)

    def sign_message(self, message: str) -> str:
        signed = Account.sign_message(encode_defunct(text=message), private_key=self.private_key)
        return to_hex(signed.signature)

from typing import Any, Callable, Dict

from eth_account import Account


class WalletSigner:
    """Signing capability for one custodial wallet."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"WalletSigner({self.address})"


# Identity provider hook: user id -> signing capability
SignerProvider = Callable[[str], WalletSigner]


def env_signer_provider(private_key: str) -> SignerProvider:
    signer = WalletSigner(private_key)
    return lambda user_id: signer


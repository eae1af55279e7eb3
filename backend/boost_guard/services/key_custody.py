"""
Key custody: resolves a guard address to an in-memory signer
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List

from eth_account import Account
from eth_account.signers.local import LocalAccount

from boost_guard.core.errors import SigningUnavailable
from boost_guard.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class KeyCustody(ABC):
    """Capability interface for guard signing keys"""

    @abstractmethod
    async def get_signer(self, guard: str) -> LocalAccount:
        """Signer for `guard`, or SigningUnavailable"""

    @abstractmethod
    def guards(self) -> List[str]:
        """Guard addresses this custody can sign for"""


class LocalKeyCustody(KeyCustody):
    """
    Holds guard keys in process memory, indexed by derived address.

    Keys come from configuration (GUARD_PRIVATE_KEYS / PRIVATE_KEY) and are
    never written anywhere by this service.
    """

    def __init__(self, private_keys: Iterable[str] = ()):
        self._accounts: Dict[str, LocalAccount] = {}
        for private_key in private_keys:
            self.add_key(private_key)

    @classmethod
    def from_settings(cls, settings) -> "LocalKeyCustody":
        custody = cls(settings.guard_private_key_list)
        if not custody.guards():
            logger.warning("No guard keys configured: every issuance will fail with signing_unavailable")
        return custody

    def add_key(self, private_key: str) -> str:
        try:
            account = Account.from_key(private_key)
        except Exception:
            # The key itself must never reach the logs or the traceback
            raise ValueError("invalid guard private key") from None
        guard = account.address.lower()
        self._accounts[guard] = account
        logger.info("Loaded guard key", extra={"guard": guard})
        return guard

    async def get_signer(self, guard: str) -> LocalAccount:
        account = self._accounts.get(guard.lower())
        if account is None:
            raise SigningUnavailable(
                f"no signing key available for guard {guard}",
                details={"guard": guard.lower()},
            )
        return account

    def guards(self) -> List[str]:
        return sorted(self._accounts)

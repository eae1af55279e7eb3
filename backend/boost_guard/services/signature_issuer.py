"""
Signature Issuer: EIP-712 claim authorizations signed by the boost guard
"""
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address, to_checksum_address

from boost_guard.core.config import ZERO_ADDRESS
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.models.boost import normalize_recipient
from boost_guard.services.key_custody import KeyCustody

logger = LoggingConfig.get_logger(__name__)

CLAIM_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Claim": [
        {"name": "boostId", "type": "uint256"},
        {"name": "recipient", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "guard", "type": "address"},
    ],
}

# Recipients that are not EVM addresses are signed as their canonical string
STRING_RECIPIENT_CLAIM_TYPES = {
    **CLAIM_TYPES,
    "Claim": [
        {"name": "boostId", "type": "uint256"},
        {"name": "recipient", "type": "string"},
        {"name": "amount", "type": "uint256"},
        {"name": "guard", "type": "address"},
    ],
}


def build_claim_typed_data(
    boost_id: int,
    chain_id: int,
    recipient: str,
    amount: int,
    guard: str,
    domain_name: str = "boost",
    domain_version: str = "1",
    verifying_contract: str = ZERO_ADDRESS,
) -> Dict[str, Any]:
    """Canonical typed-data document for a claim"""
    recipient = normalize_recipient(recipient)
    if is_address(recipient):
        types, recipient_value = CLAIM_TYPES, to_checksum_address(recipient)
    else:
        types, recipient_value = STRING_RECIPIENT_CLAIM_TYPES, recipient
    return {
        "types": types,
        "primaryType": "Claim",
        "domain": {
            "name": domain_name,
            "version": domain_version,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        "message": {
            "boostId": boost_id,
            "recipient": recipient_value,
            "amount": amount,
            "guard": to_checksum_address(guard),
        },
    }


def recover_signer(typed_data: Dict[str, Any], signature: str) -> str:
    """Address (lower-cased) that produced `signature` over `typed_data`"""
    signable = encode_typed_data(full_message=typed_data)
    return Account.recover_message(signable, signature=signature).lower()


class SignatureIssuer:
    """Signs claim authorizations with the key held for the boost guard"""

    def __init__(
        self,
        key_custody: KeyCustody,
        domain_name: str = "boost",
        domain_version: str = "1",
        verifying_contract: str = ZERO_ADDRESS,
    ):
        self.key_custody = key_custody
        self.domain_name = domain_name
        self.domain_version = domain_version
        self.verifying_contract = verifying_contract

    @classmethod
    def from_settings(cls, key_custody: KeyCustody, settings) -> "SignatureIssuer":
        return cls(
            key_custody,
            domain_name=settings.eip712_domain_name,
            domain_version=settings.eip712_domain_version,
            verifying_contract=settings.boost_contract_address,
        )

    def typed_data(self, boost_id: int, chain_id: int, recipient: str, amount: int, guard: str) -> Dict[str, Any]:
        return build_claim_typed_data(
            boost_id, chain_id, recipient, amount, guard,
            domain_name=self.domain_name,
            domain_version=self.domain_version,
            verifying_contract=self.verifying_contract,
        )

    async def sign(self, boost_id: int, chain_id: int, recipient: str, amount: int, guard: str) -> Optional[str]:
        """
        Sign `(boostId, recipient, chainId, amount, guard)`

        Returns:
            0x-prefixed 65-byte signature, or None when `amount` is zero

        Raises:
            SigningUnavailable: no key is held for `guard`
        """
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if amount == 0:
            return None

        signer = await self.key_custody.get_signer(guard)
        signable = encode_typed_data(full_message=self.typed_data(boost_id, chain_id, recipient, amount, guard))
        signed = signer.sign_message(signable)
        logger.debug(
            "Signed claim",
            extra={"boost_id": boost_id, "chain_id": chain_id, "recipient": recipient, "amount": str(amount)},
        )
        return "0x" + bytes(signed.signature).hex()

    def verify(self, boost_id: int, chain_id: int, recipient: str, amount: int, guard: str, signature: str) -> bool:
        """Whether `signature` authorizes the claim and was produced by `guard`"""
        typed = self.typed_data(boost_id, chain_id, recipient, amount, guard)
        return recover_signer(typed, signature) == guard.lower()

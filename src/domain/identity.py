"""
Identity link registry - Binding external addresses to accounts.

An external address (e.g. an Ethereum wallet) is bound to exactly one
account through a Signature. The first time an address is seen an account
is created for it implicitly.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .exceptions import NotFound
from .models import ETHEREUM_ADDRESS, Person, Signature
from .ports import SignatureRepository

logger = logging.getLogger(__name__)


@dataclass
class IdentityLinkRegistry:
    """Resolves addresses to accounts and creates bindings on first sight."""

    signatures: SignatureRepository

    def resolve_account(self, address: str) -> Person:
        """
        Resolve an Ethereum address to the account bound to it.

        Args:
            address: Address in any letter case

        Returns:
            The bound account merged with the matched address

        Raises:
            NotFound: If no signature matches the address
        """
        signature = self.signatures.find_one(ETHEREUM_ADDRESS, address.lower())
        if signature is None:
            raise NotFound(address.lower())
        return Person(account=signature.account, address=signature.value)

    def resolve_accounts(self, addresses: Iterable[str]) -> list[Person]:
        """
        Batch form of resolve_account.

        Addresses without a binding are dropped from the result rather than
        raising, so the result may be shorter than the input.
        """
        values = [address.lower() for address in addresses]
        return [
            Person(account=signature.account, address=signature.value)
            for signature in self.signatures.find(ETHEREUM_ADDRESS, values)
        ]

    def ensure_signature(self, type_: str, value: str) -> Signature:
        """
        Return the binding for (type, value), creating it if absent.

        A new binding comes with a new account named ``"{type}:{value}"``.
        Repeated calls with the same arguments return the same binding.
        """
        signature = self.signatures.find_one(type_, value)
        if signature is not None:
            return signature

        signature = self.signatures.create_with_account(type_, value, f"{type_}:{value}")
        logger.info("Bound %s %s to account %s", type_, value, signature.account_id)
        return signature

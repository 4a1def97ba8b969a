"""Account service - Profile reads and notification preferences."""

from dataclasses import dataclass

from .exceptions import NotFound
from .models import Account, NotificationToggle, Profile
from .ports import AccountLock, AccountRepository, VerificationRequestRepository


@dataclass
class AccountService:
    accounts: AccountRepository
    requests: VerificationRequestRepository
    locks: AccountLock

    def select_profile(self, account: Account) -> Profile:
        """The account together with all of its verification requests."""
        return Profile(account=account, requests=list(self.requests.find_for_account(account.id)))

    def update_notification_preference(
        self, account: Account, toggle: NotificationToggle
    ) -> Account:
        """
        Set ``notifications[domain][type][name]`` and persist the account.

        Domain, type and name are written as given. The toggle is applied to
        the stored account read under the lock, not to the caller's copy, so
        concurrent toggles on one account are all kept.

        Raises:
            NotFound: The account no longer exists
        """
        with self.locks.hold(account.id):
            current = self.accounts.get(account.id)
            if current is None:
                raise NotFound(f"Account {account.id} not found")
            node = current.notifications
            for key in (toggle.domain, toggle.type):
                child = node.get(key)
                if not isinstance(child, dict):
                    child = node[key] = {}
                node = child
            node[toggle.name] = toggle.value
            self.accounts.save(current)
        return current

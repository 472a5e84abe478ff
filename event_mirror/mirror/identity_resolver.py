"""
Identity provisioning for addresses observed on chain.
"""
from typing import Optional

from event_mirror.mirror.types import MembershipRole
from event_mirror.storage.base import IdentityStore, IdentityStoreError
from event_mirror.utils.logger import logger


class IdentityResolver:
    """Ensures a local identity exists for an address and tags its membership.

    The membership role is overwritten with the role seen in the latest event;
    collectives accumulate, so an address observed in several collectives
    keeps all of them.
    """

    def __init__(self, identity_store: IdentityStore):
        self.identity_store = identity_store

    async def resolve(self, address: str, role: MembershipRole, collective_id: str) -> str:
        """Return the identity id for ``address``, creating it if needed.

        Raises:
            IdentityStoreError: If the identity store fails
        """
        identity = await self.identity_store.find_or_create(address.lower())

        collectives = list(identity.profile.get("collectives") or [])
        if collective_id not in collectives:
            collectives.append(collective_id)
        patch = {"membership": role.value, "collectives": collectives}

        if any(identity.profile.get(key) != value for key, value in patch.items()):
            await self.identity_store.update_profile(identity.id, patch)
        return identity.id

    async def try_resolve(self, address: str, role: MembershipRole, collective_id: str) -> Optional[str]:
        """Like ``resolve`` but logs store failures and returns None."""
        try:
            return await self.resolve(address, role, collective_id)
        except IdentityStoreError as e:
            logger.error(f"[identity] Could not resolve {address}: {e}")
            return None

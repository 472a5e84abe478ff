from typing import Any, Optional

from web3 import Web3


def is_address(value: Any) -> bool:
    """True for a string that is a syntactically valid EVM address.

    Mixed-case strings must carry a valid EIP-55 checksum; all-lowercase and
    all-uppercase hex are accepted as is.
    """
    if not isinstance(value, str):
        return False
    try:
        return Web3.is_address(value)
    except (TypeError, ValueError):
        return False


def normalize_address(value: Any) -> Optional[str]:
    """Checksum form of ``value``, or None if it is not an address."""
    if not is_address(value):
        return None
    return Web3.to_checksum_address(value)

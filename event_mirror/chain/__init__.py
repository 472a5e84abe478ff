"""Chain access: address helpers and the web3.py connector."""

from event_mirror.chain.addresses import is_address, normalize_address
from event_mirror.chain.connector import ChainConnector, ChainConnectorError

__all__ = [
    "ChainConnector",
    "ChainConnectorError",
    "is_address",
    "normalize_address",
]

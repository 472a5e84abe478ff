"""
web3.py connector for reading contract events, block metadata and contract
state from an Ethereum JSON-RPC node.

The ``Web3`` handle is created lazily on first use and owned by the connector
instance; the process builds one connector and injects it wherever chain
access is needed. web3.py's HTTP provider is blocking, so every call is
pushed to a worker thread and awaited.
"""
import asyncio
import json
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Union

from web3 import Web3

from event_mirror.chain.addresses import normalize_address
from event_mirror.mirror.types import ChainEvent, ContractDescriptor
from event_mirror.utils.logger import logger


class ChainConnectorError(Exception):
    """Raised when the node cannot answer a request."""

    def __init__(self, message: str, block_number: Optional[int] = None):
        self.message = message
        self.block_number = block_number
        super().__init__(message)


def parse_abi(abi: Union[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Accept an ABI as a JSON string or an already decoded list."""
    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except json.JSONDecodeError as e:
            raise ChainConnectorError(f"Contract ABI is not valid JSON: {e}") from e
    if not isinstance(abi, list):
        raise ChainConnectorError("Contract ABI must be a list of entries")
    return abi


def abi_function_names(abi: Union[str, List[Dict[str, Any]]]) -> List[str]:
    return [entry.get("name") for entry in parse_abi(abi) if entry.get("type") == "function" and entry.get("name")]


def abi_event_names(abi: Union[str, List[Dict[str, Any]]]) -> List[str]:
    return [entry.get("name") for entry in parse_abi(abi) if entry.get("type") == "event" and entry.get("name")]


class ChainConnector:
    """Lazily connected access to one Ethereum node."""

    def __init__(self, provider_uri: Optional[str] = None, request_timeout: float = 30.0,
                 web3: Optional[Web3] = None, block_cache_size: int = 1024):
        self.provider_uri = provider_uri
        self.request_timeout = request_timeout
        self._web3 = web3
        self.block_cache_size = block_cache_size
        # Least recently used block first
        self._block_timestamps: "OrderedDict[int, int]" = OrderedDict()

    @property
    def web3(self) -> Web3:
        if self._web3 is None:
            if not self.provider_uri:
                raise ChainConnectorError("No WEB3_PROVIDER_URI configured")
            logger.info("[chain] Connecting to Ethereum node...")
            self._web3 = Web3(Web3.HTTPProvider(
                self.provider_uri,
                request_kwargs={"timeout": self.request_timeout},
            ))
        return self._web3

    def get_contract(self, public_address: str, abi: Union[str, List[Dict[str, Any]]]):
        """Bind a contract object for ``public_address`` with the given ABI."""
        address = normalize_address(public_address)
        if address is None:
            raise ChainConnectorError(f"Invalid contract address: {public_address}")
        logger.info(f"[chain] Getting contract ABI of {address}.")
        return self.web3.eth.contract(address=address, abi=parse_abi(abi))

    async def get_block_timestamp(self, block_number: int) -> int:
        """Unix timestamp (seconds) of ``block_number``.

        Raises:
            ChainConnectorError: If the node cannot return the block
        """
        cached = self._block_timestamps.get(block_number)
        if cached is not None:
            self._block_timestamps.move_to_end(block_number)
            return cached
        try:
            block = await asyncio.to_thread(self.web3.eth.get_block, block_number)
            timestamp = int(block["timestamp"])
        except ChainConnectorError:
            raise
        except Exception as e:
            logger.error(f"[chain] get_block({block_number}) failed: {e}")
            raise ChainConnectorError(f"Could not fetch block {block_number}: {e}", block_number) from e
        self._block_timestamps[block_number] = timestamp
        while len(self._block_timestamps) > self.block_cache_size:
            self._block_timestamps.popitem(last=False)
        return timestamp

    async def call_function(self, contract, name: str, args: Optional[List[Any]] = None) -> Any:
        """Call a read-only contract function and return its decoded result."""
        function = getattr(contract.functions, name)
        return await asyncio.to_thread(lambda: function(*(args or [])).call())

    async def get_past_events(self, descriptor: ContractDescriptor, from_block: int,
                              to_block: Union[int, str] = "latest") -> List[ChainEvent]:
        """All ABI events emitted by the contract in the block range, in chain order."""
        contract = self.get_contract(descriptor.public_address, descriptor.abi)
        logger.info(f"[chain] Getting past events for {descriptor.public_address} from block {from_block}..")

        logs = []
        for event_name in abi_event_names(descriptor.abi):
            event = getattr(contract.events, event_name)
            try:
                found = await asyncio.to_thread(event.get_logs, from_block=from_block, to_block=to_block)
            except Exception as e:
                logger.error(f"[chain] Error fetching {event_name} logs: {e}")
                raise ChainConnectorError(f"Could not fetch {event_name} logs: {e}") from e
            logs.extend(found)

        logs.sort(key=lambda log: (log["blockNumber"], log.get("logIndex") or 0))
        events = [self._to_chain_event(log) for log in logs]
        logger.info(f"[chain] Log for {descriptor.public_address} has a length of {len(events)} events.")
        return events

    @staticmethod
    def _to_chain_event(log: Dict[str, Any]) -> ChainEvent:
        return ChainEvent(
            event_name=log["event"],
            return_values=dict(log["args"]),
            block_number=int(log["blockNumber"]),
            transaction_hash=Web3.to_hex(log["transactionHash"]),
            log_index=log.get("logIndex"),
            address=log.get("address"),
        )

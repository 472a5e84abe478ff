"""
Reads the declared on-chain parameters of a tracked contract.
"""
from typing import Any, Dict

from event_mirror.chain.connector import ChainConnectorError, abi_function_names
from event_mirror.mirror.types import ContractDescriptor
from event_mirror.utils.logger import logger


def _plain(value: Any) -> Any:
    """Convert a decoded contract result into JSON-friendly values."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    return value


class StateSnapshotter:
    """
    Builds a name → value map of contract parameters.

    A parameter without a matching ABI function is skipped. A parameter whose
    call fails is logged and left out; the snapshot as a whole never fails.
    """

    def __init__(self, connector):
        self.connector = connector

    async def snapshot(self, descriptor: ContractDescriptor) -> Dict[str, Any]:
        state: Dict[str, Any] = {}
        if not descriptor.parameter:
            return state

        logger.info("[snapshot] Parsing current state of smart contract...")
        try:
            callables = set(abi_function_names(descriptor.abi))
            contract = self.connector.get_contract(descriptor.public_address, descriptor.abi)
        except ChainConnectorError as e:
            logger.error(f"[snapshot] Cannot bind {descriptor.public_address}: {e}")
            return state

        for parameter in descriptor.parameter:
            if parameter.name not in callables:
                logger.debug(f"[snapshot] No callable for parameter: {parameter.name}")
                continue
            logger.info(f"[snapshot] Asking for parameter: {parameter.name}")
            try:
                value = await self.connector.call_function(contract, parameter.name, parameter.args)
            except Exception as e:
                logger.error(f"[snapshot] Parameter {parameter.name} failed: {e}")
                continue
            state[parameter.name] = _plain(value)
        return state

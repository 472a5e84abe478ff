"""
Tracked-contract configuration loaded from YAML.

Example::

    titles:
      moloch-proposal: "Proposal {{proposalIndex}} for {{applicant}}"
    contracts:
      - collectiveId: moloch-dao
        publicAddress: "0x1fd169a4f5c59acf79d0fd5d91d1201ef1bce9f1"
        abiFile: abis/moloch.json
        startBlock: 7218566
        parameter:
          - name: periodDuration
          - name: votingPeriodLength
        map:
          - eventName: SubmitProposal
            collectionType: Contract
            rules:
              pollVoting: true
              titleTemplate: moloch-proposal
          - eventName: SubmitVote
            collectionType: Contract
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from event_mirror.mirror.types import ContractDescriptor
from event_mirror.utils.logger import logger


class MirrorConfig(BaseModel):
    contracts: List[ContractDescriptor] = Field(default_factory=list)
    titles: Dict[str, str] = Field(default_factory=dict)


def _resolve_abi_file(entry: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
    abi_file = entry.pop("abiFile", None)
    if abi_file and "abi" not in entry:
        path = Path(abi_file)
        if not path.is_absolute():
            path = base_dir / path
        with open(path, "r", encoding="utf-8") as f:
            abi = json.load(f)
        # Hardhat/Truffle artifacts wrap the ABI
        entry["abi"] = abi["abi"] if isinstance(abi, dict) and "abi" in abi else abi
    return entry


def load_mirror_config(path: Union[str, Path]) -> MirrorConfig:
    """Load and validate the tracked-contract configuration.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is invalid or does not match the schema
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Mirror configuration not found at {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration file: {e}")

    if not isinstance(raw, dict):
        raise ValueError("Mirror configuration must be a mapping")

    contracts = [_resolve_abi_file(dict(entry), path.parent) for entry in raw.get("contracts") or []]
    try:
        config = MirrorConfig(contracts=contracts, titles=raw.get("titles") or {})
    except ValidationError as e:
        raise ValueError(f"Invalid mirror configuration: {e}")

    logger.info("Loaded %d tracked contracts from %s", len(config.contracts), path)
    return config

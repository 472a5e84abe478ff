"""Tests for loading the tracked-contract YAML configuration."""
import json

import pytest

from event_mirror.config.descriptors import load_mirror_config
from event_mirror.mirror.types import CollectionType

ABI = [{"type": "event", "name": "SubmitProposal", "inputs": []}]

CONFIG = """
titles:
  moloch-proposal: "Proposal {{proposalIndex}}"
contracts:
  - collectiveId: moloch-dao
    publicAddress: "0x1fd169a4f5c59acf79d0fd5d91d1201ef1bce9f1"
    abiFile: abis/moloch.json
    startBlock: 7218566
    parameter:
      - name: periodDuration
      - name: members
        args: ["0x1fd169a4f5c59acf79d0fd5d91d1201ef1bce9f1"]
    map:
      - eventName: SubmitProposal
        collectionType: Contract
        rules:
          pollVoting: true
          titleTemplate: moloch-proposal
      - eventName: Ragequit
        collectionType: ignored
"""


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "abis").mkdir()
    return tmp_path


class TestLoadMirrorConfig:
    def test_full_configuration(self, config_dir):
        (config_dir / "abis" / "moloch.json").write_text(json.dumps(ABI))
        (config_dir / "mirror.yaml").write_text(CONFIG)

        config = load_mirror_config(config_dir / "mirror.yaml")

        assert config.titles == {"moloch-proposal": "Proposal {{proposalIndex}}"}
        contract = config.contracts[0]
        assert contract.collective_id == "moloch-dao"
        assert contract.start_block == 7218566
        assert contract.abi == ABI
        assert [p.name for p in contract.parameter] == ["periodDuration", "members"]
        assert contract.parameter[1].args == ["0x1fd169a4f5c59acf79d0fd5d91d1201ef1bce9f1"]
        assert [m.collection_type for m in contract.map] == [CollectionType.PROPOSAL, CollectionType.IGNORED]
        assert contract.map[0].rules.poll_voting is True
        assert contract.map[0].rules.title_template == "moloch-proposal"

    def test_build_artifact_abi_is_unwrapped(self, config_dir):
        (config_dir / "abis" / "moloch.json").write_text(json.dumps({"contractName": "Moloch", "abi": ABI}))
        (config_dir / "mirror.yaml").write_text(CONFIG)

        assert load_mirror_config(config_dir / "mirror.yaml").contracts[0].abi == ABI

    def test_inline_abi(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text(
            "contracts:\n"
            "  - publicAddress: '0x1fd169a4f5c59acf79d0fd5d91d1201ef1bce9f1'\n"
            "    abi: '[]'\n"
        )

        contract = load_mirror_config(path).contracts[0]

        assert contract.abi == "[]"
        assert contract.map == []
        assert contract.collective_id is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text("")

        assert load_mirror_config(path).contracts == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_mirror_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text("contracts: [unclosed")

        with pytest.raises(ValueError):
            load_mirror_config(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_mirror_config(path)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text("contracts:\n  - abi: '[]'\n")

        with pytest.raises(ValueError, match="Invalid mirror configuration"):
            load_mirror_config(path)

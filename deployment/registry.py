import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List

from ape.contracts import ContractInstance
from eth_typing import ABI
from eth_utils import to_checksum_address

from deployment.utils import _load_json

REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


def _get_abi(contract_instance: ContractInstance) -> ABI:
    abi = [
        entry.model_dump(by_alias=True, mode="json")
        for entry in contract_instance.contract_type.abi
    ]
    abi.sort(key=lambda d: (d["type"], d.get("name", "")))
    return abi


def _deployment_record(contract_instance: ContractInstance) -> Dict:
    """The address, ABI and creation transaction of a deployed contract."""
    receipt = contract_instance.receipt
    transaction = receipt.transaction
    return {
        "address": to_checksum_address(contract_instance.address),
        "abi": _get_abi(contract_instance),
        "tx_hash": receipt.txn_hash,
        "block_number": int(receipt.block_number),
        "deployer": transaction.sender,
        # wei sent to the constructor, e.g. the DAO treasury deposit
        "value": int(transaction.value or 0),
    }


def registry_from_ape_deployments(deployments: List[ContractInstance], output_filepath: Path) -> Path:
    """
    Records deployments by chain id and contract name. Records of other chains
    already in the file are kept; if the file already holds the same chain, the
    new records go to a sibling ``.unmerged.json`` so nothing is overwritten.
    """
    if not deployments:
        print("No deployments to record.")
        return output_filepath

    records = defaultdict(dict)
    for instance in sorted(deployments, key=lambda i: i.contract_type.name):
        chain_id = str(instance.receipt.chain_id)
        records[chain_id][instance.contract_type.name] = _deployment_record(instance)

    output_filepath.parent.mkdir(parents=True, exist_ok=True)
    data = dict(records)
    if output_filepath.exists():
        existing = _load_json(output_filepath)
        if existing.keys() & records.keys():
            output_filepath = output_filepath.with_suffix(".unmerged.json")
            print(f"Chain already recorded; writing this deployment to {output_filepath}.")
        else:
            data = {**existing, **records}

    with open(output_filepath, "w") as file:
        json.dump(data, file, **REGISTRY_JSON_FORMAT)

    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath

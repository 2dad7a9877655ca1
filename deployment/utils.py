import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from ape import accounts, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer, ContractInstance

from deployment.constants import ARTIFACTS_DIR, DEPLOYER_ACCOUNT_ENVVAR
from deployment.networks import is_local_network

REQUIRED_PARAMS_SECTIONS = ("deployment", "contracts")


def _load_yaml(filepath: Path) -> dict:
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns where the registry of this deployment is written."""
    artifacts = config.get("artifacts") or {}
    filename = artifacts.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return Path(artifacts.get("dir", ARTIFACTS_DIR)) / filename


def validate_config(config: Dict) -> Path:
    """
    Checks the params file against the connected network and returns
    the registry filepath. Re-running a deployment is allowed; the registry
    writer keeps earlier records for the same chain.
    """
    print("Validating parameters YAML...")
    for section in REQUIRED_PARAMS_SECTIONS:
        if not config.get(section):
            raise ValueError(f"'{section}' is not set in params file.")

    expected_chain_id = config["deployment"].get("chain_id")
    if not expected_chain_id:
        raise ValueError("chain_id is not set in params file.")

    connected_chain_id = networks.provider.network.chain_id
    if not is_local_network() and int(expected_chain_id) != connected_chain_id:
        raise ValueError(
            f"Params file targets chain {expected_chain_id} but the connected "
            f"network is chain {connected_chain_id}."
        )

    return get_artifact_filepath(config=config)


def check_explorer_plugin() -> None:
    """Verification publishes sources through ape-etherscan, which needs an API key."""
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Contract verification requires the ape-etherscan plugin.")

    ecosystem_name = networks.provider.network.ecosystem.name
    envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    if not envvar or not os.environ.get(envvar):
        raise ValueError(
            f"Contract verification on {ecosystem_name} requires "
            f"{envvar or 'an explorer API key'} to be set."
        )


def check_infura_plugin() -> None:
    """The infura provider reads its project id from the environment."""
    if networks.provider.name != "infura":
        return
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("The infura provider requires the ape-infura plugin.")

    if not any(os.environ.get(envvar) for envvar in _ENVIRONMENT_VARIABLE_NAMES):
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins(verify: bool) -> None:
    if is_local_network():
        return
    print("Checking plugins...")
    if verify:
        check_explorer_plugin()
    check_infura_plugin()


def get_account() -> Optional[AccountAPI]:
    """
    Local runs sign with the first test account, live runs with the ape
    account aliased by DEPLOYER_ACCOUNT. None means the operator picks one.
    """
    if is_local_network():
        return accounts.test_accounts[0]
    alias = os.environ.get(DEPLOYER_ACCOUNT_ENVVAR)
    if not alias:
        return None
    return accounts.load(alias)


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def get_contract_container(contract: str) -> ContractContainer:
    try:
        return getattr(project, contract)
    except AttributeError:
        raise ValueError(f"No contract found with name '{contract}'.")

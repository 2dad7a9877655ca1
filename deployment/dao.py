from typing import Any, Callable, Tuple

import click
from ape.contracts import ContractInstance

from deployment.constants import CRYPTODEVS_DAO, FAKE_NFT_MARKETPLACE
from deployment.params import Deployer
from deployment.utils import get_contract_container


def deploy_dao(deployer: Deployer) -> Tuple[ContractInstance, ContractInstance]:
    """
    Deploys the NFT marketplace, then the DAO that trades on it.

    The DAO constructor takes the marketplace address, so the marketplace
    deployment must be confirmed first. The DAO deployment carries the
    treasury deposit configured in the params file.
    """
    marketplace = deployer.deploy(get_contract_container(FAKE_NFT_MARKETPLACE))
    print(f"{FAKE_NFT_MARKETPLACE} deployed to: {marketplace.address}")

    dao = deployer.deploy(get_contract_container(CRYPTODEVS_DAO))
    print(f"{CRYPTODEVS_DAO} deployed to: {dao.address}")

    return marketplace, dao


def run(procedure: Callable[[], Any]) -> int:
    """Runs a deployment procedure and returns the process exit code."""
    try:
        procedure()
    except Exception as e:
        click.secho(f"Deployment failed: {e!r}", fg="red")
        return 1
    return 0

from collections import OrderedDict
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from deployment.constants import CONSTRUCTOR_PARAMS_DIR, CRYPTODEVS_DAO, FAKE_NFT_MARKETPLACE
from deployment.params import Deployer
from deployment.utils import _load_yaml

# digit-only addresses are valid checksum addresses
MARKETPLACE_ADDRESS = "0x" + "1" * 40
DAO_ADDRESS = "0x" + "2" * 40
DEPLOYER_ADDRESS = "0x" + "3" * 40
OTHER_ADDRESS = "0x" + "4" * 40

DAO_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "dao.yml"

ONE_TENTH_ETHER = 10**17


# Utility functions
def make_container(name, inputs=(), payable=False):
    container = MagicMock()
    container.contract_type.name = name
    container.constructor.abi.inputs = [SimpleNamespace(name=n, type=t) for n, t in inputs]
    container.constructor.abi.stateMutability = "payable" if payable else "nonpayable"
    return container


def make_instance(name, address):
    instance = MagicMock()
    instance.contract_type.name = name
    instance.address = address
    return instance


# Fixtures
@pytest.fixture(autouse=True)
def reset_deployer_state():
    Deployer._set_account(None)
    Deployer._set_deployments(OrderedDict())
    yield
    Deployer._set_account(None)
    Deployer._set_deployments(OrderedDict())


@pytest.fixture
def containers():
    return {
        FAKE_NFT_MARKETPLACE: make_container(FAKE_NFT_MARKETPLACE),
        CRYPTODEVS_DAO: make_container(
            CRYPTODEVS_DAO,
            inputs=[("_nftMarketplace", "address"), ("_cryptoDevsNFT", "address")],
            payable=True,
        ),
    }


@pytest.fixture
def patched_containers(containers):
    with patch("deployment.params.get_contract_container", side_effect=containers.__getitem__):
        with patch("deployment.dao.get_contract_container", side_effect=containers.__getitem__):
            yield containers


@pytest.fixture
def marketplace():
    return make_instance(FAKE_NFT_MARKETPLACE, MARKETPLACE_ADDRESS)


@pytest.fixture
def dao():
    return make_instance(CRYPTODEVS_DAO, DAO_ADDRESS)


@pytest.fixture
def deployer_account(marketplace, dao):
    account = MagicMock()
    account.address = DEPLOYER_ADDRESS
    account.deploy.side_effect = [marketplace, dao]
    return account


@pytest.fixture
def dao_config():
    return _load_yaml(DAO_PARAMS_FILEPATH)


@pytest.fixture
def deployment_environment(patched_containers, tmp_path):
    """Stands in for the connected network, plugins and registry location."""
    registry_filepath = tmp_path / "registry.json"
    with patch("deployment.params.networks"), patch("deployment.params.check_plugins"), patch(
        "deployment.params.validate_config", return_value=registry_filepath
    ):
        yield registry_filepath


@pytest.fixture
def deployer(deployment_environment, deployer_account):
    return Deployer.from_yaml(
        filepath=DAO_PARAMS_FILEPATH,
        verify=False,
        account=deployer_account,
        autosign=True,
    )

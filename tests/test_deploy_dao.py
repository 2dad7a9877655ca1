from unittest.mock import patch

import pytest

from deployment.constants import CRYPTODEVS_DAO, CRYPTODEVS_NFT_CONTRACT_ADDRESS, FAKE_NFT_MARKETPLACE
from deployment.dao import deploy_dao, run
from deployment.params import Deployer
from tests.conftest import DAO_ADDRESS, MARKETPLACE_ADDRESS, ONE_TENTH_ETHER


def test_marketplace_is_deployed_first_without_arguments(deployer, deployer_account, containers):
    deploy_dao(deployer)

    first_call = deployer_account.deploy.call_args_list[0]
    assert first_call.args == (containers[FAKE_NFT_MARKETPLACE],)
    assert "value" not in first_call.kwargs
    assert first_call.kwargs["publish"] is False


def test_dao_receives_marketplace_address(deployer, deployer_account, containers):
    marketplace, dao = deploy_dao(deployer)

    assert marketplace.address == MARKETPLACE_ADDRESS
    assert dao.address == DAO_ADDRESS
    assert deployer_account.deploy.call_count == 2

    dao_call = deployer_account.deploy.call_args_list[1]
    container, nft_marketplace, cryptodevs_nft = dao_call.args
    assert container is containers[CRYPTODEVS_DAO]
    assert nft_marketplace == MARKETPLACE_ADDRESS
    assert cryptodevs_nft == CRYPTODEVS_NFT_CONTRACT_ADDRESS


def test_dao_deployment_carries_treasury_deposit(deployer, deployer_account):
    deploy_dao(deployer)

    dao_call = deployer_account.deploy.call_args_list[1]
    assert dao_call.kwargs["value"] == ONE_TENTH_ETHER


def test_deployed_addresses_are_printed(deployer, capsys):
    deploy_dao(deployer)

    output = capsys.readouterr().out
    assert f"FakeNFTMarketplace deployed to: {MARKETPLACE_ADDRESS}" in output
    assert f"CryptoDevsDAO deployed to: {DAO_ADDRESS}" in output


def test_failed_marketplace_deployment_stops_sequence(deployer, deployer_account):
    deployer_account.deploy.side_effect = RuntimeError("insufficient funds")

    with pytest.raises(Deployer.DeploymentFailed, match="FakeNFTMarketplace"):
        deploy_dao(deployer)

    assert deployer_account.deploy.call_count == 1


def test_failed_dao_deployment(deployer, deployer_account, marketplace):
    deployer_account.deploy.side_effect = [marketplace, RuntimeError("execution reverted")]

    with pytest.raises(Deployer.DeploymentFailed, match="CryptoDevsDAO"):
        deploy_dao(deployer)

    assert deployer_account.deploy.call_count == 2


def test_dao_cannot_be_deployed_before_marketplace(deployer, deployer_account, containers):
    with pytest.raises(ValueError, match="FakeNFTMarketplace must be deployed before"):
        deployer.deploy(containers[CRYPTODEVS_DAO])

    deployer_account.deploy.assert_not_called()


def test_run_exit_codes(capsys):
    assert run(lambda: None) == 0

    def failing():
        raise Deployer.DeploymentFailed("CryptoDevsDAO deployment failed: reverted")

    assert run(failing) == 1
    assert "Deployment failed" in capsys.readouterr().out


def test_deploy_script(deployment_environment, deployer_account, capsys):
    from scripts import deploy as deploy_script

    with patch.object(deploy_script, "get_account", return_value=deployer_account), patch(
        "deployment.params.registry_from_ape_deployments"
    ) as write_registry:
        with pytest.raises(SystemExit) as exit_info:
            deploy_script.main()

    assert exit_info.value.code == 0
    write_registry.assert_called_once()
    deployments = write_registry.call_args.kwargs["deployments"]
    assert [d.address for d in deployments] == [MARKETPLACE_ADDRESS, DAO_ADDRESS]

    output = capsys.readouterr().out
    assert MARKETPLACE_ADDRESS in output
    assert DAO_ADDRESS in output


def test_deploy_script_failure(deployment_environment, deployer_account):
    from scripts import deploy as deploy_script

    deployer_account.deploy.side_effect = RuntimeError("connection refused")
    with patch.object(deploy_script, "get_account", return_value=deployer_account), patch(
        "deployment.params.registry_from_ape_deployments"
    ) as write_registry:
        with pytest.raises(SystemExit) as exit_info:
            deploy_script.main()

    assert exit_info.value.code == 1
    assert deployer_account.deploy.call_count == 1
    write_registry.assert_not_called()

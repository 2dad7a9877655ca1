#!/usr/bin/python3

import sys

from deployment.constants import CONSTRUCTOR_PARAMS_DIR
from deployment.dao import deploy_dao, run
from deployment.params import Deployer
from deployment.utils import get_account

VERIFY = False
AUTOSIGN = True
CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "dao.yml"


def deploy():
    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH,
        verify=VERIFY,
        account=get_account(),
        autosign=AUTOSIGN,
    )
    marketplace, dao = deploy_dao(deployer)
    deployer.finalize(deployments=[marketplace, dao])


def main():
    """
    Deploys FakeNFTMarketplace and CryptoDevsDAO, funding the DAO treasury with 0.1 ETH.

    ape run deploy --network ethereum:sepolia:infura

    Runs unattended: local networks sign with the first test account, live
    networks with the ape account named by DEPLOYER_ACCOUNT (its passphrase
    can be given as APE_ACCOUNTS_<alias>_PASSPHRASE). When DEPLOYER_ACCOUNT is
    unset ape asks which account to use. Set AUTOSIGN = False to review and
    confirm each deployment's parameters before it is sent.
    """
    sys.exit(run(deploy))

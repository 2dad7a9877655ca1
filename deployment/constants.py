from pathlib import Path

from eth_utils import to_checksum_address

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

#
# Networks
#

LOCAL_NETWORKS = ["local"]

# alias of the ape account that signs live deployments
DEPLOYER_ACCOUNT_ENVVAR = "DEPLOYER_ACCOUNT"

#
# Contracts
#

FAKE_NFT_MARKETPLACE = "FakeNFTMarketplace"
CRYPTODEVS_DAO = "CryptoDevsDAO"

# CryptoDevs NFT collection, deployed separately
CRYPTODEVS_NFT_CONTRACT_ADDRESS = to_checksum_address("0x182ac2c6d2ee4cc50f5f0ee64e9ee8c2d2a89b6a")

# The DAO treasury is funded at deployment time
DAO_TREASURY_DEPOSIT = "0.1 ether"

DEFAULT_CONSTANTS = {
    "CRYPTODEVS_NFT_CONTRACT_ADDRESS": CRYPTODEVS_NFT_CONTRACT_ADDRESS,
    "DAO_TREASURY_DEPOSIT": DAO_TREASURY_DEPOSIT,
}


from collections import OrderedDict

from ape.utils import ZERO_ADDRESS
from web3 import Web3


class DeploymentAborted(Exception):
    """Raised when the operator declines to continue."""


def _ask(question: str) -> None:
    """Anything but 'n' counts as yes."""
    answer = input(f"{question} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        raise DeploymentAborted(question)


def confirm_start() -> None:
    _ask("Continue")


def confirm_deployment(contract_name: str, resolved_params: OrderedDict, value: int = 0) -> None:
    """Shows what is about to be sent for a single contract and asks to go ahead."""
    print(f"\n{contract_name}")
    if not resolved_params:
        print("\t(no constructor parameters)")
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
    if value:
        print(f"\tvalue={Web3.from_wei(value, 'ether')} ETH ({value} wei)")

    _ask(f"Deploy {contract_name}")
    if ZERO_ADDRESS in resolved_params.values():
        _ask("Zero address in constructor parameters; continue")

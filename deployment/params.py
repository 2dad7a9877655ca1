import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List

from ape import networks
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance
from ape.utils import ZERO_ADDRESS
from web3 import Web3

from deployment.confirm import confirm_deployment, confirm_start
from deployment.constants import DEFAULT_CONSTANTS
from deployment.registry import registry_from_ape_deployments
from deployment.utils import (
    _load_yaml,
    check_plugins,
    get_contract_container,
    validate_config,
    verify_contracts,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_VALUE_PARAMETER_KEY = "value"
PAYABLE_STATE_MUTABILITY = "payable"

w3 = Web3()


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")
        if contract_name == context.contract_name:
            raise ValueError(f"Contract {contract_name} cannot reference its own address")

        self.contract_name = contract_name

    def resolve(self) -> Any:
        """Resolves the address of a contract deployed earlier in this run."""
        contract_instance = Deployer.get_deployment(self.contract_name)
        if contract_instance is None:
            # eager validation
            return ZERO_ADDRESS
        return contract_instance.address


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _contract_dependencies(value: Any) -> List[str]:
    """Returns the names of the contracts whose addresses a parameter value refers to."""
    if isinstance(value, list):
        return [name for v in value for name in _contract_dependencies(v)]
    if isinstance(value, ContractName):
        return [value.contract_name]
    return []


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed constructor parameters YAML.")

    return contract_names


def parse_value(raw_value: Any) -> int:
    """
    Converts the value attached to a deployment transaction into wei.

    Accepts an integer amount of wei, or a string made of an amount and an
    optional denomination, e.g. "0.1 ether" or "250 gwei".
    """
    if raw_value is None:
        return 0

    if isinstance(raw_value, bool):
        raise ConstructorParameters.Invalid(f"Invalid deployment value '{raw_value}'")

    if isinstance(raw_value, int):
        wei = raw_value
    elif isinstance(raw_value, str):
        parts = raw_value.split()
        if len(parts) == 1:
            amount, unit = parts[0], "wei"
        elif len(parts) == 2:
            amount, unit = parts
        else:
            raise ConstructorParameters.Invalid(f"Invalid deployment value '{raw_value}'")
        try:
            wei = Decimal(amount) * Web3.to_wei(1, unit.lower())
        except (InvalidOperation, ValueError) as e:
            raise ConstructorParameters.Invalid(f"Invalid deployment value '{raw_value}'") from e
        if not wei.is_finite() or wei != wei.to_integral_value():
            raise ConstructorParameters.Invalid(
                f"Deployment value '{raw_value}' is not a whole number of wei"
            )
    else:
        raise ConstructorParameters.Invalid(f"Invalid deployment value '{raw_value}'")

    if wei < 0:
        raise ConstructorParameters.Invalid(f"Deployment value cannot be negative: '{raw_value}'")
    return int(wei)


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor ABI."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        # validate name
        if abi_input.name != name:
            raise ConstructorParameters.Invalid(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_input.type, value):
            raise ConstructorParameters.Invalid(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


def _validate_constructor_value(contract_name: str, constructor_abi: Any, value: int) -> None:
    """Only payable constructors may receive a value."""
    if not value:
        return
    state_mutability = getattr(constructor_abi, "stateMutability", None)
    if state_mutability != PAYABLE_STATE_MUTABILITY:
        raise ConstructorParameters.Invalid(
            f"{contract_name} constructor is not payable but a value of {value} wei was given."
        )


def validate_constructor_parameters(contracts_parameters, contracts_values=None) -> None:
    """Validates the constructor parameters for all contracts in a single config."""
    contracts_values = contracts_values or dict()
    for contract, parameters in contracts_parameters.items():
        if not isinstance(parameters, dict):
            # this can happen if the yml file is malformed
            raise ValueError(f"Malformed constructor parameter config for {contract}.")

        resolved_parameters = _resolve_params(parameters=parameters)
        contract_container = get_contract_container(contract)
        constructor_abi = contract_container.constructor.abi
        _validate_constructor_abi_inputs(
            contract_name=contract,
            abi_inputs=constructor_abi.inputs,
            resolved_parameters=resolved_parameters,
        )
        _validate_constructor_value(
            contract_name=contract,
            constructor_abi=constructor_abi,
            value=contracts_values.get(contract, 0),
        )


class ConstructorParameters:
    """Represents the constructor parameters and attached values for a set of contracts."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict, values: typing.Dict[str, int] = None):
        self.parameters = parameters
        self.values = values or dict()
        validate_constructor_parameters(self.parameters, self.values)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ConstructorParameters":
        """Loads the constructor parameters from a params config."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contracts_values = dict()
        contract_names = _get_contract_names(config)
        constants = {**DEFAULT_CONSTANTS, **(config.get("constants") or {})}
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contracts_config[contract_info] = OrderedDict()
                continue

            if not isinstance(contract_info, dict) or len(contract_info) != 1:
                raise ValueError("Malformed constructor parameters YAML.")

            contract_name = list(contract_info.keys())[0]  # only one entry
            contract_data = contract_info[contract_name] or dict()
            context = VariableContext(
                contract_names=contract_names, constants=constants, contract_name=contract_name
            )
            contracts_config[contract_name] = cls._process_parameters(contract_data, context)
            contracts_values[contract_name] = cls._process_value(contract_data, context)

        return cls(parameters=contracts_config, values=contracts_values)

    @classmethod
    def _process_parameters(cls, contract_data, context: VariableContext) -> OrderedDict:
        parameter_values = OrderedDict()
        if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
            parameter_values = _process_raw_values(
                contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY] or OrderedDict(), context
            )
        return parameter_values

    @classmethod
    def _process_value(cls, contract_data, context: VariableContext) -> int:
        raw_value = contract_data.get(CONTRACT_VALUE_PARAMETER_KEY)
        processed_value = _process_raw_value(raw_value, context)
        return parse_value(_resolve_param(processed_value))

    def _get_parameters(self, contract_name: str) -> OrderedDict:
        try:
            return self.parameters[contract_name]
        except KeyError:
            raise ValueError(f"Contract {contract_name} is not listed in the params file.")

    def dependencies(self, contract_name: str) -> List[str]:
        """Returns the contracts that must be deployed before this one."""
        parameters = self._get_parameters(contract_name)
        return [name for value in parameters.values() for name in _contract_dependencies(value)]

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        resolved_params = _resolve_params(self._get_parameters(contract_name))
        return resolved_params

    def value(self, contract_name: str) -> int:
        """Returns the value, in wei, attached to the deployment of a single contract."""
        return self.values.get(contract_name, 0)


class Deployer:
    """
    Represents an ape account plus deployment parameters
    for a set of contracts, plus validated/annotated execution.
    """

    class DeploymentFailed(Exception):
        """Raised when a contract deployment transaction fails"""

    __DEPLOYER_ACCOUNT: AccountAPI = None
    __DEPLOYMENTS: typing.Dict[str, ContractInstance] = OrderedDict()

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
            if hasattr(self._account, "set_autosign"):
                self._account.set_autosign(True)
        self._autosign = autosign

        check_plugins(verify=verify)
        self.path = path
        self.config = config
        self.registry_filepath = validate_config(config=self.config)

        self._set_account(self._account)
        self._set_deployments(OrderedDict())
        self.constructor_parameters = ConstructorParameters.from_config(self.config)

        # Little trick to expose constants as attributes (e.g., deployer.constants.FOO)
        constants = {**DEFAULT_CONSTANTS, **(config.get("constants") or {})}
        _Constants = namedtuple("_Constants", list(constants))
        self.constants = _Constants(**constants)

        self.verify = verify
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            confirm_start()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    @classmethod
    def get_deployment(cls, contract_name: str) -> typing.Optional[ContractInstance]:
        """Returns the instance of a contract deployed in this run, if any."""
        return cls.__DEPLOYMENTS.get(contract_name)

    @classmethod
    def _set_deployments(cls, deployments: typing.Dict[str, ContractInstance]) -> None:
        cls.__DEPLOYMENTS = deployments

    def _get_kwargs(self, value: int = 0) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        kwargs = {"publish": self.verify}
        if value:
            kwargs["value"] = value
        return kwargs

    def _check_dependencies(self, contract_name: str) -> None:
        for dependency in self.constructor_parameters.dependencies(contract_name):
            if self.get_deployment(dependency) is None:
                raise ValueError(f"{dependency} must be deployed before {contract_name}.")

    def deploy(self, container: ContractContainer) -> ContractInstance:
        contract_name = container.contract_type.name
        self._check_dependencies(contract_name)

        resolved_constructor_params = self.constructor_parameters.resolve(contract_name)
        value = self.constructor_parameters.value(contract_name)
        instance = self._deploy_contract(container, resolved_constructor_params, value)

        self.__DEPLOYMENTS[contract_name] = instance
        return instance

    def _deploy_contract(
        self, container: ContractContainer, resolved_params: OrderedDict, value: int = 0
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            confirm_deployment(contract_name, resolved_params, value)
        deployment_params = [container, *resolved_params.values()]
        kwargs = self._get_kwargs(value)

        deployer_account = self.get_account()
        try:
            return deployer_account.deploy(*deployment_params, **kwargs)
        except Exception as e:
            raise self.DeploymentFailed(f"{contract_name} deployment failed: {e}") from e

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """
        Publishes the deployments to the registry and optionally to block explorers.
        """
        registry_from_ape_deployments(
            deployments=deployments,
            output_filepath=self.registry_filepath,
        )
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )

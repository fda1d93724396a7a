"""Errors raised by the controller and account contracts."""

from __future__ import annotations

import json


class ContractError(Exception):
    """Base class of every contract failure."""

    message = "Contract error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.message if message is None else message)

    def __str__(self) -> str:
        return str(self.args[0])

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.args == other.args

    def __hash__(self) -> int:
        return hash((type(self), self.args))


class StdError(ContractError):
    """A generic failure reported by storage, queries or validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class Unauthorized(ContractError):
    message = "Unauthorized"


class InvalidFee(ContractError):
    message = "Invalid fee"


class FundsMismatch(ContractError):
    message = "Funds array in message does not match funds array in job."


class RewardTooSmall(ContractError):
    message = "Reward provided is smaller than minimum"


class NameTooShort(ContractError):
    message = "Name must be at least 1 character long"


class NameTooLong(ContractError):
    message = "Name cannot exceed 280 characters"


class DistributingMoreRewardThanReceived(ContractError):
    message = "Attempting to distribute more rewards than received from the action"


class InvalidArguments(ContractError):
    message = "Invalid arguments"


class AccountDoesNotExist(ContractError):
    message = "Account does not exist"


class AccountAlreadyExists(ContractError):
    message = "Account already exists"


class AccountCannotCreateAccount(ContractError):
    message = "Account cannot create an account"


class JobAlreadyFinished(ContractError):
    message = "Job already finished"


class JobAlreadyExists(ContractError):
    message = "Job already exists"


class JobDoesNotExist(ContractError):
    message = "Job does not exist"


class JobNotActive(ContractError):
    message = "Job not active"


class CancellationFeeTooHigh(ContractError):
    message = "Cancellation fee too high"


class CreationFeeTooHigh(ContractError):
    message = "Creation fee too high"


class CustomError(ContractError):
    """A failure carrying a free-form value."""

    def __init__(self, val: str) -> None:
        self.val = val
        super().__init__(f"Custom Error val: {json.dumps(val)}")


class DeserializationError(ContractError):
    message = "Error deserializing data"


class SerializationError(ContractError):
    message = "Error serializing data"


class DecodeError(ContractError):
    message = "Error decoding JSON result"


class ResolveError(ContractError):
    message = "Error resolving JSON path"


class MaxFeeUnderMinFee(ContractError):
    message = "Max eviction fee smaller than minimum eviction fee."


class MaxTimeUnderMinTime(ContractError):
    message = "Max eviction time smaller than minimum eviction time."


class RewardSmallerThanFee(ContractError):
    message = "Job reward smaller than eviction fee."


class EvictionPeriodNotElapsed(ContractError):
    message = "Eviction period not elapsed."


class NoMsgToTrigger(ContractError):
    message = "No msgs to trigger"


def overflow_error() -> CustomError:
    """The error raised when checked integer arithmetic overflows."""
    return CustomError("ERROR: Overflow error")


_WASM_CODES = (
    (28, "No such code ID."),
    (27, "Max query stack size exceeded."),
    (22, "No such contract at requested address."),
    (21, "Invalid event from contract."),
    (20, "Unknown message from the contract."),
    (19, "Unpinning contract failed."),
    (18, "Pinning contract failed."),
    (17, "Unsupported action for this contract."),
    (16, "Maximum IBC channels reached."),
    (15, "Content is duplicated."),
    (14, "Content is invalid in this context."),
    (13, "Content exceeds limit."),
    (12, "Empty content."),
    (11, "Migrate wasm contract failed."),
    (10, "Invalid CosmosMsg from the called contract."),
    (9, "Query wasm contract failed."),
    (8, "Entry not found in store."),
    (7, "Invalid genesis file."),
    (6, "Insufficient gas."),
    (
        5,
        "Execute wasm contract failed. Common causes include insufficient CW20 Funds, "
        "permission errors on CW721 assets, and malformed contract messages.",
    ),
    (4, "Instantiate wasm contract failed."),
    (3, "Contract account already exists."),
    (2, "Create wasm contract failed."),
)

_SDK_CODES = (
    (41, "Invalid gas limit."),
    (40, "Error in app.toml."),
    (39, "Internal IO error."),
    (38, "Not found: Entity does not exist in state."),
    (37, "Feature not supported."),
    (36, "Conflict error."),
    (35, "Internal logic error."),
    (34, "Failed unpacking protobuf msg."),
    (33, "Failed packing protobuf msg."),
    (32, "Incorrect account sequence."),
    (31, "Unknown extension options."),
    (30, "Tx timeout height."),
    (29, "Invalid type."),
    (28, "Invalid chain-id."),
    (27, "Invalid version."),
    (26, "invalid height."),
    (25, "Invalid gas adjustment."),
    (24, "Tx indended signer does not match the given signer."),
    (23, "Invalid account password."),
    (22, "Key not found."),
    (21, "Tx too large."),
    (20, "Mempool is full."),
    (19, "Tx already in mempool."),
    (18, "Invalid request."),
    (17, "Failed to unmarshal JSON bytes."),
    (16, "Failed to marshal JSON bytes."),
    (15, "No signatures supplied."),
    (14, "Maximum number of signatures exceeded."),
    (13, "Insufficient fee."),
    (12, "Memo too large."),
    (11, "Out of gas."),
    (10, "Invalid coins."),
    (9, "Unknown address."),
    (8, "Invalid pubkey."),
    (7, "Invalid address."),
    (6, "Unknown request."),
    (5, "Invalid funds. Ensure that sufficient native tokens are being supplied for the job."),
    (4, "Unauthorized SDK request."),
    (3, "Invalid sequence."),
    (2, "Tx parse error."),
)

_UNDEFINED = "Undefined error."


def map_contract_error(e: str) -> str:
    """Explain a chain error string in plain words."""
    if "wasm" in e:
        table = _WASM_CODES
    elif "sdk" in e:
        table = _SDK_CODES
    else:
        return _UNDEFINED
    for code, text in table:
        if f"code: {code}" in e:
            return text
    return _UNDEFINED
"""The per-user account contract: holds funds and runs messages for its owner."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidArguments, StdError, Unauthorized
from .models import (
    BankSend,
    Coin,
    Cw20Asset,
    Cw20Fund,
    Cw721Asset,
    Cw721Fund,
    Env,
    MessageInfo,
    NativeAsset,
    Response,
    StargateMsg,
    WasmExecute,
    to_binary,
    to_json_string,
    validate_address,
)
from .store import Deps, Item

IBC_TRANSFER_TYPE_URL = "/ibc.applications.transfer.v1.MsgTransfer"
_NANOS = 1_000_000_000


@dataclass
class AccountConfig:
    owner: str
    warp_addr: str

    def to_dict(self) -> dict:
        return {"owner": self.owner, "warp_addr": self.warp_addr}

    @classmethod
    def from_dict(cls, data: dict) -> AccountConfig:
        return cls(owner=data["owner"], warp_addr=data["warp_addr"])


CONFIG: Item[AccountConfig] = Item("config", AccountConfig)


@dataclass
class InstantiateMsg:
    owner: str
    funds: list[Cw20Fund | Cw721Fund] | None = None


@dataclass
class GenericMsg:
    msgs: list[Any] = field(default_factory=list)


@dataclass
class WithdrawAssetsMsg:
    asset_infos: list[NativeAsset | Cw20Asset | Cw721Asset] = field(default_factory=list)


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(number: int, wire_type: int) -> bytes:
    return _varint((number << 3) | wire_type)


def _len_field(number: int, payload: bytes) -> bytes:
    return _key(number, 2) + _varint(len(payload)) + payload


def _str_field(number: int, text: str) -> bytes:
    return _len_field(number, text.encode("utf-8"))


def _uint_field(number: int, value: int) -> bytes:
    return _key(number, 0) + _varint(value)


@dataclass
class TimeoutBlock:
    revision_number: int | None = None
    revision_height: int | None = None

    def encode(self) -> bytes:
        parts = []
        if self.revision_number is not None:
            parts.append(_uint_field(1, self.revision_number))
        if self.revision_height is not None:
            parts.append(_uint_field(2, self.revision_height))
        return b"".join(parts)


@dataclass
class TransferMsg:
    """An IBC fungible token transfer, encoded as its protobuf message."""

    source_port: str = ""
    source_channel: str = ""
    token: Coin | None = None
    sender: str = ""
    receiver: str = ""
    timeout_block: TimeoutBlock | None = None
    timeout_timestamp: int | None = None
    memo: str = ""

    def encode(self) -> bytes:
        parts = []
        if self.source_port:
            parts.append(_str_field(1, self.source_port))
        if self.source_channel:
            parts.append(_str_field(2, self.source_channel))
        if self.token is not None:
            coin = b""
            if self.token.denom:
                coin += _str_field(1, self.token.denom)
            coin += _str_field(2, str(self.token.amount))
            parts.append(_len_field(3, coin))
        if self.sender:
            parts.append(_str_field(4, self.sender))
        if self.receiver:
            parts.append(_str_field(5, self.receiver))
        if self.timeout_block is not None:
            parts.append(_len_field(6, self.timeout_block.encode()))
        if self.timeout_timestamp is not None:
            parts.append(_uint_field(7, self.timeout_timestamp))
        if self.memo:
            parts.append(_str_field(8, self.memo))
        return b"".join(parts)


@dataclass
class IbcTransferMsg:
    transfer_msg: TransferMsg
    timeout_block_delta: int | None = None
    timeout_timestamp_seconds_delta: int | None = None


@dataclass
class WarpMsgs:
    """A batch of messages; transfers among them get their timeouts filled in."""

    msgs: list[Any] = field(default_factory=list)


def _authorize(info: MessageInfo, config: AccountConfig) -> None:
    if info.sender != config.owner and info.sender != config.warp_addr:
        raise Unauthorized()


def instantiate(deps: Deps, env: Env, info: MessageInfo, msg: InstantiateMsg) -> Response:
    CONFIG.save(
        deps.storage,
        AccountConfig(owner=validate_address(msg.owner), warp_addr=info.sender),
    )
    return (
        Response()
        .add_attribute("action", "instantiate")
        .add_attribute("contract_addr", env.contract_address)
        .add_attribute("owner", msg.owner)
        .add_attribute("funds", to_json_string(info.funds))
        .add_attribute("cw_funds", to_json_string(msg.funds))
    )


def execute(deps: Deps, env: Env, info: MessageInfo, msg: Any) -> Response:
    config = CONFIG.load(deps.storage)
    _authorize(info, config)
    match msg:
        case GenericMsg():
            return Response().add_messages(msg.msgs).add_attribute("action", "generic")
        case WithdrawAssetsMsg():
            return withdraw_assets(deps, env, info, msg)
        case IbcTransferMsg():
            return ibc_transfer(env, msg)
        case WarpMsgs():
            return execute_warp_msgs(env, msg.msgs)
    raise InvalidArguments()


def query(deps: Deps, env: Env, msg: Any) -> bytes:
    if msg == "config":
        return to_binary(CONFIG.load(deps.storage))
    raise StdError(f"Unknown query: {msg!r}")


def migrate(deps: Deps, env: Env, msg: Any) -> Response:
    return Response()


def ibc_transfer(env: Env, msg: IbcTransferMsg) -> Response:
    transfer_msg = dataclasses.replace(msg.transfer_msg)

    if msg.timeout_block_delta is not None and msg.transfer_msg.timeout_block is not None:
        block = transfer_msg.timeout_block
        transfer_msg.timeout_block = TimeoutBlock(
            revision_number=block.revision_number or 0,
            revision_height=env.block.height + msg.timeout_block_delta,
        )

    if msg.timeout_timestamp_seconds_delta is not None:
        added_seconds = env.block.seconds + msg.timeout_timestamp_seconds_delta
        transfer_msg.timeout_timestamp = env.block.time_nanos + added_seconds * _NANOS

    return Response().add_message(
        StargateMsg(type_url=IBC_TRANSFER_TYPE_URL, value=transfer_msg.encode())
    )


def execute_warp_msgs(env: Env, msgs: list[Any]) -> Response:
    resolved = [
        ibc_transfer(env, msg).messages[0].msg if isinstance(msg, IbcTransferMsg) else msg
        for msg in msgs
    ]
    return Response().add_messages(resolved)


def withdraw_assets(
    deps: Deps, env: Env, info: MessageInfo, data: WithdrawAssetsMsg
) -> Response:
    config = CONFIG.load(deps.storage)
    _authorize(info, config)

    withdraw_msgs = []
    for asset in data.asset_infos:
        match asset:
            case NativeAsset(denom=denom):
                msg = _withdraw_native(deps, env, config.owner, denom)
            case Cw20Asset(contract_addr=token):
                msg = _withdraw_cw20(deps, env, config.owner, token)
            case Cw721Asset(contract_addr=token, token_id=token_id):
                msg = _withdraw_cw721(deps, config.owner, token, token_id)
            case _:
                raise InvalidArguments()
        if msg is not None:
            withdraw_msgs.append(msg)

    return (
        Response()
        .add_messages(withdraw_msgs)
        .add_attribute("action", "withdraw_assets")
        .add_attribute("assets", to_json_string(data.asset_infos))
    )


def _withdraw_native(deps: Deps, env: Env, owner: str, denom: str) -> BankSend | None:
    balance = deps.querier.query_balance(env.contract_address, denom)
    if balance.amount > 0:
        return BankSend(to_address=owner, amount=[balance])
    return None


def _withdraw_cw20(deps: Deps, env: Env, owner: str, token: str) -> WasmExecute | None:
    answer = deps.querier.query_smart(token, {"balance": {"address": env.contract_address}})
    try:
        balance = int(answer["balance"])
    except (KeyError, TypeError, ValueError) as exc:
        raise StdError("Invalid balance response") from exc
    if balance > 0:
        return WasmExecute(
            contract_addr=token,
            msg=to_binary({"transfer": {"recipient": owner, "amount": str(balance)}}),
            funds=[],
        )
    return None


def _withdraw_cw721(deps: Deps, owner: str, token: str, token_id: str) -> WasmExecute | None:
    answer = deps.querier.query_smart(
        token, {"owner_of": {"token_id": token_id, "include_expired": None}}
    )
    try:
        current_owner = answer["owner"]
    except (KeyError, TypeError) as exc:
        raise StdError("Invalid owner response") from exc
    if current_owner == owner:
        return WasmExecute(
            contract_addr=token,
            msg=to_binary({"transfer_nft": {"recipient": owner, "token_id": token_id}}),
            funds=[],
        )
    return None
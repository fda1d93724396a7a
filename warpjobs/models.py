"""Messages, responses, environment and the records kept by the contracts."""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from .errors import DeserializationError, StdError


@dataclass
class Coin:
    denom: str
    amount: int

    def _plain(self) -> dict:
        return {"denom": self.denom, "amount": str(self.amount)}


@dataclass
class BankSend:
    to_address: str
    amount: list[Coin] = field(default_factory=list)

    def _plain(self) -> dict:
        return {"bank": {"send": {"to_address": self.to_address, "amount": to_plain(self.amount)}}}


@dataclass
class WasmExecute:
    contract_addr: str
    msg: bytes
    funds: list[Coin] = field(default_factory=list)

    def _plain(self) -> dict:
        return {
            "wasm": {
                "execute": {
                    "contract_addr": self.contract_addr,
                    "msg": to_plain(self.msg),
                    "funds": to_plain(self.funds),
                }
            }
        }


@dataclass
class WasmInstantiate:
    admin: str | None
    code_id: int
    msg: bytes
    funds: list[Coin] = field(default_factory=list)
    label: str = ""

    def _plain(self) -> dict:
        return {
            "wasm": {
                "instantiate": {
                    "admin": self.admin,
                    "code_id": self.code_id,
                    "msg": to_plain(self.msg),
                    "funds": to_plain(self.funds),
                    "label": self.label,
                }
            }
        }


@dataclass
class WasmMigrate:
    contract_addr: str
    new_code_id: int
    msg: bytes

    def _plain(self) -> dict:
        return {
            "wasm": {
                "migrate": {
                    "contract_addr": self.contract_addr,
                    "new_code_id": self.new_code_id,
                    "msg": to_plain(self.msg),
                }
            }
        }


@dataclass
class StargateMsg:
    type_url: str
    value: bytes = b""

    def _plain(self) -> dict:
        return {"stargate": {"type_url": self.type_url, "value": to_plain(self.value)}}


class ReplyOn(Enum):
    ALWAYS = "always"
    ERROR = "error"
    SUCCESS = "success"
    NEVER = "never"


@dataclass
class SubMsg:
    id: int
    msg: Any
    gas_limit: int | None = None
    reply_on: ReplyOn = ReplyOn.NEVER


def _attribute_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass
class Attribute:
    key: str
    value: str

    def __post_init__(self) -> None:
        self.value = _attribute_text(self.value)


@dataclass
class Event:
    type: str
    attributes: list[Attribute] = field(default_factory=list)


@dataclass
class Reply:
    """The outcome of a sub-message: events on success, an error text otherwise."""

    id: int
    events: list[Event] = field(default_factory=list)
    error: str | None = None


@dataclass
class Response:
    messages: list[SubMsg] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)

    def add_attribute(self, key: str, value: Any) -> Response:
        self.attributes.append(Attribute(key, value))
        return self

    def add_attributes(self, attributes: Iterable[Attribute | tuple[str, Any]]) -> Response:
        for attribute in attributes:
            if not isinstance(attribute, Attribute):
                attribute = Attribute(*attribute)
            self.attributes.append(attribute)
        return self

    def add_message(self, msg: Any) -> Response:
        self.messages.append(SubMsg(id=0, msg=msg, reply_on=ReplyOn.NEVER))
        return self

    def add_messages(self, msgs: Iterable[Any]) -> Response:
        for msg in msgs:
            self.add_message(msg)
        return self

    def add_submessage(self, submsg: SubMsg) -> Response:
        self.messages.append(submsg)
        return self

    def add_submessages(self, submsgs: Iterable[SubMsg]) -> Response:
        self.messages.extend(submsgs)
        return self


_NANOS = 1_000_000_000


@dataclass
class BlockInfo:
    height: int = 12_345
    time_nanos: int = 1_571_797_419_879_305_533
    chain_id: str = "cosmos-testnet-14002"

    @property
    def seconds(self) -> int:
        return self.time_nanos // _NANOS


@dataclass
class Env:
    block: BlockInfo = field(default_factory=BlockInfo)
    contract_address: str = "cosmos2contract"


@dataclass
class MessageInfo:
    sender: str
    funds: list[Coin] = field(default_factory=list)


class JobStatus(Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EVICTED = "evicted"


@dataclass(frozen=True)
class NativeAsset:
    denom: str

    def _plain(self) -> dict:
        return {"native": self.denom}


@dataclass(frozen=True)
class Cw20Asset:
    contract_addr: str

    def _plain(self) -> dict:
        return {"cw20": self.contract_addr}


@dataclass(frozen=True)
class Cw721Asset:
    contract_addr: str
    token_id: str

    def _plain(self) -> dict:
        return {"cw721": [self.contract_addr, self.token_id]}


Asset = NativeAsset | Cw20Asset | Cw721Asset


def _single_variant(data: Any) -> tuple[str, Any]:
    if not isinstance(data, dict) or len(data) != 1:
        raise DeserializationError()
    return next(iter(data.items()))


def asset_from_dict(data: dict) -> Asset:
    """Build an asset from its tagged plain form."""
    tag, value = _single_variant(data)
    try:
        if tag == "native":
            return NativeAsset(str(value))
        if tag == "cw20":
            return Cw20Asset(str(value))
        if tag == "cw721":
            contract_addr, token_id = value
            return Cw721Asset(str(contract_addr), str(token_id))
    except (TypeError, ValueError) as exc:
        raise DeserializationError() from exc
    raise DeserializationError()


@dataclass(frozen=True)
class Cw20Fund:
    contract_addr: str
    amount: int

    def _plain(self) -> dict:
        return {"cw20": {"contract_addr": self.contract_addr, "amount": str(self.amount)}}


@dataclass(frozen=True)
class Cw721Fund:
    contract_addr: str
    token_id: str

    def _plain(self) -> dict:
        return {"cw721": {"contract_addr": self.contract_addr, "token_id": self.token_id}}


def fund_from_dict(data: dict) -> Cw20Fund | Cw721Fund:
    """Build a fund from its tagged plain form."""
    tag, value = _single_variant(data)
    try:
        if tag == "cw20":
            return Cw20Fund(value["contract_addr"], int(value["amount"]))
        if tag == "cw721":
            return Cw721Fund(value["contract_addr"], value["token_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DeserializationError() from exc
    raise DeserializationError()


@dataclass(kw_only=True)
class Job:
    id: int
    owner: str
    name: str
    last_update_time: int = 0
    description: str = ""
    labels: list[str] = field(default_factory=list)
    status: JobStatus = JobStatus.PENDING
    condition: str | None = None
    terminate_condition: str | None = None
    msgs: str = "[]"
    vars: str = "[]"
    recurring: bool = False
    requeue_on_evict: bool = False
    reward: int = 0
    assets_to_withdraw: list[Asset] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "owner": self.owner,
            "last_update_time": str(self.last_update_time),
            "name": self.name,
            "description": self.description,
            "labels": list(self.labels),
            "status": self.status.value,
            "condition": self.condition,
            "terminate_condition": self.terminate_condition,
            "msgs": self.msgs,
            "vars": self.vars,
            "recurring": self.recurring,
            "requeue_on_evict": self.requeue_on_evict,
            "reward": str(self.reward),
            "assets_to_withdraw": to_plain(self.assets_to_withdraw),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Job:
        return cls(
            id=int(data["id"]),
            owner=data["owner"],
            last_update_time=int(data["last_update_time"]),
            name=data["name"],
            description=data.get("description", ""),
            labels=list(data.get("labels", [])),
            status=JobStatus(data["status"]),
            condition=data.get("condition"),
            terminate_condition=data.get("terminate_condition"),
            msgs=data["msgs"],
            vars=data["vars"],
            recurring=bool(data["recurring"]),
            requeue_on_evict=bool(data["requeue_on_evict"]),
            reward=int(data["reward"]),
            assets_to_withdraw=[asset_from_dict(a) for a in data.get("assets_to_withdraw", [])],
        )


@dataclass
class Account:
    owner: str
    account: str

    def to_dict(self) -> dict:
        return {"owner": self.owner, "account": self.account}

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(owner=data["owner"], account=data["account"])


_CONFIG_NUMBERS = (
    "warp_account_code_id",
    "minimum_reward",
    "creation_fee_percentage",
    "cancellation_fee_percentage",
    "t_max",
    "t_min",
    "a_max",
    "a_min",
    "q_max",
)


@dataclass(kw_only=True)
class Config:
    owner: str
    fee_denom: str
    fee_collector: str
    warp_account_code_id: int
    minimum_reward: int
    creation_fee_percentage: int
    cancellation_fee_percentage: int
    resolver_address: str
    t_max: int
    t_min: int
    a_max: int
    a_min: int
    q_max: int

    def to_dict(self) -> dict:
        data = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            data[f.name] = str(value) if f.name in _CONFIG_NUMBERS else value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        values = {
            f.name: int(data[f.name]) if f.name in _CONFIG_NUMBERS else data[f.name]
            for f in dataclasses.fields(cls)
        }
        return cls(**values)


@dataclass
class State:
    current_job_id: int = 1
    q: int = 0

    def to_dict(self) -> dict:
        return {"current_job_id": str(self.current_job_id), "q": str(self.q)}

    @classmethod
    def from_dict(cls, data: dict) -> State:
        return cls(current_job_id=int(data["current_job_id"]), q=int(data["q"]))


@dataclass
class Querier:
    """Answers bank balance and contract queries from in-memory tables."""

    balances: dict[tuple[str, str], int] = field(default_factory=dict)
    contracts: dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def query_balance(self, address: str, denom: str) -> Coin:
        return Coin(denom, self.balances.get((address, denom), 0))

    def query_smart(self, contract_addr: str, msg: Any) -> Any:
        handler = self.contracts.get(contract_addr)
        if handler is None:
            raise StdError(f"No such contract: {contract_addr}")
        return handler(msg)


def to_plain(value: Any) -> Any:
    """Turn a model value into JSON-ready lists, dicts, strings and numbers."""
    if isinstance(value, Enum):
        return value.value
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, type):
        return to_dict()
    plain = getattr(value, "_plain", None)
    if callable(plain) and not isinstance(value, type):
        return plain()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    return value


def to_json_string(value: Any) -> str:
    """Compact JSON text of a value."""
    return json.dumps(to_plain(value), separators=(",", ":"))


def to_binary(value: Any) -> bytes:
    """Compact JSON bytes of a value."""
    return to_json_string(value).encode("utf-8")


def from_binary(data: bytes | str) -> Any:
    """Parse JSON bytes into plain values."""
    try:
        return json.loads(data)
    except (ValueError, TypeError) as exc:
        raise DeserializationError() from exc


def validate_address(address: str) -> str:
    """Check that an address is usable and normalised; return it."""
    if not isinstance(address, str) or len(address) < 3:
        raise StdError("Invalid input: human address too short")
    if any(ch.isspace() for ch in address):
        raise StdError("Invalid input: address contains whitespace")
    if address.lower() != address:
        raise StdError("Invalid input: address not normalized")
    return address
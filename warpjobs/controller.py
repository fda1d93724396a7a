"""Entry points of the controller contract: setup, dispatch, upgrades and sub-message replies."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from . import accounts as account_ops
from . import admin, jobs, queries
from .account import GenericMsg, WithdrawAssetsMsg
from .errors import (
    AccountAlreadyExists,
    ContractError,
    DeserializationError,
    InvalidArguments,
    JobAlreadyExists,
    JobAlreadyFinished,
    StdError,
    map_contract_error,
    overflow_error,
)
from .models import (
    Account,
    Attribute,
    BankSend,
    Coin,
    Config,
    Env,
    Event,
    Job,
    JobStatus,
    MessageInfo,
    Reply,
    Response,
    State,
    WasmExecute,
    from_binary,
    fund_from_dict,
    to_binary,
    to_json_string,
    validate_address,
)
from .store import CONFIG, STATE, Deps, Item, accounts, finished_jobs, pending_jobs

ACCOUNT_CREATION_REPLY_ID = 0
_U64_MAX = 2**64 - 1


@dataclass(kw_only=True)
class InstantiateMsg:
    fee_denom: str
    warp_account_code_id: int
    minimum_reward: int
    creation_fee: int
    cancellation_fee: int
    resolver_address: str
    t_max: int
    t_min: int
    a_max: int
    a_min: int
    q_max: int
    owner: str | None = None
    fee_collector: str | None = None


@dataclass
class MigrateMsg:
    warp_account_code_id: int
    resolver_address: str


@dataclass
class _V1State:
    current_job_id: int
    current_template_id: int
    q: int

    def to_dict(self) -> dict:
        return {
            "current_job_id": str(self.current_job_id),
            "current_template_id": str(self.current_template_id),
            "q": str(self.q),
        }

    @classmethod
    def from_dict(cls, data: dict) -> _V1State:
        return cls(
            current_job_id=int(data["current_job_id"]),
            current_template_id=int(data["current_template_id"]),
            q=int(data["q"]),
        )


_V1_CONFIG_NUMBERS = (
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
class _V1Config:
    owner: str
    fee_denom: str
    fee_collector: str
    warp_account_code_id: int
    minimum_reward: int
    creation_fee_percentage: int
    cancellation_fee_percentage: int
    t_max: int
    t_min: int
    a_max: int
    a_min: int
    q_max: int

    def to_dict(self) -> dict:
        return {
            f.name: str(getattr(self, f.name))
            if f.name in _V1_CONFIG_NUMBERS
            else getattr(self, f.name)
            for f in dataclasses.fields(self)
        }

    @classmethod
    def from_dict(cls, data: dict) -> _V1Config:
        return cls(
            **{
                f.name: int(data[f.name]) if f.name in _V1_CONFIG_NUMBERS else data[f.name]
                for f in dataclasses.fields(cls)
            }
        )


_V1_STATE = Item("state", _V1State)
_V1_CONFIG = Item("config", _V1Config)


_EXECUTE_HANDLERS: dict[str, tuple[type, Callable[..., Response]]] = {
    "create_job": (jobs.CreateJobMsg, jobs.create_job),
    "delete_job": (jobs.DeleteJobMsg, jobs.delete_job),
    "update_job": (jobs.UpdateJobMsg, jobs.update_job),
    "execute_job": (jobs.ExecuteJobMsg, jobs.execute_job),
    "evict_job": (jobs.EvictJobMsg, jobs.evict_job),
    "create_account": (account_ops.CreateAccountMsg, account_ops.create_account),
    "update_config": (admin.UpdateConfigMsg, admin.update_config),
    "migrate_accounts": (admin.MigrateAccountsMsg, admin.migrate_accounts),
    "migrate_pending_jobs": (admin.MigrateJobsMsg, admin.migrate_pending_jobs),
    "migrate_finished_jobs": (admin.MigrateJobsMsg, admin.migrate_finished_jobs),
}

_QUERY_HANDLERS: dict[str, tuple[type, Callable[..., Any]]] = {
    "query_job": (queries.QueryJobMsg, queries.query_job),
    "query_jobs": (queries.QueryJobsMsg, queries.query_jobs),
    "query_account": (queries.QueryAccountMsg, queries.query_account),
    "query_accounts": (queries.QueryAccountsMsg, queries.query_accounts),
    "query_config": (queries.QueryConfigMsg, queries.query_config),
}


def _dispatch(msg: Any, table: dict[str, tuple[type, Callable[..., Any]]]):
    """Pick the handler for a message given as a one-entry mapping of tag to payload."""
    if not isinstance(msg, Mapping) or len(msg) != 1:
        raise InvalidArguments()
    tag, payload = next(iter(msg.items()))
    try:
        expected, handler = table[tag]
    except KeyError:
        raise InvalidArguments() from None
    if not isinstance(payload, expected):
        raise InvalidArguments()
    return handler, payload


def _checked_inc(value: int) -> int:
    if value + 1 > _U64_MAX:
        raise overflow_error()
    return value + 1


def instantiate(deps: Deps, env: Env, info: MessageInfo, msg: InstantiateMsg) -> Response:
    config = Config(
        owner=validate_address(msg.owner if msg.owner is not None else info.sender),
        fee_denom=msg.fee_denom,
        fee_collector=validate_address(
            msg.fee_collector if msg.fee_collector is not None else info.sender
        ),
        warp_account_code_id=msg.warp_account_code_id,
        minimum_reward=msg.minimum_reward,
        creation_fee_percentage=msg.creation_fee,
        cancellation_fee_percentage=msg.cancellation_fee,
        resolver_address=validate_address(msg.resolver_address),
        t_max=msg.t_max,
        t_min=msg.t_min,
        a_max=msg.a_max,
        a_min=msg.a_min,
        q_max=msg.q_max,
    )
    admin.validate_config(config)

    STATE.save(deps.storage, State(current_job_id=1, q=0))
    CONFIG.save(deps.storage, config)
    return Response()


def execute(deps: Deps, env: Env, info: MessageInfo, msg: Mapping[str, Any]) -> Response:
    """Run an execute message given as {tag: payload}, e.g. {"create_job": CreateJobMsg(...)}."""
    handler, payload = _dispatch(msg, _EXECUTE_HANDLERS)
    return handler(deps, env, info, payload)


def query(deps: Deps, env: Env, msg: Mapping[str, Any]) -> bytes:
    """Answer a query given as {tag: payload}, as JSON bytes."""
    handler, payload = _dispatch(msg, _QUERY_HANDLERS)
    return to_binary(handler(deps, env, payload))


def migrate(deps: Deps, env: Env, msg: MigrateMsg) -> Response:
    v1_state = _V1_STATE.load(deps.storage)
    v1_config = _V1_CONFIG.load(deps.storage)
    resolver_address = validate_address(msg.resolver_address)

    STATE.save(deps.storage, State(current_job_id=v1_state.current_job_id, q=v1_state.q))
    CONFIG.save(
        deps.storage,
        Config(
            owner=v1_config.owner,
            fee_denom=v1_config.fee_denom,
            fee_collector=v1_config.fee_collector,
            warp_account_code_id=msg.warp_account_code_id,
            minimum_reward=v1_config.minimum_reward,
            creation_fee_percentage=v1_config.creation_fee_percentage,
            cancellation_fee_percentage=v1_config.cancellation_fee_percentage,
            resolver_address=resolver_address,
            t_max=v1_config.t_max,
            t_min=v1_config.t_min,
            a_max=v1_config.a_max,
            a_min=v1_config.a_min,
            q_max=v1_config.q_max,
        ),
    )
    return Response()


def reply(deps: Deps, env: Env, msg: Reply) -> Response:
    """Handle the outcome of an account instantiation (id 0) or of a job run (the job id)."""
    if msg.id == ACCOUNT_CREATION_REPLY_ID:
        return _reply_account_created(deps, msg)
    return _reply_job_executed(deps, env, msg)


def _attribute(event: Event, key: str) -> str:
    for attribute in event.attributes:
        if attribute.key == key:
            return attribute.value
    raise StdError(f"cannot find `{key}` attribute")


def _parse_coins(text: str) -> list[Coin]:
    data = from_binary(text)
    if not isinstance(data, list):
        raise DeserializationError()
    try:
        return [Coin(denom=c["denom"], amount=int(c["amount"])) for c in data]
    except (KeyError, TypeError, ValueError) as exc:
        raise DeserializationError() from exc


def _parse_cw_funds(text: str) -> list:
    data = from_binary(text)
    if data is None:
        return []
    if not isinstance(data, list):
        raise DeserializationError()
    return [fund_from_dict(fund) for fund in data]


def _reply_account_created(deps: Deps, msg: Reply) -> Response:
    if msg.error is not None:
        raise StdError(msg.error)

    event = next(
        (
            e
            for e in msg.events
            if any(a.key == "action" and a.value == "instantiate" for a in e.attributes)
        ),
        None,
    )
    if event is None:
        raise StdError("cannot find `instantiate` event")

    owner = _attribute(event, "owner")
    address = _attribute(event, "contract_addr")
    funds = _parse_coins(_attribute(event, "funds"))
    cw_funds = _parse_cw_funds(_attribute(event, "cw_funds"))

    msgs = account_ops.fund_transfer_msgs(deps, cw_funds, owner, address)

    account_map = accounts()
    owner_addr = validate_address(owner)
    if account_map.has(deps.storage, owner_addr):
        raise AccountAlreadyExists()

    account_map.save(
        deps.storage,
        owner_addr,
        Account(owner=owner_addr, account=validate_address(address)),
    )
    return (
        Response()
        .add_attribute("action", "save_account")
        .add_attribute("owner", owner)
        .add_attribute("account_address", address)
        .add_attribute("funds", to_json_string(funds))
        .add_attribute("cw_funds", to_json_string(cw_funds))
        .add_messages(msgs)
    )


def _account_send(account_addr: str, to_address: str, coin: Coin) -> WasmExecute:
    return WasmExecute(
        contract_addr=account_addr,
        msg=to_binary({"generic": GenericMsg(msgs=[BankSend(to_address, [coin])])}),
        funds=[],
    )


def _reply_job_executed(deps: Deps, env: Env, msg: Reply) -> Response:
    state = STATE.load(deps.storage)
    new_status = JobStatus.EXECUTED if msg.error is None else JobStatus.FAILED

    pending = pending_jobs()
    finished = finished_jobs()
    job = pending.load(deps.storage, msg.id)
    if finished.has(deps.storage, msg.id):
        raise JobAlreadyFinished()
    finished_job = dataclasses.replace(job, status=new_status)

    res_attrs = []
    if msg.error is not None:
        res_attrs.append(
            Attribute("transaction_error", f"{msg.error}. {map_contract_error(msg.error)}")
        )

    account = accounts().load(deps.storage, finished_job.owner)
    config = CONFIG.load(deps.storage)
    fee = finished_job.reward * config.creation_fee_percentage // 100
    account_amount = deps.querier.query_balance(account.account, config.fee_denom).amount

    msgs: list[WasmExecute] = []
    new_job_attrs: list[Attribute] = []
    new_job: Job | None = None

    if finished_job.recurring:
        if account_amount < fee + finished_job.reward:
            new_job_attrs.append(Attribute("action", "recur_job"))
            new_job_attrs.append(Attribute("creation_status", "failed_insufficient_fee"))
        elif finished_job.status not in (JobStatus.EXECUTED, JobStatus.FAILED):
            new_job_attrs.append(Attribute("action", "recur_job"))
            new_job_attrs.append(Attribute("creation_status", "failed_invalid_job_status"))
        else:
            new_vars = deps.querier.query_smart(
                config.resolver_address,
                {
                    "query_apply_var_fn": {
                        "vars": finished_job.vars,
                        "status": finished_job.status.value,
                    }
                },
            )
            should_terminate = False
            if finished_job.terminate_condition is not None:
                try:
                    resolution = deps.querier.query_smart(
                        config.resolver_address,
                        {
                            "query_resolve_condition": {
                                "condition": finished_job.terminate_condition,
                                "vars": new_vars,
                            }
                        },
                    )
                except ContractError as exc:
                    should_terminate = True
                    new_job_attrs.append(Attribute("action", "recur_job"))
                    new_job_attrs.append(Attribute("job_terminate_condition_status", "invalid"))
                    new_job_attrs.append(
                        Attribute(
                            "creation_status",
                            "terminated_due_to_terminate_condition_resolves_to_error. "
                            f"{exc}",
                        )
                    )
                else:
                    new_job_attrs.append(Attribute("job_terminate_condition_status", "valid"))
                    if resolution:
                        should_terminate = True
                        new_job_attrs.append(Attribute("action", "recur_job"))
                        new_job_attrs.append(
                            Attribute(
                                "creation_status",
                                "terminated_due_to_terminate_condition_resolves_to_true",
                            )
                        )

            if not should_terminate:
                if pending.has(deps.storage, state.current_job_id):
                    raise JobAlreadyExists()
                new_job = dataclasses.replace(
                    finished_job,
                    id=state.current_job_id,
                    last_update_time=env.block.seconds,
                    status=JobStatus.PENDING,
                    vars=new_vars,
                    labels=list(finished_job.labels),
                    assets_to_withdraw=list(finished_job.assets_to_withdraw),
                )
                state = State(
                    current_job_id=_checked_inc(state.current_job_id),
                    q=_checked_inc(state.q),
                )

                msgs.append(
                    _account_send(
                        account.account, config.fee_collector, Coin(config.fee_denom, fee)
                    )
                )
                msgs.append(
                    _account_send(
                        account.account,
                        env.contract_address,
                        Coin(config.fee_denom, new_job.reward),
                    )
                )
                msgs.append(
                    WasmExecute(
                        contract_addr=account.account,
                        msg=to_binary(
                            {
                                "withdraw_assets": WithdrawAssetsMsg(
                                    asset_infos=list(new_job.assets_to_withdraw)
                                )
                            }
                        ),
                        funds=[],
                    )
                )

                new_job_attrs.extend(
                    [
                        Attribute("action", "create_job"),
                        Attribute("job_id", new_job.id),
                        Attribute("job_owner", new_job.owner),
                        Attribute("job_name", new_job.name),
                        Attribute("job_status", to_json_string(new_job.status)),
                        Attribute("job_condition", to_json_string(new_job.condition)),
                        Attribute("job_msgs", to_json_string(new_job.msgs)),
                        Attribute("job_reward", new_job.reward),
                        Attribute("job_creation_fee", fee),
                        Attribute("job_last_updated_time", new_job.last_update_time),
                        Attribute("sub_action", "recur_job"),
                    ]
                )

    pending.remove(deps.storage, msg.id)
    finished.save(deps.storage, msg.id, finished_job)
    if new_job is not None:
        pending.save(deps.storage, new_job.id, new_job)
    STATE.save(deps.storage, state)

    return (
        Response()
        .add_attribute("action", "execute_reply")
        .add_attribute("job_id", job.id)
        .add_attributes(res_attrs)
        .add_attributes(new_job_attrs)
        .add_messages(msgs)
    )
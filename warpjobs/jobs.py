"""Job lifecycle in the controller: creation, update, cancellation, execution, eviction."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from .account import GenericMsg
from .errors import (
    AccountDoesNotExist,
    ContractError,
    EvictionPeriodNotElapsed,
    JobAlreadyExists,
    JobAlreadyFinished,
    JobDoesNotExist,
    JobNotActive,
    NameTooLong,
    NameTooShort,
    NoMsgToTrigger,
    RewardTooSmall,
    StdError,
    Unauthorized,
    overflow_error,
)
from .models import (
    Attribute,
    BankSend,
    Coin,
    Cw20Asset,
    Cw721Asset,
    Env,
    Job,
    JobStatus,
    MessageInfo,
    NativeAsset,
    ReplyOn,
    Response,
    State,
    SubMsg,
    WasmExecute,
    to_binary,
    to_json_string,
    to_plain,
)
from .store import CONFIG, STATE, Deps, accounts, finished_jobs, pending_jobs

MAX_TEXT_LENGTH = 280
_U64_MAX = 2**64 - 1


@dataclass
class CreateJobMsg:
    name: str
    reward: int
    description: str = ""
    labels: list[str] = field(default_factory=list)
    condition: str | None = None
    terminate_condition: str | None = None
    msgs: str = "[]"
    vars: str = "[]"
    recurring: bool = False
    requeue_on_evict: bool = False
    assets_to_withdraw: list[NativeAsset | Cw20Asset | Cw721Asset] | None = None


@dataclass
class DeleteJobMsg:
    id: int


@dataclass
class UpdateJobMsg:
    id: int
    name: str | None = None
    description: str | None = None
    labels: list[str] | None = None
    added_reward: int | None = None


@dataclass
class ExecuteJobMsg:
    id: int
    external_inputs: list[Any] | None = None


@dataclass
class EvictJobMsg:
    id: int


def _inc(value: int) -> int:
    if value + 1 > _U64_MAX:
        raise overflow_error()
    return value + 1


def _dec(value: int) -> int:
    if value < 1:
        raise overflow_error()
    return value - 1


def _sub(a: int, b: int) -> int:
    if b > a:
        raise overflow_error()
    return a - b


def _check_name(name: str) -> None:
    if len(name.encode("utf-8")) > MAX_TEXT_LENGTH:
        raise NameTooLong()
    if not name:
        raise NameTooShort()


def _account_send(account_addr: str, to_address: str, coin: Coin) -> WasmExecute:
    """Have the user's account contract send a coin."""
    return WasmExecute(
        contract_addr=account_addr,
        msg=to_binary({"generic": GenericMsg(msgs=[BankSend(to_address, [coin])])}),
        funds=[],
    )


def create_job(deps: Deps, env: Env, info: MessageInfo, data: CreateJobMsg) -> Response:
    state = STATE.load(deps.storage)
    config = CONFIG.load(deps.storage)

    _check_name(data.name)

    if data.reward < config.minimum_reward or data.reward == 0:
        raise RewardTooSmall()

    deps.querier.query_smart(
        config.resolver_address,
        {
            "query_validate_job_creation": {
                "condition": data.condition,
                "terminate_condition": data.terminate_condition,
                "vars": data.vars,
                "msgs": data.msgs,
            }
        },
    )

    record = accounts().find_by_account(deps.storage, info.sender)
    if record is None:
        try:
            account = accounts().load(deps.storage, info.sender)
        except StdError as exc:
            raise AccountDoesNotExist() from exc
    else:
        account = record[1]

    new_state = State(current_job_id=_inc(state.current_job_id), q=_inc(state.q))

    def create(existing: Job | None) -> Job:
        if existing is not None:
            raise JobAlreadyExists()
        return Job(
            id=state.current_job_id,
            owner=account.owner,
            last_update_time=env.block.seconds,
            name=data.name,
            status=JobStatus.PENDING,
            condition=data.condition,
            terminate_condition=data.terminate_condition,
            recurring=data.recurring,
            requeue_on_evict=data.requeue_on_evict,
            vars=data.vars,
            msgs=data.msgs,
            reward=data.reward,
            description=data.description,
            labels=list(data.labels),
            assets_to_withdraw=list(data.assets_to_withdraw or []),
        )

    job = pending_jobs().update(deps.storage, state.current_job_id, create)
    STATE.save(deps.storage, new_state)

    fee = data.reward * config.creation_fee_percentage // 100

    reward_send_msgs = [
        _account_send(
            account.account, env.contract_address, Coin(config.fee_denom, data.reward)
        ),
        _account_send(account.account, config.fee_collector, Coin(config.fee_denom, fee)),
    ]

    return (
        Response()
        .add_messages(reward_send_msgs)
        .add_attribute("action", "create_job")
        .add_attribute("job_id", job.id)
        .add_attribute("job_owner", job.owner)
        .add_attribute("job_name", job.name)
        .add_attribute("job_status", to_json_string(job.status))
        .add_attribute("job_condition", to_json_string(job.condition))
        .add_attribute("job_msgs", to_json_string(job.msgs))
        .add_attribute("job_reward", job.reward)
        .add_attribute("job_creation_fee", fee)
        .add_attribute("job_last_updated_time", job.last_update_time)
    )


def delete_job(deps: Deps, env: Env, info: MessageInfo, data: DeleteJobMsg) -> Response:
    config = CONFIG.load(deps.storage)
    state = STATE.load(deps.storage)
    job = pending_jobs().load(deps.storage, data.id)

    if job.status != JobStatus.PENDING:
        raise JobNotActive()
    if job.owner != info.sender:
        raise Unauthorized()

    account = accounts().load(deps.storage, info.sender)

    if finished_jobs().has(deps.storage, data.id):
        raise JobAlreadyFinished()
    new_state = State(current_job_id=state.current_job_id, q=_dec(state.q))
    fee = job.reward * config.cancellation_fee_percentage // 100
    refund = _sub(job.reward, fee)

    pending_jobs().remove(deps.storage, data.id)
    finished_jobs().save(
        deps.storage, data.id, dataclasses.replace(job, status=JobStatus.CANCELLED)
    )
    STATE.save(deps.storage, new_state)

    send_msgs = [
        BankSend(account.account, [Coin(config.fee_denom, refund)]),
        BankSend(config.fee_collector, [Coin(config.fee_denom, fee)]),
    ]

    return (
        Response()
        .add_messages(send_msgs)
        .add_attribute("action", "delete_job")
        .add_attribute("job_id", job.id)
        .add_attribute("job_status", to_json_string(job.status))
        .add_attribute("deletion_fee", fee)
    )


def update_job(deps: Deps, env: Env, info: MessageInfo, data: UpdateJobMsg) -> Response:
    job = pending_jobs().load(deps.storage, data.id)
    config = CONFIG.load(deps.storage)

    if info.sender != job.owner:
        raise Unauthorized()

    account = accounts().load(deps.storage, info.sender)

    added_reward = data.added_reward or 0

    if data.name is not None:
        _check_name(data.name)

    fee = added_reward * config.creation_fee_percentage // 100
    if added_reward != 0 and fee == 0:
        raise RewardTooSmall()

    def apply(existing: Job | None) -> Job:
        if existing is None:
            raise JobDoesNotExist()
        return dataclasses.replace(
            existing,
            last_update_time=(
                env.block.seconds
                if added_reward > config.minimum_reward
                else existing.last_update_time
            ),
            name=existing.name if data.name is None else data.name,
            description=existing.description if data.description is None else data.description,
            labels=existing.labels if data.labels is None else list(data.labels),
            reward=existing.reward + added_reward,
        )

    job = pending_jobs().update(deps.storage, data.id, apply)

    send_msgs = []
    if added_reward > 0:
        send_msgs.append(
            _account_send(
                account.account, env.contract_address, Coin(config.fee_denom, added_reward)
            )
        )
        send_msgs.append(
            _account_send(account.account, config.fee_collector, Coin(config.fee_denom, fee))
        )

    return (
        Response()
        .add_messages(send_msgs)
        .add_attribute("action", "update_job")
        .add_attribute("job_id", job.id)
        .add_attribute("job_owner", job.owner)
        .add_attribute("job_name", job.name)
        .add_attribute("job_status", to_json_string(job.status))
        .add_attribute("job_condition", to_json_string(job.condition))
        .add_attribute("job_msgs", to_json_string(job.msgs))
        .add_attribute("job_reward", job.reward)
        .add_attribute("job_update_fee", fee)
        .add_attribute("job_last_updated_time", job.last_update_time)
    )


def execute_job(deps: Deps, env: Env, info: MessageInfo, data: ExecuteJobMsg) -> Response:
    state = STATE.load(deps.storage)
    config = CONFIG.load(deps.storage)
    job = pending_jobs().load(deps.storage, data.id)
    account = accounts().load(deps.storage, job.owner)

    if not accounts().has(deps.storage, info.sender):
        raise AccountDoesNotExist()

    keeper_account = accounts().load(deps.storage, info.sender)

    if job.status != JobStatus.PENDING:
        raise JobNotActive()

    hydrated_vars = deps.querier.query_smart(
        config.resolver_address,
        {
            "query_hydrate_vars": {
                "vars": job.vars,
                "external_inputs": to_plain(data.external_inputs),
            }
        },
    )

    resolution_error: ContractError | None = None
    resolution = True
    if job.condition is not None:
        try:
            resolution = deps.querier.query_smart(
                config.resolver_address,
                {
                    "query_resolve_condition": {
                        "condition": job.condition,
                        "vars": hydrated_vars,
                    }
                },
            )
        except ContractError as exc:
            resolution_error = exc

    attrs: list[Attribute] = []
    submsgs: list[SubMsg] = []

    if resolution_error is not None:
        attrs.append(Attribute("job_condition_status", "invalid"))
        attrs.append(Attribute("error", str(resolution_error)))
        new_state = State(current_job_id=state.current_job_id, q=_dec(state.q))
        failed = dataclasses.replace(job, status=JobStatus.FAILED, vars=hydrated_vars)
        finished_jobs().save(deps.storage, data.id, failed)
        pending_jobs().remove(deps.storage, data.id)
        STATE.save(deps.storage, new_state)
    else:
        attrs.append(Attribute("job_condition_status", "valid"))
        if not resolution:
            raise JobNotActive()

        warp_msgs = deps.querier.query_smart(
            config.resolver_address,
            {"query_hydrate_msgs": {"msgs": job.msgs, "vars": hydrated_vars}},
        )
        if not warp_msgs:
            raise NoMsgToTrigger()

        submsgs.append(
            SubMsg(
                id=job.id,
                msg=WasmExecute(
                    contract_addr=account.account,
                    msg=to_binary({"warp_msgs": warp_msgs}),
                    funds=[],
                ),
                gas_limit=None,
                reply_on=ReplyOn.ALWAYS,
            )
        )

    reward_msg = BankSend(keeper_account.account, [Coin(config.fee_denom, job.reward)])

    return (
        Response()
        .add_submessages(submsgs)
        .add_message(reward_msg)
        .add_attribute("action", "execute_job")
        .add_attribute("executor", info.sender)
        .add_attribute("job_id", job.id)
        .add_attribute("job_reward", job.reward)
        .add_attributes(attrs)
    )


def evict_job(deps: Deps, env: Env, info: MessageInfo, data: EvictJobMsg) -> Response:
    config = CONFIG.load(deps.storage)
    state = STATE.load(deps.storage)
    job = pending_jobs().load(deps.storage, data.id)
    account = accounts().load(deps.storage, job.owner)

    account_amount = deps.querier.query_balance(account.account, config.fee_denom).amount

    if job.status != JobStatus.PENDING:
        raise Unauthorized()

    if state.q < config.q_max:
        t = config.t_max - state.q * (config.t_max - config.t_min) // config.q_max
        a = config.a_min
    else:
        t = config.t_min
        a = config.a_max

    if env.block.seconds - job.last_update_time < t:
        raise EvictionPeriodNotElapsed()

    now = env.block.seconds
    cosmos_msgs: list[Any] = []

    if job.requeue_on_evict and account_amount >= a:
        cosmos_msgs.append(_account_send(account.account, info.sender, Coin(config.fee_denom, a)))

        def requeue(existing: Job | None) -> Job:
            if existing is None:
                raise JobDoesNotExist()
            return dataclasses.replace(
                existing, last_update_time=now, status=JobStatus.PENDING
            )

        job_status = pending_jobs().update(deps.storage, data.id, requeue).status
    else:
        if finished_jobs().has(deps.storage, data.id):
            raise JobAlreadyExists()
        new_state = State(current_job_id=state.current_job_id, q=_dec(state.q))
        refund = _sub(job.reward, a)

        pending_jobs().remove(deps.storage, data.id)
        evicted = dataclasses.replace(job, last_update_time=now, status=JobStatus.EVICTED)
        finished_jobs().save(deps.storage, data.id, evicted)
        job_status = evicted.status

        cosmos_msgs.extend(
            [
                BankSend(info.sender, [Coin(config.fee_denom, a)]),
                BankSend(account.account, [Coin(config.fee_denom, refund)]),
            ]
        )
        STATE.save(deps.storage, new_state)

    return (
        Response()
        .add_attribute("action", "evict_job")
        .add_attribute("job_id", job.id)
        .add_attribute("job_status", to_json_string(job_status))
        .add_messages(cosmos_msgs)
    )
"""Administration of the controller: configuration updates and data migrations."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from .errors import (
    CancellationFeeTooHigh,
    CreationFeeTooHigh,
    DeserializationError,
    MaxFeeUnderMinFee,
    MaxTimeUnderMinTime,
    RewardSmallerThanFee,
    Unauthorized,
)
from .models import (
    Config,
    Env,
    Job,
    JobStatus,
    MessageInfo,
    Response,
    WasmMigrate,
    asset_from_dict,
    to_binary,
    to_json_string,
    validate_address,
)
from .store import CONFIG, Deps, JobMap, Storage, accounts, finished_jobs, pending_jobs

LEGACY_PENDING_JOBS = "pending_jobs_v2"
LEGACY_FINISHED_JOBS = "finished_jobs_v2"

_OPTIONAL_NUMBERS = (
    "minimum_reward",
    "creation_fee_percentage",
    "cancellation_fee_percentage",
    "a_max",
    "a_min",
    "t_max",
    "t_min",
    "q_max",
)


@dataclass
class UpdateConfigMsg:
    owner: str | None = None
    fee_collector: str | None = None
    minimum_reward: int | None = None
    creation_fee_percentage: int | None = None
    cancellation_fee_percentage: int | None = None
    a_max: int | None = None
    a_min: int | None = None
    t_max: int | None = None
    t_min: int | None = None
    q_max: int | None = None


@dataclass
class MigrateAccountsMsg:
    warp_account_code_id: int
    start_after: str | None = None
    limit: int = 50


@dataclass
class MigrateJobsMsg:
    start_after: int | None = None
    limit: int = 50


def validate_config(config: Config) -> None:
    """Raise if the eviction and fee settings are inconsistent."""
    if config.a_max < config.a_min:
        raise MaxFeeUnderMinFee()
    if config.t_max < config.t_min:
        raise MaxTimeUnderMinTime()
    if config.minimum_reward < config.a_min:
        raise RewardSmallerThanFee()
    if config.creation_fee_percentage > 100:
        raise CreationFeeTooHigh()
    if config.cancellation_fee_percentage > 100:
        raise CancellationFeeTooHigh()


def _require_owner(storage: Storage, info: MessageInfo) -> Config:
    config = CONFIG.load(storage)
    if info.sender != config.owner:
        raise Unauthorized()
    return config


def update_config(deps: Deps, env: Env, info: MessageInfo, data: UpdateConfigMsg) -> Response:
    config = _require_owner(deps.storage, info)

    changes: dict[str, Any] = {}
    if data.owner is not None:
        changes["owner"] = validate_address(data.owner)
    if data.fee_collector is not None:
        changes["fee_collector"] = validate_address(data.fee_collector)
    for name in _OPTIONAL_NUMBERS:
        value = getattr(data, name)
        if value is not None:
            changes[name] = value
    config = dataclasses.replace(config, **changes)

    validate_config(config)
    CONFIG.save(deps.storage, config)

    return (
        Response()
        .add_attribute("action", "update_config")
        .add_attribute("config_owner", config.owner)
        .add_attribute("config_fee_collector", config.fee_collector)
        .add_attribute("config_minimum_reward", config.minimum_reward)
        .add_attribute("config_creation_fee_percentage", config.creation_fee_percentage)
        .add_attribute("config_cancellation_fee_percentage", config.cancellation_fee_percentage)
        .add_attribute("config_a_max", config.a_max)
        .add_attribute("config_a_min", config.a_min)
        .add_attribute("config_t_max", config.t_max)
        .add_attribute("config_t_min", config.t_min)
        .add_attribute("config_q_max", config.q_max)
    )


def migrate_accounts(
    deps: Deps, env: Env, info: MessageInfo, msg: MigrateAccountsMsg
) -> Response:
    _require_owner(deps.storage, info)
    start_after = None if msg.start_after is None else validate_address(msg.start_after)

    account_map = accounts()
    migration_msgs = [
        WasmMigrate(
            contract_addr=account.account,
            new_code_id=msg.warp_account_code_id,
            msg=to_binary({}),
        )
        for _, account in account_map.range(deps.storage, start_after, msg.limit)
    ]
    return Response().add_messages(migration_msgs)


def _upgrade_variable(var: Any) -> dict:
    if not isinstance(var, dict) or len(var) != 1:
        raise DeserializationError()
    tag, body = next(iter(var.items()))
    if tag == "static":
        return {
            "static": {
                "kind": body["kind"],
                "name": body["name"],
                "encode": False,
                "value": body["value"],
                "update_fn": body.get("update_fn"),
            }
        }
    if tag in ("external", "query"):
        return {
            tag: {
                "kind": body["kind"],
                "name": body["name"],
                "encode": False,
                "init_fn": body["init_fn"],
                "reinitialize": body["reinitialize"],
                "value": body.get("value"),
                "update_fn": body.get("update_fn"),
            }
        }
    raise DeserializationError()


def upgrade_legacy_job(data: dict) -> Job:
    """Turn a stored job of the previous layout into the current one."""
    try:
        new_vars = [_upgrade_variable(var) for var in data["vars"]]
        msgs = data["msgs"]
        if not isinstance(msgs, list) or not all(isinstance(m, str) for m in msgs):
            raise DeserializationError()
        return Job(
            id=int(data["id"]),
            owner=data["owner"],
            last_update_time=int(data["last_update_time"]),
            name=data["name"],
            description=data["description"],
            labels=list(data["labels"]),
            status=JobStatus(data["status"]),
            condition=to_json_string(data["condition"]),
            terminate_condition=None,
            msgs="[" + "".join(msgs) + "]",
            vars=to_json_string(new_vars),
            recurring=bool(data["recurring"]),
            requeue_on_evict=bool(data["requeue_on_evict"]),
            reward=int(data["reward"]),
            assets_to_withdraw=[asset_from_dict(a) for a in data["assets_to_withdraw"]],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DeserializationError() from exc


def _migrate_jobs(storage: Storage, legacy_namespace: str, target: JobMap, msg: MigrateJobsMsg):
    legacy = JobMap(legacy_namespace)
    for key in legacy.keys(storage, msg.start_after, msg.limit):
        target.save(storage, key, upgrade_legacy_job(storage.get(legacy_namespace, key)))


def migrate_pending_jobs(deps: Deps, env: Env, info: MessageInfo, msg: MigrateJobsMsg) -> Response:
    _require_owner(deps.storage, info)
    _migrate_jobs(deps.storage, LEGACY_PENDING_JOBS, pending_jobs(), msg)
    return Response()


def migrate_finished_jobs(
    deps: Deps, env: Env, info: MessageInfo, msg: MigrateJobsMsg
) -> Response:
    _require_owner(deps.storage, info)
    _migrate_jobs(deps.storage, LEGACY_FINISHED_JOBS, finished_jobs(), msg)
    return Response()
import dataclasses
import json

import pytest

from warpjobs.admin import (
    LEGACY_FINISHED_JOBS,
    LEGACY_PENDING_JOBS,
    MigrateAccountsMsg,
    MigrateJobsMsg,
    UpdateConfigMsg,
    migrate_accounts,
    migrate_finished_jobs,
    migrate_pending_jobs,
    update_config,
    upgrade_legacy_job,
    validate_config,
)
from warpjobs.errors import (
    CancellationFeeTooHigh,
    CreationFeeTooHigh,
    DeserializationError,
    MaxFeeUnderMinFee,
    MaxTimeUnderMinTime,
    RewardSmallerThanFee,
    StdError,
    Unauthorized,
)
from warpjobs.models import (
    Account,
    Config,
    Env,
    JobStatus,
    MessageInfo,
    NativeAsset,
    WasmMigrate,
)
from warpjobs.store import CONFIG, Deps, accounts, finished_jobs, pending_jobs


def _config():
    return Config(
        owner="owner",
        fee_denom="uluna",
        fee_collector="collector",
        warp_account_code_id=7,
        minimum_reward=100,
        creation_fee_percentage=5,
        cancellation_fee_percentage=5,
        resolver_address="resolver",
        t_max=100,
        t_min=10,
        a_max=50,
        a_min=10,
        q_max=10,
    )


@pytest.fixture
def deps():
    d = Deps()
    CONFIG.save(d.storage, _config())
    return d


OWNER = MessageInfo("owner")


def _legacy_job(job_id, reward=500):
    return {
        "id": str(job_id),
        "owner": "alice",
        "last_update_time": "1000",
        "name": f"job{job_id}",
        "description": "desc",
        "labels": ["a"],
        "status": "pending",
        "condition": {"expr": {"bool": "$warp.variable.v"}},
        "msgs": ["{\"a\":1}", "{\"b\":2}"],
        "vars": [
            {"static": {"kind": "string", "name": "v", "value": "x", "update_fn": None}},
            {
                "query": {
                    "kind": "int",
                    "name": "q",
                    "init_fn": {"query": {}, "selector": "$"},
                    "reinitialize": True,
                    "value": None,
                    "update_fn": None,
                }
            },
        ],
        "recurring": False,
        "requeue_on_evict": True,
        "reward": str(reward),
        "assets_to_withdraw": [{"native": "uluna"}],
    }


def test_update_config_unauthorized(deps):
    with pytest.raises(Unauthorized):
        update_config(deps, Env(), MessageInfo("mallory"), UpdateConfigMsg(a_max=60))


def test_update_config_applies_and_saves(deps):
    res = update_config(
        deps, Env(), OWNER, UpdateConfigMsg(owner="newowner", a_max=60, q_max=20)
    )
    saved = CONFIG.load(deps.storage)
    assert saved == dataclasses.replace(_config(), owner="newowner", a_max=60, q_max=20)
    attrs = {a.key: a.value for a in res.attributes}
    assert attrs["action"] == "update_config"
    assert attrs["config_owner"] == "newowner"
    assert attrs["config_a_max"] == "60"
    assert attrs["config_fee_collector"] == "collector"
    assert len(res.attributes) == 11


def test_update_config_keeps_storage_on_error(deps):
    with pytest.raises(MaxFeeUnderMinFee):
        update_config(deps, Env(), OWNER, UpdateConfigMsg(a_max=5))
    assert CONFIG.load(deps.storage) == _config()


def test_update_config_invalid_address(deps):
    with pytest.raises(StdError):
        update_config(deps, Env(), OWNER, UpdateConfigMsg(fee_collector="Bad Addr"))


@pytest.mark.parametrize(
    "changes, error",
    [
        ({"a_max": 5}, MaxFeeUnderMinFee),
        ({"t_max": 5}, MaxTimeUnderMinTime),
        ({"minimum_reward": 5}, RewardSmallerThanFee),
        ({"creation_fee_percentage": 101}, CreationFeeTooHigh),
        ({"cancellation_fee_percentage": 101}, CancellationFeeTooHigh),
    ],
)
def test_validate_config_errors(changes, error):
    with pytest.raises(error):
        validate_config(dataclasses.replace(_config(), **changes))


def test_validate_config_accepts_bounds():
    config = dataclasses.replace(
        _config(), creation_fee_percentage=100, cancellation_fee_percentage=100, a_max=10
    )
    assert validate_config(config) is None
    assert config.a_max == config.a_min


def test_migrate_accounts(deps):
    for name in ("aaa", "bbb", "ccc"):
        accounts().save(deps.storage, name, Account(owner=name, account=f"{name}_acct"))
    res = migrate_accounts(deps, Env(), OWNER, MigrateAccountsMsg(9, limit=2))
    msgs = [m.msg for m in res.messages]
    assert msgs == [
        WasmMigrate(contract_addr="aaa_acct", new_code_id=9, msg=b"{}"),
        WasmMigrate(contract_addr="bbb_acct", new_code_id=9, msg=b"{}"),
    ]
    res = migrate_accounts(deps, Env(), OWNER, MigrateAccountsMsg(9, start_after="bbb"))
    assert [m.msg.contract_addr for m in res.messages] == ["ccc_acct"]


def test_migrate_accounts_unauthorized(deps):
    with pytest.raises(Unauthorized):
        migrate_accounts(deps, Env(), MessageInfo("mallory"), MigrateAccountsMsg(9))


def test_upgrade_legacy_job():
    job = upgrade_legacy_job(_legacy_job(3))
    assert job.id == 3
    assert job.status == JobStatus.PENDING
    assert job.msgs == "[" + "{\"a\":1}" + "{\"b\":2}" + "]"
    assert json.loads(job.condition) == {"expr": {"bool": "$warp.variable.v"}}
    assert job.terminate_condition is None
    variables = json.loads(job.vars)
    assert variables[0] == {
        "static": {"kind": "string", "name": "v", "encode": False, "value": "x", "update_fn": None}
    }
    assert variables[1]["query"]["encode"] is False
    assert variables[1]["query"]["reinitialize"] is True
    assert job.assets_to_withdraw == [NativeAsset("uluna")]
    assert job.reward == 500


def test_upgrade_legacy_job_invalid():
    data = _legacy_job(1)
    del data["reward"]
    with pytest.raises(DeserializationError):
        upgrade_legacy_job(data)
    data = _legacy_job(1)
    data["vars"] = [{"unknown": {}}]
    with pytest.raises(DeserializationError):
        upgrade_legacy_job(data)


def test_migrate_pending_jobs(deps):
    for job_id in (1, 2, 3):
        deps.storage.set(LEGACY_PENDING_JOBS, job_id, _legacy_job(job_id))
    migrate_pending_jobs(deps, Env(), OWNER, MigrateJobsMsg(start_after=1, limit=1))
    assert not pending_jobs().has(deps.storage, 1)
    assert pending_jobs().load(deps.storage, 2).name == "job2"
    assert not pending_jobs().has(deps.storage, 3)
    assert deps.storage.get(LEGACY_PENDING_JOBS, 2) == _legacy_job(2)


def test_migrate_finished_jobs(deps):
    data = _legacy_job(4)
    data["status"] = "executed"
    deps.storage.set(LEGACY_FINISHED_JOBS, 4, data)
    migrate_finished_jobs(deps, Env(), OWNER, MigrateJobsMsg())
    job = finished_jobs().load(deps.storage, 4)
    assert job.status == JobStatus.EXECUTED
    assert job == upgrade_legacy_job(data)
    assert not pending_jobs().has(deps.storage, 4)


def test_migrate_jobs_unauthorized(deps):
    with pytest.raises(Unauthorized):
        migrate_pending_jobs(deps, Env(), MessageInfo("mallory"), MigrateJobsMsg())
    with pytest.raises(Unauthorized):
        migrate_finished_jobs(deps, Env(), MessageInfo("mallory"), MigrateJobsMsg())
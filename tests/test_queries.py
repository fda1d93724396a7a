import pytest

from warpjobs.errors import StdError
from warpjobs.models import Account, Config, Env, Job, JobStatus
from warpjobs.queries import (
    QueryAccountMsg,
    QueryAccountsMsg,
    QueryConfigMsg,
    QueryJobMsg,
    QueryJobsMsg,
    query_account,
    query_accounts,
    query_config,
    query_job,
    query_jobs,
    query_jobs_by_ids,
    query_jobs_by_reward,
)
from warpjobs.store import CONFIG, Deps, accounts, finished_jobs, pending_jobs


def _job(job_id, reward, owner="owner", name=None, status=JobStatus.PENDING):
    return Job(
        id=job_id,
        owner=owner,
        name=name or f"job{job_id}",
        reward=reward,
        status=status,
    )


def _deps_with_jobs(count):
    deps = Deps()
    for job_id in range(1, count + 1):
        pending_jobs().save(deps.storage, job_id, _job(job_id, job_id * 10))
    return deps


def _config():
    return Config(
        owner="admin",
        fee_denom="uluna",
        fee_collector="collector",
        warp_account_code_id=1,
        minimum_reward=10,
        creation_fee_percentage=5,
        cancellation_fee_percentage=5,
        resolver_address="resolver",
        t_max=100,
        t_min=10,
        a_max=20,
        a_min=10,
        q_max=10,
    )


def test_query_job_successful():
    deps = _deps_with_jobs(2)
    assert query_job(deps, Env(), QueryJobMsg(id=2)).job == _job(2, 20)


def test_query_job_prefers_finished():
    deps = _deps_with_jobs(1)
    done = _job(1, 10, status=JobStatus.EXECUTED)
    finished_jobs().save(deps.storage, 1, done)
    assert query_job(deps, Env(), QueryJobMsg(id=1)).job.status == JobStatus.EXECUTED


def test_query_job_does_not_exist():
    with pytest.raises(StdError):
        query_job(Deps(), Env(), QueryJobMsg(id=9))


def test_query_jobs_successful_under_50():
    deps = _deps_with_jobs(3)
    res = query_jobs(deps, Env(), QueryJobsMsg())
    assert [job.id for job in res.jobs] == [3, 2, 1]
    assert res.total_count == 3


def test_query_jobs_successful_over_50_paginated():
    deps = _deps_with_jobs(60)
    first = query_jobs(deps, Env(), QueryJobsMsg())
    assert first.total_count == 50
    assert [job.id for job in first.jobs] == list(range(60, 10, -1))
    last = first.jobs[-1]
    second = query_jobs(deps, Env(), QueryJobsMsg(start_after=(last.reward, last.id)))
    assert [job.id for job in second.jobs] == list(range(10, 0, -1))


def test_query_jobs_limit_over_50():
    with pytest.raises(StdError, match="Limit must be a max of 50."):
        query_jobs(_deps_with_jobs(1), Env(), QueryJobsMsg(limit=51))


def test_query_jobs_invalid_combination():
    with pytest.raises(StdError, match="Invalid query input"):
        query_jobs(Deps(), Env(), QueryJobsMsg(ids=[1], name="job1"))


def test_query_jobs_successful_by_id_under_50():
    deps = _deps_with_jobs(5)
    res = query_jobs(deps, Env(), QueryJobsMsg(ids=[4, 2]))
    assert [job.id for job in res.jobs] == [4, 2]
    assert res.total_count == 2


def test_query_jobs_successful_by_id_over_50():
    deps = _deps_with_jobs(60)
    res = query_jobs(deps, Env(), QueryJobsMsg(ids=list(range(1, 51))))
    assert res.total_count == 50


def test_query_jobs_by_id_limit_over_50():
    deps = _deps_with_jobs(60)
    with pytest.raises(StdError, match="Number of ids supplied exceeds query limit"):
        query_jobs(deps, Env(), QueryJobsMsg(ids=list(range(1, 52))))


def test_query_jobs_by_ids_filters_status():
    deps = _deps_with_jobs(2)
    finished_jobs().save(deps.storage, 1, _job(1, 10, status=JobStatus.CANCELLED))
    res = query_jobs_by_ids(deps, Env(), [1, 2], JobStatus.PENDING)
    assert [job.id for job in res.jobs] == [2]


def test_query_jobs_by_reward_filters_and_map():
    deps = Deps()
    pending_jobs().save(deps.storage, 1, _job(1, 10, owner="alice"))
    pending_jobs().save(deps.storage, 2, _job(2, 30, owner="bob"))
    pending_jobs().save(deps.storage, 3, _job(3, 20, owner="alice"))
    finished_jobs().save(deps.storage, 4, _job(4, 5, status=JobStatus.FAILED))
    by_owner = query_jobs_by_reward(deps, Env(), None, "alice", None, None, 50)
    assert [job.id for job in by_owner.jobs] == [3, 1]
    failed = query_jobs_by_reward(deps, Env(), None, None, JobStatus.FAILED, None, 50)
    assert [job.id for job in failed.jobs] == [4]
    limited = query_jobs_by_reward(deps, Env(), None, None, None, None, 1)
    assert [job.id for job in limited.jobs] == [2]


def _deps_with_accounts(count):
    deps = Deps()
    for n in range(count):
        owner = f"owner{n:03d}"
        accounts().save(deps.storage, owner, Account(owner=owner, account=f"account{n:03d}"))
    return deps


def test_query_account_successful():
    deps = _deps_with_accounts(2)
    res = query_account(deps, Env(), QueryAccountMsg(owner="owner001"))
    assert res.account == Account(owner="owner001", account="account001")


def test_query_account_missing():
    with pytest.raises(StdError):
        query_account(Deps(), Env(), QueryAccountMsg(owner="nobody"))


def test_query_accounts_successful_under_50():
    deps = _deps_with_accounts(3)
    res = query_accounts(deps, Env(), QueryAccountsMsg())
    assert [a.owner for a in res.accounts] == ["owner000", "owner001", "owner002"]


def test_query_accounts_successful_over_50_paginated():
    deps = _deps_with_accounts(60)
    first = query_accounts(deps, Env(), QueryAccountsMsg())
    assert len(first.accounts) == 50
    second = query_accounts(
        deps, Env(), QueryAccountsMsg(start_after=first.accounts[-1].owner)
    )
    assert [a.owner for a in second.accounts] == [f"owner{n:03d}" for n in range(50, 60)]


def test_query_accounts_invalid_start():
    with pytest.raises(StdError):
        query_accounts(Deps(), Env(), QueryAccountsMsg(start_after="Bad"))


def test_query_config():
    deps = Deps()
    CONFIG.save(deps.storage, _config())
    assert query_config(deps, Env(), QueryConfigMsg()).config == _config()


def test_query_config_missing():
    with pytest.raises(StdError):
        query_config(Deps(), Env(), QueryConfigMsg())
"""Read-only queries of the controller: jobs, accounts and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import islice

from .errors import StdError
from .filters import resolve_filters
from .models import Account, Config, Env, Job, JobStatus, validate_address
from .store import CONFIG, QUERY_PAGE_SIZE, Deps, accounts, finished_jobs, pending_jobs


@dataclass
class QueryJobMsg:
    id: int


@dataclass
class QueryJobsMsg:
    ids: list[int] | None = None
    active: bool | None = None
    name: str | None = None
    owner: str | None = None
    job_status: JobStatus | None = None
    start_after: tuple[int, int] | None = None
    limit: int | None = None

    def valid_query(self) -> bool:
        """At most one of ids, name and owner may be given."""
        given = [value for value in (self.ids, self.name, self.owner) if value is not None]
        return len(given) <= 1


@dataclass
class QueryAccountMsg:
    owner: str


@dataclass
class QueryAccountsMsg:
    start_after: str | None = None
    limit: int | None = None


@dataclass
class QueryConfigMsg:
    pass


@dataclass
class JobResponse:
    job: Job


@dataclass
class JobsResponse:
    jobs: list[Job] = field(default_factory=list)
    total_count: int = 0


@dataclass
class AccountResponse:
    account: Account


@dataclass
class AccountsResponse:
    accounts: list[Account] = field(default_factory=list)


@dataclass
class ConfigResponse:
    config: Config


def query_job(deps: Deps, env: Env, data: QueryJobMsg) -> JobResponse:
    finished = finished_jobs()
    if finished.has(deps.storage, data.id):
        job = finished.load(deps.storage, data.id)
    else:
        job = pending_jobs().load(deps.storage, data.id)
    return JobResponse(job=job)


def query_jobs(deps: Deps, env: Env, data: QueryJobsMsg) -> JobsResponse:
    if not data.valid_query():
        raise StdError(
            "Invalid query input. Must supply at most one of ids, name, or owner params."
        )

    page_size = QUERY_PAGE_SIZE if data.limit is None else data.limit
    if page_size > QUERY_PAGE_SIZE:
        raise StdError(f"Limit must be a max of {QUERY_PAGE_SIZE}.")

    if data.ids is not None:
        return query_jobs_by_ids(deps, env, data.ids, data.job_status)
    return query_jobs_by_reward(
        deps, env, data.name, data.owner, data.job_status, data.start_after, page_size
    )


def query_jobs_by_ids(
    deps: Deps, env: Env, ids: list[int], job_status: JobStatus | None
) -> JobsResponse:
    if len(ids) > QUERY_PAGE_SIZE:
        raise StdError("Number of ids supplied exceeds query limit")

    jobs = []
    for job_id in ids:
        job = query_job(deps, env, QueryJobMsg(id=job_id)).job
        if resolve_filters(job, None, None, job_status):
            jobs.append(job)
    return JobsResponse(jobs=jobs, total_count=len(jobs))


def query_jobs_by_reward(
    deps: Deps,
    env: Env,
    name: str | None,
    owner: str | None,
    job_status: JobStatus | None,
    start_after: tuple[int, int] | None,
    limit: int,
) -> JobsResponse:
    if job_status is not None and job_status != JobStatus.PENDING:
        jobs_map = finished_jobs()
    else:
        jobs_map = pending_jobs()
    matching = (
        job
        for _, job in jobs_map.by_reward(deps.storage, start_after)
        if resolve_filters(job, name, owner, job_status)
    )
    jobs = list(islice(matching, limit))
    return JobsResponse(jobs=jobs, total_count=len(jobs))


def query_account(deps: Deps, env: Env, data: QueryAccountMsg) -> AccountResponse:
    owner = validate_address(data.owner)
    return AccountResponse(account=accounts().load(deps.storage, owner))


def query_accounts(deps: Deps, env: Env, data: QueryAccountsMsg) -> AccountsResponse:
    start_after = None if data.start_after is None else validate_address(data.start_after)
    limit = QUERY_PAGE_SIZE if data.limit is None else data.limit
    entries = accounts().range(deps.storage, start_after, limit)
    return AccountsResponse(accounts=[account for _, account in entries])


def query_config(deps: Deps, env: Env, data: QueryConfigMsg) -> ConfigResponse:
    return ConfigResponse(config=CONFIG.load(deps.storage))
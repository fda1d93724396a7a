"""Key-value storage and the typed collections kept in it."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Callable, Generic, Iterator, TypeVar

from .errors import StdError
from .models import Account, Config, Job, Querier, State

T = TypeVar("T")


class Storage:
    """Namespaced in-memory storage; values are copied on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[str, dict[Any, Any]] = {}

    def get(self, namespace: str, key: Any) -> Any:
        return copy.deepcopy(self._data.get(namespace, {}).get(key))

    def set(self, namespace: str, key: Any, value: Any) -> None:
        self._data.setdefault(namespace, {})[key] = copy.deepcopy(value)

    def delete(self, namespace: str, key: Any) -> None:
        self._data.get(namespace, {}).pop(key, None)

    def items(self, namespace: str) -> list[tuple[Any, Any]]:
        entries = self._data.get(namespace, {})
        return [(key, copy.deepcopy(entries[key])) for key in sorted(entries)]


class Item(Generic[T]):
    """A single record stored under one namespace."""

    _KEY = ""

    def __init__(self, namespace: str, model: type[T]) -> None:
        self.namespace = namespace
        self.model = model

    def load(self, storage: Storage) -> T:
        value = self.may_load(storage)
        if value is None:
            raise StdError(f"{self.model.__name__} not found")
        return value

    def may_load(self, storage: Storage) -> T | None:
        data = storage.get(self.namespace, self._KEY)
        return None if data is None else self.model.from_dict(data)

    def save(self, storage: Storage, value: T) -> None:
        storage.set(self.namespace, self._KEY, value.to_dict())


class JobMap:
    """Jobs keyed by id, with a reward-ordered view."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    def has(self, storage: Storage, job_id: int) -> bool:
        return storage.get(self.namespace, job_id) is not None

    def load(self, storage: Storage, job_id: int) -> Job:
        job = self.may_load(storage, job_id)
        if job is None:
            raise StdError(f"Job not found: {job_id}")
        return job

    def may_load(self, storage: Storage, job_id: int) -> Job | None:
        data = storage.get(self.namespace, job_id)
        return None if data is None else Job.from_dict(data)

    def save(self, storage: Storage, job_id: int, job: Job) -> None:
        storage.set(self.namespace, job_id, job.to_dict())

    def remove(self, storage: Storage, job_id: int) -> None:
        storage.delete(self.namespace, job_id)

    def update(
        self, storage: Storage, job_id: int, action: Callable[[Job | None], Job]
    ) -> Job:
        """Replace the job with what the action makes of the current one."""
        job = action(self.may_load(storage, job_id))
        self.save(storage, job_id, job)
        return job

    def keys(
        self, storage: Storage, start_after: int | None = None, limit: int | None = None
    ) -> list[int]:
        keys = (
            key
            for key, _ in storage.items(self.namespace)
            if start_after is None or key > start_after
        )
        return list(islice(keys, limit))

    def by_reward(
        self, storage: Storage, before: tuple[int, int] | None = None
    ) -> Iterator[tuple[int, Job]]:
        """Jobs from highest (reward, id) down, strictly below ``before`` if given."""
        jobs = [(key, Job.from_dict(data)) for key, data in storage.items(self.namespace)]
        jobs.sort(key=lambda pair: (pair[1].reward, pair[1].id), reverse=True)
        for key, job in jobs:
            if before is None or (job.reward, job.id) < tuple(before):
                yield key, job


class AccountMap:
    """Accounts keyed by owner, unique on account address."""

    def __init__(self, namespace: str = "accounts") -> None:
        self.namespace = namespace

    def has(self, storage: Storage, owner: str) -> bool:
        return storage.get(self.namespace, owner) is not None

    def load(self, storage: Storage, owner: str) -> Account:
        data = storage.get(self.namespace, owner)
        if data is None:
            raise StdError(f"Account not found: {owner}")
        return Account.from_dict(data)

    def save(self, storage: Storage, owner: str, account: Account) -> None:
        existing = self.find_by_account(storage, account.account)
        if existing is not None and existing[0] != owner:
            raise StdError("Violates unique constraint on index")
        storage.set(self.namespace, owner, account.to_dict())

    def find_by_account(self, storage: Storage, account: str) -> tuple[str, Account] | None:
        for owner, data in storage.items(self.namespace):
            if data["account"] == account:
                return owner, Account.from_dict(data)
        return None

    def keys(
        self, storage: Storage, start_after: str | None = None, limit: int | None = None
    ) -> list[str]:
        return [owner for owner, _ in self.range(storage, start_after, limit)]

    def range(
        self, storage: Storage, start_after: str | None = None, limit: int | None = None
    ) -> list[tuple[str, Account]]:
        entries = (
            (owner, Account.from_dict(data))
            for owner, data in storage.items(self.namespace)
            if start_after is None or owner > start_after
        )
        return list(islice(entries, limit))


@dataclass
class Deps:
    storage: Storage = field(default_factory=Storage)
    querier: Querier = field(default_factory=Querier)


QUERY_PAGE_SIZE = 50
CONFIG: Item[Config] = Item("config", Config)
STATE: Item[State] = Item("state", State)


def pending_jobs() -> JobMap:
    return JobMap("pending_jobs_v3")


def finished_jobs() -> JobMap:
    return JobMap("finished_jobs_v3")


def accounts() -> AccountMap:
    return AccountMap("accounts")
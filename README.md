# warpjobs

`warpjobs` models a job controller together with the personal accounts of its users.

- A user creates a job and attaches a reward to it. The reward, plus a creation fee, is paid from the user's account.
- A keeper runs the job once its condition holds, and collects the reward.
- Anyone may evict a job that has waited in the queue long enough. The wait and the eviction fee depend on how many jobs are queued.
- A job may be recurring. When it finishes, a new pending job is created from it, unless its terminate condition resolves to true.

Every operation is a plain function. It takes explicit storage, an environment and the caller. It returns a `Response` that lists the messages to send and the attributes that describe what happened. Failures raise exceptions.

The package uses only the standard library.

## Installation

```
pip install warpjobs
```

Use `pip install "warpjobs[test]"` to also install pytest for the test suite.

## Example

```python
from warpjobs.controller import InstantiateMsg, instantiate, query
from warpjobs.models import Env, MessageInfo, from_binary
from warpjobs.queries import QueryConfigMsg
from warpjobs.store import Deps

deps = Deps()
env = Env()
instantiate(
    deps,
    env,
    MessageInfo(sender="admin"),
    InstantiateMsg(
        fee_denom="uluna",
        warp_account_code_id=1,
        minimum_reward=10,
        creation_fee=5,
        cancellation_fee=5,
        resolver_address="resolver",
        t_max=86400,
        t_min=3600,
        a_max=10,
        a_min=1,
        q_max=10,
    ),
)
config = from_binary(query(deps, env, {"query_config": QueryConfigMsg()}))["config"]
print(config["owner"], config["minimum_reward"])  # admin 10
```

`map_contract_error` explains a chain error string in plain words:

```python
from warpjobs.errors import map_contract_error

print(map_contract_error("wasm error, code: 5"))
# Execute wasm contract failed. Common causes include insufficient CW20 Funds, ...
```

## Modules

### `warpjobs.controller`

The controller's entry points:

- `instantiate(deps, env, info, msg)` checks an `InstantiateMsg`, then stores the configuration and a fresh state.
- `execute(deps, env, info, msg)` takes a one-entry mapping from a tag to a payload. The tags are `create_job`, `delete_job`, `update_job`, `execute_job`, `evict_job`, `create_account`, `update_config`, `migrate_accounts`, `migrate_pending_jobs` and `migrate_finished_jobs`.
- `query(deps, env, msg)` takes the tags `query_job`, `query_jobs`, `query_account`, `query_accounts` and `query_config`, and returns JSON bytes.
- `migrate(deps, env, msg)` converts the stored state and configuration from the previous layout. It takes a `MigrateMsg`.
- `reply(deps, env, msg)` handles a `Reply`:
  - Id `0` records a newly instantiated account.
  - Any other id finishes the job with that id. The job is marked executed, or failed if the reply carries an error. A recurring job is requeued here.

An unknown tag, or a payload of the wrong type, raises `InvalidArguments`.

### `warpjobs.jobs`

The job lifecycle functions:

- `create_job` with `CreateJobMsg`
- `update_job` with `UpdateJobMsg`
- `delete_job` with `DeleteJobMsg`. The cancellation fee is kept and the rest of the reward is refunded.
- `execute_job` with `ExecuteJobMsg`
- `evict_job` with `EvictJobMsg`

A job name must be between 1 and 280 bytes long.

### `warpjobs.accounts`

- `create_account(deps, env, info, data)` does one of two things:
  - If the sender has no account yet, it returns a sub-message that instantiates one.
  - If the sender already has an account, it forwards the native funds sent with the call to that account, and sends the CW20 and CW721 funds named in `CreateAccountMsg` to it as well.
- `fund_transfer_msgs` builds the CW20 and CW721 transfer messages.

### `warpjobs.admin`

These are for the configured owner:

- `update_config` changes the configuration. `validate_config` checks it.
- `migrate_accounts` produces migrate messages for stored accounts, a page at a time.
- `migrate_pending_jobs` and `migrate_finished_jobs` convert jobs stored in the previous layout. They use `upgrade_legacy_job`.

### `warpjobs.queries`

- `query_job` and `query_jobs` look up jobs. `query_jobs_by_ids` and `query_jobs_by_reward` are the two ways `query_jobs` searches.
- `query_jobs` accepts at most one of `ids`, `name` and `owner`, and a `limit` of at most 50. The default is 50.
- When no ids are given, jobs are listed from the highest reward down.
- `query_account` and `query_accounts` look up accounts. `query_accounts` returns 50 accounts unless another `limit` is given.
- `query_config` returns the configuration.

### `warpjobs.account`

The personal account contract. It has its own `instantiate`, `execute`, `query` and `migrate`. `execute` accepts four messages, and only from the owner or from the controller that created the account:

- `GenericMsg` passes its messages through.
- `WithdrawAssetsMsg` sends native, CW20 and CW721 holdings back to the owner.
- `IbcTransferMsg` fills in the timeouts and sends the transfer, encoded as protobuf, in a `StargateMsg`.
- `WarpMsgs` passes its messages through, treating any `IbcTransferMsg` among them as above.

### `warpjobs.models`

The data types:

- `Job`, `JobStatus`, `Account`, `Config` and `State`.
- Coins and assets: `Coin`, `NativeAsset`, `Cw20Asset`, `Cw721Asset`, `Cw20Fund` and `Cw721Fund`.
- Messages: `BankSend`, `WasmExecute`, `WasmInstantiate`, `WasmMigrate`, `StargateMsg` and `SubMsg`.
- Calls and their results: `Response`, `Attribute`, `Event`, `Reply`, `Env`, `BlockInfo` and `MessageInfo`.

It also has the JSON helpers `to_plain`, `to_json_string`, `to_binary` and `from_binary`, and `validate_address`.

### `warpjobs.store`

- `Storage` is an in-memory, namespaced store.
- `Item` holds a single value. `JobMap` and `AccountMap` hold keyed records. `pending_jobs()`, `finished_jobs()` and `accounts()` return the maps the controller uses.
- `Deps` bundles a storage with a `Querier`.

### `warpjobs.filters`

`resolve_filters` matches a job by name, owner and status.

### `warpjobs.errors`

Every failure raises a subclass of `ContractError`. Its message is the text the controller reports. For example, `RewardTooSmall` reads "Reward provided is smaller than minimum".

## Queries to other contracts

Balances and calls to other contracts go through `Querier`:

- `Querier.balances` maps `(address, denom)` to an amount.
- `Querier.contracts` maps a contract address to a callable that receives the query message as a dict.

The controller sends these queries to the configured resolver address:

- `query_validate_job_creation`
- `query_hydrate_vars`
- `query_resolve_condition`
- `query_hydrate_msgs`
- `query_apply_var_fn`

The account contract sends `balance` and `owner_of` queries to token contracts.

## What this package does not do

- It does not include a condition and variable resolver. You supply one as a callable in `Querier.contracts`.
- It does not run on a chain or send the messages it returns. A `Response` only lists them.
- Storage lives in memory only. Nothing is saved to disk.
- There is no command-line tool or server.
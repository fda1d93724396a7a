import pytest

from warpjobs.account import (
    IbcTransferMsg,
    InstantiateMsg,
    GenericMsg,
    TimeoutBlock,
    TransferMsg,
    WarpMsgs,
    WithdrawAssetsMsg,
    execute,
    execute_warp_msgs,
    ibc_transfer,
    instantiate,
    migrate,
    query,
    withdraw_assets,
)
from warpjobs.errors import StdError, Unauthorized
from warpjobs.models import (
    BankSend,
    Coin,
    Cw20Asset,
    Cw721Asset,
    Env,
    MessageInfo,
    NativeAsset,
    Response,
    StargateMsg,
    WasmExecute,
    from_binary,
    to_binary,
)
from warpjobs.store import Deps


def _msgs():
    return [
        WasmExecute(
            contract_addr="contract", msg=to_binary("test"), funds=[Coin("coin", 100)]
        ),
        BankSend(to_address="vlad2", amount=[Coin("coin", 100)]),
        {"gov": {"vote": {"proposal_id": 0, "vote": "yes"}}},
        {"staking": {"delegate": {"validator": "vladidator", "amount": Coin("coin", 100)}}},
        {"distribution": {"set_withdraw_address": {"address": "vladdress"}}},
        {
            "ibc": {
                "transfer": {
                    "channel_id": "channel_vlad",
                    "to_address": "vlad3",
                    "amount": Coin("coin", 100),
                    "timeout": {"block": {"revision": 0, "height": 0}},
                }
            }
        },
        StargateMsg(type_url="utl", value=b""),
    ]


def _setup(deps=None):
    deps = deps or Deps()
    env = Env()
    instantiate(deps, env, MessageInfo("vlad_controller"), InstantiateMsg(owner="vlad"))
    return deps, env


def test_execute_controller():
    deps, env = _setup()
    res = execute(deps, env, MessageInfo("vlad_controller"), GenericMsg(msgs=_msgs()))
    assert res == Response().add_attribute("action", "generic").add_messages(_msgs())


def test_execute_owner():
    deps, env = _setup()
    res = execute(deps, env, MessageInfo("vlad"), GenericMsg(msgs=_msgs()))
    assert res == Response().add_attribute("action", "generic").add_messages(_msgs())


def test_execute_unauth():
    deps, env = _setup()
    with pytest.raises(Unauthorized):
        execute(deps, env, MessageInfo("vlad2"), GenericMsg(msgs=_msgs()))


def test_instantiate_attributes():
    deps = Deps()
    res = instantiate(
        deps,
        Env(),
        MessageInfo("warp", [Coin("uluna", 5)]),
        InstantiateMsg(owner="vlad"),
    )
    attrs = {a.key: a.value for a in res.attributes}
    assert attrs == {
        "action": "instantiate",
        "contract_addr": "cosmos2contract",
        "owner": "vlad",
        "funds": '[{"denom":"uluna","amount":"5"}]',
        "cw_funds": "null",
    }


def test_instantiate_invalid_owner():
    with pytest.raises(StdError):
        instantiate(Deps(), Env(), MessageInfo("warp"), InstantiateMsg(owner="Vlad"))


def test_query_config():
    deps, env = _setup()
    assert from_binary(query(deps, env, "config")) == {
        "owner": "vlad",
        "warp_addr": "vlad_controller",
    }


def test_query_unknown():
    deps, env = _setup()
    with pytest.raises(StdError):
        query(deps, env, "other")


def test_migrate_is_empty():
    assert migrate(Deps(), Env(), None) == Response()


def test_transfer_encode_basic():
    msg = TransferMsg(
        source_port="transfer",
        source_channel="channel-0",
        token=Coin("uluna", 1),
        sender="a",
        receiver="b",
    )
    expected = (
        b"\x0a\x08transfer"
        + b"\x12\x09channel-0"
        + b"\x1a\x0a\x0a\x05uluna\x12\x011"
        + b"\x22\x01a"
        + b"\x2a\x01b"
    )
    assert msg.encode() == expected


def test_transfer_encode_timeouts():
    assert TransferMsg(timeout_timestamp=300).encode() == b"\x38\xac\x02"
    block = TransferMsg(timeout_block=TimeoutBlock(revision_number=1, revision_height=5))
    assert block.encode() == b"\x32\x04\x08\x01\x10\x05"


def test_ibc_transfer_fills_timeouts():
    env = Env()
    base = TransferMsg(
        source_port="transfer",
        source_channel="channel-0",
        token=Coin("uluna", 1),
        sender="a",
        receiver="b",
        timeout_block=TimeoutBlock(revision_number=1, revision_height=0),
    )
    res = ibc_transfer(
        env,
        IbcTransferMsg(
            transfer_msg=base, timeout_block_delta=5, timeout_timestamp_seconds_delta=10
        ),
    )
    expected = TransferMsg(
        source_port="transfer",
        source_channel="channel-0",
        token=Coin("uluna", 1),
        sender="a",
        receiver="b",
        timeout_block=TimeoutBlock(revision_number=1, revision_height=12_350),
        timeout_timestamp=3_143_594_848_879_305_533,
    )
    assert res.messages[0].msg == StargateMsg(
        type_url="/ibc.applications.transfer.v1.MsgTransfer", value=expected.encode()
    )
    assert base.timeout_block.revision_height == 0


def test_ibc_transfer_block_delta_ignored_without_block():
    msg = TransferMsg(source_port="transfer")
    res = ibc_transfer(Env(), IbcTransferMsg(transfer_msg=msg, timeout_block_delta=5))
    assert res.messages[0].msg.value == msg.encode()


def test_execute_warp_msgs_mixes_generic_and_transfer():
    env = Env()
    transfer = TransferMsg(timeout_timestamp=300)
    bank = BankSend(to_address="vlad2", amount=[Coin("coin", 1)])
    res = execute_warp_msgs(env, [bank, IbcTransferMsg(transfer_msg=transfer)])
    assert [m.msg for m in res.messages] == [
        bank,
        StargateMsg("/ibc.applications.transfer.v1.MsgTransfer", b"\x38\xac\x02"),
    ]
    assert res.attributes == []


def test_execute_dispatches_warp_msgs():
    deps, env = _setup()
    bank = BankSend(to_address="vlad2", amount=[Coin("coin", 1)])
    res = execute(deps, env, MessageInfo("vlad"), WarpMsgs(msgs=[bank]))
    assert [m.msg for m in res.messages] == [bank]


def _querier_contracts(deps):
    def cw20(msg):
        assert msg == {"balance": {"address": "cosmos2contract"}}
        return {"balance": "7"}

    def cw721(msg):
        token_id = msg["owner_of"]["token_id"]
        return {"owner": "vlad" if token_id == "mine" else "other", "approvals": []}

    def empty_cw20(msg):
        return {"balance": "0"}

    deps.querier.contracts.update({"token": cw20, "nft": cw721, "empty": empty_cw20})
    deps.querier.balances[("cosmos2contract", "uluna")] = 50


def test_withdraw_assets():
    deps, env = _setup()
    _querier_contracts(deps)
    data = WithdrawAssetsMsg(
        asset_infos=[
            NativeAsset("uluna"),
            NativeAsset("uatom"),
            Cw20Asset("token"),
            Cw20Asset("empty"),
            Cw721Asset("nft", "mine"),
            Cw721Asset("nft", "theirs"),
        ]
    )
    res = execute(deps, env, MessageInfo("vlad"), data)
    assert [m.msg for m in res.messages] == [
        BankSend(to_address="vlad", amount=[Coin("uluna", 50)]),
        WasmExecute(
            contract_addr="token",
            msg=b'{"transfer":{"recipient":"vlad","amount":"7"}}',
            funds=[],
        ),
        WasmExecute(
            contract_addr="nft",
            msg=b'{"transfer_nft":{"recipient":"vlad","token_id":"mine"}}',
            funds=[],
        ),
    ]
    attrs = {a.key: a.value for a in res.attributes}
    assert attrs["action"] == "withdraw_assets"
    assert attrs["assets"].startswith('[{"native":"uluna"}')


def test_withdraw_assets_unauthorized():
    deps, env = _setup()
    with pytest.raises(Unauthorized):
        withdraw_assets(deps, env, MessageInfo("stranger"), WithdrawAssetsMsg())
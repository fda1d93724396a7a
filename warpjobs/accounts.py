"""Creation of user accounts by the controller, and funding of existing ones."""

from __future__ import annotations

from dataclasses import dataclass

from .account import InstantiateMsg as AccountInstantiateMsg
from .errors import AccountCannotCreateAccount
from .models import (
    BankSend,
    Cw20Fund,
    Cw721Fund,
    Env,
    MessageInfo,
    ReplyOn,
    Response,
    SubMsg,
    WasmExecute,
    WasmInstantiate,
    to_binary,
    validate_address,
)
from .store import CONFIG, Deps, accounts

ACCOUNT_CREATION_REPLY_ID = 0


@dataclass
class CreateAccountMsg:
    funds: list[Cw20Fund | Cw721Fund] | None = None


def fund_transfer_msgs(
    deps: Deps, funds: list[Cw20Fund | Cw721Fund], owner: str, recipient: str
) -> list[WasmExecute]:
    """Messages moving CW20 allowances and CW721 tokens from the owner to the recipient."""
    msgs = []
    for fund in funds:
        contract_addr = validate_address(fund.contract_addr)
        if isinstance(fund, Cw20Fund):
            payload = {
                "transfer_from": {
                    "owner": owner,
                    "recipient": recipient,
                    "amount": str(fund.amount),
                }
            }
        else:
            payload = {"transfer_nft": {"recipient": recipient, "token_id": fund.token_id}}
        msgs.append(WasmExecute(contract_addr=contract_addr, msg=to_binary(payload), funds=[]))
    return msgs


def create_account(deps: Deps, env: Env, info: MessageInfo, data: CreateAccountMsg) -> Response:
    """Instantiate an account for the sender, or top up the one it already has."""
    config = CONFIG.load(deps.storage)
    account_map = accounts()

    if account_map.find_by_account(deps.storage, info.sender) is not None:
        raise AccountCannotCreateAccount()

    if account_map.has(deps.storage, info.sender):
        account = account_map.load(deps.storage, info.sender)
        msgs: list = []
        if info.funds:
            msgs.append(BankSend(to_address=account.account, amount=list(info.funds)))
        msgs.extend(fund_transfer_msgs(deps, data.funds or [], info.sender, account.account))
        return (
            Response()
            .add_attribute("action", "create_account")
            .add_attribute("owner", account.owner)
            .add_attribute("account_address", account.account)
            .add_messages(msgs)
        )

    submsg = SubMsg(
        id=ACCOUNT_CREATION_REPLY_ID,
        msg=WasmInstantiate(
            admin=env.contract_address,
            code_id=config.warp_account_code_id,
            msg=to_binary(AccountInstantiateMsg(owner=info.sender, funds=data.funds)),
            funds=list(info.funds),
            label=info.sender,
        ),
        gas_limit=None,
        reply_on=ReplyOn.ALWAYS,
    )
    return Response().add_attribute("action", "create_account").add_submessage(submsg)
import asyncio
from base64 import b64decode

from eth_account import Account
from eth_account.messages import encode_defunct

from conftest import install_session
from pharos_bot.constants import MUSD_CONTRACT_ADDRESS, STAKING_ROUTER_ADDRESS
from pharos_bot.partners import (AquaFluxAPI, AutoStakingAPI, build_recommendation_payload, extract_staking_calldata,
                                 generate_auth_token)
from pharos_bot.proxy import ProxyPool


def make_client(cls, account, sleeper):
    client = cls(ProxyPool(), retries=2, retry_delay=3, sleep=sleeper)
    client.user_agents[account.address] = "test-agent"
    return client


def test_auth_token_is_one_rsa_block(account):
    token = generate_auth_token(account.address)

    assert len(b64decode(token)) == 128


def test_recommendation_payload_amounts_in_token_units(account):
    payload = build_recommendation_payload(account.address, {"USDC": 0.25, "USDT": 0.25, "MockUSD": 1})

    assets = {asset["symbol"]: asset for asset in payload["userAssets"]}
    assert assets["USDC"]["assets"] == "250000"
    assert assets["MockUSD"]["assets"] == "1000000"
    assert assets["MockUSD"]["address"] == MUSD_CONTRACT_ADDRESS
    assert assets["USDT"]["chain"] == {"id": 688688}
    assert payload["protocols"] == ["MockVault"]
    assert payload["env"] == "pharos"


def test_staking_calldata_from_either_chain_key():
    assert extract_staking_calldata({"data": {"688688": {"data": "0xaa"}}}) == "0xaa"
    assert extract_staking_calldata({"data": {f"688688-{STAKING_ROUTER_ADDRESS}": {"data": "0xbb"}}}) == "0xbb"
    assert extract_staking_calldata({"data": {}}) is None
    assert extract_staking_calldata(None) is None


def test_autostaking_sends_raw_token_header(monkeypatch, account, sleeper):
    session = install_session(monkeypatch, [(200, {"data": {"changes": [{"id": 1}]}}),
                                            (200, {"data": {"688688": {"data": "0xcafe"}}})])
    api = make_client(AutoStakingAPI, account, sleeper)

    changes = asyncio.run(api.portfolio_recommendation(account, {"USDC": 0.25, "USDT": 0.25, "MockUSD": 0.25}))
    calldata = asyncio.run(api.change_transactions(account, changes))

    assert changes == [{"id": 1}]
    assert calldata == "0xcafe"
    first, second = session.requests
    assert first["url"] == "https://api.autostaking.pro/investment/financial-portfolio-recommendation"
    assert first["headers"]["Authorization"] == api.auth_tokens[account.address]
    assert not first["headers"]["Authorization"].startswith("Bearer")
    assert second["json"] == {"user": account.address, "changes": [{"id": 1}], "prevTransactionResults": {}}


def test_autostaking_without_changes(monkeypatch, account, sleeper):
    install_session(monkeypatch, [(200, {"data": {"changes": []}})])
    api = make_client(AutoStakingAPI, account, sleeper)

    assert asyncio.run(api.portfolio_recommendation(account, {"USDC": 1, "USDT": 1, "MockUSD": 1})) is None


def test_aquaflux_login_signs_timestamp_message(monkeypatch, account, sleeper):
    session = install_session(monkeypatch, [(200, {"data": {"accessToken": "aqua"}}),
                                            (200, {"data": {"isHoldingToken": True}})])
    api = make_client(AquaFluxAPI, account, sleeper)

    assert asyncio.run(api.login(account, now_ms=1700000000000)) is True
    assert asyncio.run(api.holds_token(account)) is True

    login, holding = session.requests
    assert login["json"]["message"] == "Sign in to AquaFlux with timestamp: 1700000000000"
    recovered = Account.recover_message(encode_defunct(text=login["json"]["message"]),
                                        signature=login["json"]["signature"])
    assert recovered == account.address
    assert "Authorization" not in login["headers"]
    assert holding["headers"]["Authorization"] == "Bearer aqua"
    assert holding["headers"]["Origin"] == "https://playground.aquaflux.pro"


def test_aquaflux_signature_parsing(monkeypatch, account, sleeper):
    install_session(monkeypatch, [(200, {"data": {"signature": "0xabcd", "expiresAt": "1700000600"}}),
                                  (200, {"data": {}})])
    api = make_client(AquaFluxAPI, account, sleeper)

    assert asyncio.run(api.nft_signature(account)) == ("0xabcd", 1700000600)
    assert asyncio.run(api.nft_signature(account)) is None


def test_aquaflux_relogin_on_unauthorized(monkeypatch, account, sleeper):
    session = install_session(monkeypatch, [(401, {}),
                                            (200, {"data": {"accessToken": "again"}}),
                                            (200, {"data": {"isHoldingToken": False}})])
    api = make_client(AquaFluxAPI, account, sleeper)
    api.access_tokens[account.address] = "old"

    assert asyncio.run(api.holds_token(account)) is False
    assert session.requests[2]["headers"]["Authorization"] == "Bearer again"

import asyncio
from datetime import datetime, timezone

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from conftest import install_session
from pharos_bot.api import PharosAPI, build_login_message, build_login_payload, seconds_until
from pharos_bot.database import Database
from pharos_bot.proxy import ProxyPool


def test_login_message_layout():
    message = build_login_message("0xabc", "1700000000000", "2023-11-14T22:13:20.000Z")

    lines = message.split("\n")
    assert lines[0] == "testnet.pharosnetwork.xyz wants you to sign in with your Ethereum account:"
    assert lines[1] == "0xabc"
    assert "URI: https://testnet.pharosnetwork.xyz" in lines
    assert "Chain ID: 688688" in lines
    assert lines[-1] == "Issued At: 2023-11-14T22:13:20.000Z"


def test_login_payload_is_signed_by_the_account(account):
    now = datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc)

    payload = build_login_payload(account, invite_code="CODE", now=now)

    assert payload["nonce"] == "1700000000123"
    assert payload["timestamp"] == "2023-11-14T22:13:20.123Z"
    assert payload["chain_id"] == "688688"
    assert payload["domain"] == "testnet.pharosnetwork.xyz"
    assert payload["invite_code"] == "CODE"

    message = build_login_message(account.address, payload["nonce"], payload["timestamp"])
    recovered = Account.recover_message(encode_defunct(text=message), signature=payload["signature"])
    assert recovered == account.address


def test_login_payload_without_invite_code(account):
    assert "invite_code" not in build_login_payload(account)


def test_seconds_until():
    assert seconds_until(None) == 0
    assert seconds_until(1) == 0


@pytest.fixture
def db(tmp_path, account):
    database = Database(str(tmp_path / "api.sqlite3"))
    database.add_account(account.address)
    return database


def make_api(db, account, sleeper, proxies=None, **kwargs) -> PharosAPI:
    api = PharosAPI(db, ProxyPool(proxies), retries=3, retry_delay=5, sleep=sleeper, **kwargs)
    api.user_agents[account.address] = "test-agent"
    return api


def test_request_retries_after_errors_with_fixed_delay(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [RuntimeError("boom"), (500, {}), (200, {"code": 0, "data": {}})])
    api = make_api(db, account, sleeper)

    status = asyncio.run(api.faucet_status(account))

    assert status == {}
    assert len(session.requests) == 3
    assert sleeper.calls == [5, 5]
    assert session.requests[0]["params"] == {"address": account.address}


def test_request_gives_up_after_all_retries(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [RuntimeError("boom")] * 3)
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.profile(account)) is None
    assert len(session.requests) == 3
    assert sleeper.calls == [5, 5]


def test_proxy_error_rotates_to_next_proxy(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [RuntimeError("Proxy connection failed"),
                                            (200, {"code": 0, "data": {"user_info": {"TotalPoints": 5}}})])
    proxies = ["http://one:1", "http://two:2"]
    api = make_api(db, account, sleeper, proxies=proxies, use_proxy=True, rotate_proxy=True)

    user = asyncio.run(api.profile(account))

    assert user == {"TotalPoints": 5}
    assert [request["proxy"] for request in session.requests] == proxies
    assert db.get_account(account.address)["proxy"] == "http://two:2"


def test_proxy_is_kept_without_rotation(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [RuntimeError("Proxy connection failed"), (200, {"code": 0, "data": {}})])
    api = make_api(db, account, sleeper, proxies=["http://one:1", "http://two:2"], use_proxy=True)

    asyncio.run(api.faucet_status(account))

    assert [request["proxy"] for request in session.requests] == ["http://one:1", "http://one:1"]


def test_unauthorized_triggers_one_relogin(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [
        (401, {}),
        (200, {"code": 0, "data": {"jwt": "fresh"}}),
        (200, {"code": 0, "data": {"user_info": {"TotalPoints": 1}}}),
    ])
    api = make_api(db, account, sleeper)
    api.access_tokens[account.address] = "stale"

    user = asyncio.run(api.profile(account))

    assert user == {"TotalPoints": 1}
    assert [request["url"].rsplit("/", 2)[-2:] for request in session.requests] == [
        ["user", "profile"], ["user", "login"], ["user", "profile"]
    ]
    assert session.requests[0]["headers"]["Authorization"] == "Bearer stale"
    assert "Authorization" not in session.requests[1]["headers"]
    assert session.requests[2]["headers"]["Authorization"] == "Bearer fresh"
    assert db.get_token(account.address) == "fresh"


def test_second_unauthorized_is_not_retried_again(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [
        (401, {}),
        (200, {"code": 0, "data": {"jwt": "fresh"}}),
        (401, {}),
        (401, {}),
    ])
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.profile(account)) is None
    assert len(session.requests) == 4


def test_nonzero_code_is_a_failed_call(monkeypatch, db, account, sleeper):
    install_session(monkeypatch, [(200, {"code": 1, "msg": "faucet did not cooldown"})])
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.claim_faucet(account, "captcha-token")) is False
    assert sleeper.calls == []


def test_claim_faucet_sends_captcha_token(monkeypatch, db, account, sleeper):
    session = install_session(monkeypatch, [(200, {"code": 0})])
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.claim_faucet(account, "captcha-token")) is True
    assert session.requests[0]["params"] == {"address": account.address, "recaptcha_token": "captcha-token"}


def test_login_failure_keeps_no_token(monkeypatch, db, account, sleeper):
    install_session(monkeypatch, [(200, {"code": 1, "msg": "bad signature"})])
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.login(account)) is False
    assert account.address not in api.access_tokens
    assert db.get_token(account.address) is None


def test_user_tasks_list(monkeypatch, db, account, sleeper):
    tasks = [{"TaskId": 103, "CompleteTimes": 2}]
    install_session(monkeypatch, [(200, {"code": 0, "data": {"user_tasks": tasks}})])
    api = make_api(db, account, sleeper)

    assert asyncio.run(api.user_tasks(account)) == tasks

import json

import pytest

import scripts.attributes as cli
from idp.core.audit import AuditTrail
from idp.core.claims import ClaimTypes
from tests.conftest import ALICE_UUID, SEED_FILE, SP1


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DIRECTORY_SEED_FILE", "ROLE_PRECEDENCE", "AUDIT_LOG_DIR", "AUDIT_LOG_SIGNING_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_claims_command(capsys):
    assert cli.main(["--seed", str(SEED_FILE), "claims", "alice", SP1]) == 0

    lines = capsys.readouterr().out.splitlines()
    rows = [line.split("\t", 1) for line in lines]
    assert rows[0] == [ClaimTypes.COMMON_NAME, '"alice"']
    assert rows[1] == [ClaimTypes.ID, json.dumps(ALICE_UUID)]
    assert rows[-1] == ["urn:languages", '["en", "de"]']


def test_claims_for_unknown_principal(capsys):
    cli.main(["--seed", str(SEED_FILE), "claims", "guest", SP1])

    assert capsys.readouterr().out.splitlines() == [f'{ClaimTypes.COMMON_NAME}\t"guest"']


def test_resolve_command(capsys):
    assert cli.main(["--seed", str(SEED_FILE), "resolve", "alice"]) == 0
    assert json.loads(capsys.readouterr().out) == {"office": "201", "languages": ["en", "de"]}

    assert cli.main(["--seed", str(SEED_FILE), "resolve", "alice", "--entity-id", SP1]) == 0
    assert json.loads(capsys.readouterr().out)["office"] == "305"


def test_resolve_unknown_user(capsys):
    assert cli.main(["--seed", str(SEED_FILE), "resolve", "nobody"]) == 1
    assert "not found" in capsys.readouterr().err


def test_seed_required(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["resolve", "alice"])

    assert exc.value.code == 2


def test_seed_from_environment(monkeypatch, capsys):
    monkeypatch.setenv("DIRECTORY_SEED_FILE", str(SEED_FILE))

    assert cli.main(["resolve", "bob"]) == 0
    assert json.loads(capsys.readouterr().out) == {}


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_verify_audit(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "key")
    trail = AuditTrail(tmp_path, "key")
    trail.log_event("user_create", "alice")
    trail.log_event("user_delete", "alice")

    assert cli.main(["verify-audit", "--dir", str(tmp_path)]) == 0
    assert "2/2" in capsys.readouterr().out

    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "other-key")
    assert cli.main(["verify-audit", "--dir", str(tmp_path)]) == 1

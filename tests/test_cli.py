import asyncio
import json
import logging

import pytest

import group_revoker.__main__ as cli
from group_revoker.config import RetryPolicy, RunConfig, setup_logging
from group_revoker.workflow.models import RunSummary


def write_config(tmp_path, data):
    path = tmp_path / "revoker.json"
    path.write_text(json.dumps(data))
    return path


def test_config_file_is_loaded(tmp_path):
    path = write_config(tmp_path, {
        "auth": {"mode": "secret", "secret": {"tenant_id": "t", "client_id": "c", "client_secret": "s"}},
        "retry": {"max_attempts": 5, "base_delay": 1.0},
        "revocation": {"inter_request_delay": 1.5, "request_timeout": 10},
        "verbose": True,
    })

    config = RunConfig.from_file(str(path))

    assert config.auth.secret.client_secret == "s"
    assert config.retry.max_attempts == 5
    assert config.retry.base_delay == 1.0
    assert config.revocation.inter_request_delay == 1.5
    assert config.revocation.request_timeout == 10
    assert config.verbose


def test_invalid_retry_settings_are_rejected(tmp_path):
    path = write_config(tmp_path, {"retry": {"max_attempts": 0}})
    with pytest.raises(ValueError):
        RunConfig.from_file(str(path))


def test_retry_delays_double_and_cap():
    policy = RetryPolicy(base_delay=2.0, multiplier=2.0, max_delay=5.0)

    assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 5.0]


def test_retry_jitter_adds_fraction_of_delay():
    policy = RetryPolicy(base_delay=2.0, jitter=0.5)

    assert policy.delay_for(1, rand=1.0) == 3.0
    assert policy.delay_for(1, rand=0.0) == 2.0


def test_cli_arguments_override_config_file(tmp_path):
    path = write_config(tmp_path, {
        "auth": {"secret": {"tenant_id": "file-t", "client_id": "file-c", "client_secret": "file-s"}},
    })
    args = cli.parse_args([
        "-u", "alice@example.com", "-c", str(path),
        "--client-secret", "cli-s", "--delay", "0", "--max-attempts", "4", "--dry-run",
    ])

    config = cli.build_config(args, environ={})

    assert config.auth.secret.tenant_id == "file-t"
    assert config.auth.secret.client_secret == "cli-s"
    assert config.revocation.inter_request_delay == 0
    assert config.retry.max_attempts == 4
    assert config.revocation.dry_run


def test_environment_fills_missing_credentials():
    args = cli.parse_args(["-u", "alice@example.com", "--tenant-id", "cli-t"])

    config = cli.build_config(args, environ={
        "GROUP_REVOKER_TENANT_ID": "env-t",
        "GROUP_REVOKER_CLIENT_ID": "env-c",
        "GROUP_REVOKER_CLIENT_SECRET": "env-s",
    })

    assert config.auth.secret.tenant_id == "cli-t"
    assert config.auth.secret.client_id == "env-c"
    assert config.auth.secret.client_secret == "env-s"


def test_cert_path_selects_certificate_mode(tmp_path):
    args = cli.parse_args([
        "-u", "alice@example.com", "--tenant-id", "t", "--client-id", "c",
        "--cert-path", str(tmp_path / "base64.txt"),
    ])

    config = cli.build_config(args, environ={})

    assert config.auth.mode == "certificate"
    assert config.auth.certificate.certificate_path.endswith("base64.txt")
    assert config.auth.tenant_id == "t"


def test_user_is_required():
    with pytest.raises(SystemExit):
        cli.parse_args(["--tenant-id", "t"])


def test_max_attempts_must_be_positive():
    with pytest.raises(SystemExit):
        cli.parse_args(["-u", "a@b.c", "--max-attempts", "0"])


@pytest.mark.parametrize("summary,expected", [
    (RunSummary("alice@example.com", considered=2, removed=2), 0),
    (RunSummary("alice@example.com"), 0),
    (RunSummary("alice@example.com", fatal_error="User not found: alice@example.com"), 1),
])
def test_main_returns_summary_exit_code(monkeypatch, capsys, summary, expected):
    captured = {}

    async def fake_run_workflow(config, principal_name, **kwargs):
        captured["upn"] = principal_name
        captured["confirm"] = kwargs.get("confirm")
        return summary

    monkeypatch.setattr(cli, "run_workflow", fake_run_workflow)

    code = asyncio.run(cli.main_async([
        "-u", "alice@example.com", "--tenant-id", "t", "--client-id", "c", "--client-secret", "s", "--yes",
    ]))

    assert code == expected
    assert captured["upn"] == "alice@example.com"
    assert captured["confirm"] is None
    out = capsys.readouterr().out
    assert "Exit code:  " + str(expected) in out


def test_setup_logging_writes_audit_file(tmp_path):
    log_file = tmp_path / "audit.log"
    logger = setup_logging(verbose=False, log_file=str(log_file))

    logging.getLogger("group_revoker.workflow").info("removed alice from G1")
    for handler in logger.handlers:
        handler.flush()

    line = log_file.read_text().strip()
    assert "\tINFO\tgroup_revoker.workflow\tremoved alice from G1" in line

    setup_logging()

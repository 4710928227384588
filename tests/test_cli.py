from __future__ import annotations

import json

import httpx
import pytest
from typer.testing import CliRunner

from watchkeeper_agent import cli
from watchkeeper_agent.pools import ClientPools

from conftest import resource

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    p = tmp_path / "agent.yaml"
    p.write_text(
        "destination:\n"
        "  target_url: https://collector.test\n"
        "  cluster_id: cluster-1\n"
        "  max_items: 2\n"
        "  org_key: cli-key\n"
        "  delivery:\n"
        "    max_attempts: 1\n"
        "    retry_delay_seconds: 0\n",
        encoding="utf-8",
    )
    return p


@pytest.fixture
def cli_pools(monkeypatch, collector):
    pools = ClientPools(timeout_seconds=5.0, transport=httpx.MockTransport(collector.handler))
    monkeypatch.setattr(cli, "get_pools", lambda: pools)
    return pools


def test_send_json_array(tmp_path, config_file, cli_pools, collector):
    events = [resource(str(i)) for i in range(3)]
    data = tmp_path / "events.json"
    data.write_text(json.dumps(events), encoding="utf-8")

    result = runner.invoke(cli.app, ["send", str(data), "-c", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "batches=2 succeeded=2 failed=0 events=3" in result.output
    assert sorted(collector.bodies, key=len) == [events[2:], events[:2]]
    assert all(r.headers["razee-org-key"] == "cli-key" for r in collector.requests)
    assert all("poll-cycle" in r.headers for r in collector.requests)


def test_send_jsonl_with_endpoint(tmp_path, config_file, cli_pools, collector):
    data = tmp_path / "events.jsonl"
    data.write_text("\n".join(json.dumps(resource(n)) for n in "ab") + "\n", encoding="utf-8")

    result = runner.invoke(
        cli.app, ["send", str(data), "-c", str(config_file), "--endpoint", "status"]
    )

    assert result.exit_code == 0, result.output
    assert collector.requests[0].url.path == "/clusters/cluster-1/status"


def test_send_exits_non_zero_on_failed_batch(tmp_path, config_file, cli_pools, collector):
    collector.always(500)
    data = tmp_path / "one.json"
    data.write_text(json.dumps(resource("a")), encoding="utf-8")

    result = runner.invoke(cli.app, ["send", str(data), "-c", str(config_file)])

    assert result.exit_code == 1
    assert "failed=1" in result.output


def test_send_rejects_non_record_payload(tmp_path, config_file, cli_pools, collector):
    data = tmp_path / "bad.json"
    data.write_text(json.dumps([resource("a"), 3]), encoding="utf-8")

    result = runner.invoke(cli.app, ["send", str(data), "-c", str(config_file)])

    assert result.exit_code != 0
    assert collector.requests == []


def test_validate_config_ok(config_file, cli_pools):
    result = runner.invoke(cli.app, ["validate-config", "-c", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "ok: target_url=https://collector.test cluster_id=cluster-1 max_items=2" in result.output


def test_validate_config_bad_url(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("target_url: not a url\ncluster_id: c1\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["validate-config", "-c", str(p)])
    assert result.exit_code != 0


def test_validate_config_missing_cluster(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("destination:\n  target_url: http://x.test\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["validate-config", "-c", str(p)])
    assert result.exit_code != 0

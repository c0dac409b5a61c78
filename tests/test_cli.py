"""Tests for the group_contacts command-line entry point."""

import json

import pytest

import group_contacts


@pytest.fixture
def contacts_file(tmp_path, googleplex_contacts):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps([c.to_dict() for c in googleplex_contacts]))
    return path


def test_estimate_only(contacts_file, capsys):
    assert group_contacts.main([str(contacts_file), "--mode", "budget", "--estimate"]) == 0
    estimate = json.loads(capsys.readouterr().out)
    assert estimate["field_cost"] == pytest.approx(0.004)
    assert "within_budget" in estimate


def test_zero_budget_run_writes_output(contacts_file, tmp_path, monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    output = tmp_path / "clusters.json"

    assert group_contacts.main([str(contacts_file), "--budget", "0", "--output", str(output)]) == 0

    result = json.loads(output.read_text())
    assert [c["source"] for c in result["clusters"]] == ["organization_campus"]
    assert result["report"]["api_calls"] == 0
    assert result["report"]["budget_status"] == "EXCEEDED"


def test_missing_api_key_exits_with_config_error(contacts_file, monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    assert group_contacts.main([str(contacts_file), "--budget", "0.10"]) == 2


def test_negative_budget_exits_with_config_error(contacts_file):
    assert group_contacts.main([str(contacts_file), "--budget", "-1"]) == 2

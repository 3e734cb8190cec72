"""Tests for the ledger command-line interface."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from ledger.cli import main


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    def _run(*args: str):
        return runner.invoke(main, ["--database-url", url, *args])

    return _run


@pytest.fixture
def initialized(run):
    assert run("init-db").exit_code == 0
    assert run("register-account", "Assets.Bank.Checking").exit_code == 0
    assert run("register-account", "Income.Salary", "--increase-on", "credit").exit_code == 0
    return run


def test_init_db_twice_fails(run):
    first = run("init-db")
    assert first.exit_code == 0
    assert "schema created" in first.output

    second = run("init-db")
    assert second.exit_code == 1
    assert "already initialized" in second.output


def test_register_account(run):
    run("init-db")

    result = run("register-account", "Assets.Bank.Checking")

    assert result.exit_code == 0
    assert "Assets > Bank > Checking" in result.output


def test_register_malformed_account(run):
    run("init-db")

    result = run("register-account", "Assets..Checking")

    assert result.exit_code == 1
    assert "Malformed account path" in result.output


def test_post_list_and_show(initialized, tmp_path):
    receipt = tmp_path / "payslip.txt"
    receipt.write_text("january")

    posted = initialized(
        "post",
        "--debit", "Checking",
        "--credit", "Salary",
        "--amount", "1500.00",
        "--currency", "EUR",
        "--date", "2024-01-31",
        "--description", "January salary",
        "--tag", "salary",
        "--attach", str(receipt),
    )
    assert posted.exit_code == 0, posted.output
    assert "Posted transaction 1" in posted.output

    listing = initialized("list", "--start", "2024-01-01", "--end", "2024-01-31")
    assert listing.exit_code == 0
    assert "January salary" in listing.output
    assert "1 transaction(s)" in listing.output

    shown = initialized("show", "1")
    assert shown.exit_code == 0
    assert "attachment: payslip.txt" in shown.output

    balances = initialized("accounts")
    assert "Checking" in balances.output
    assert "1500.00" in balances.output


def test_post_same_account_fails(initialized):
    result = initialized(
        "post", "--debit", "Checking", "--credit", "Checking", "--amount", "10"
    )

    assert result.exit_code == 1
    assert "must differ" in result.output
    assert "0 transaction(s)" in initialized("list").output


def test_show_missing_transaction(initialized):
    result = initialized("show", "7")

    assert result.exit_code == 1
    assert "Transaction 7 not found" in result.output


def test_status(run):
    assert "not initialized" in run("status").output

    run("init-db")

    result = run("status")
    assert result.exit_code == 0
    assert result.output.strip() == "initialized"

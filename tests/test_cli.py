"""Tests for CLI module."""

import re

import pytest

from investment_ledger.cli import _parse_prices, cmd_init, cmd_version, main

OWNER = "11111111-1111-1111-1111-111111111111"


def run(db_path, *argv):
    return main(["--database", str(db_path), "--owner", OWNER, *argv])


def transaction_id(output):
    match = re.search(r"Transaction ID: ([0-9a-f-]{36})", output)
    assert match is not None
    return match.group(1)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "ledger.db"
    assert main(["--database", str(path), "init"]) == 0
    return path


class TestCmdInit:
    def test_creates_new_database(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 0
        assert db_path.exists()
        captured = capsys.readouterr()
        assert "Initialized database" in captured.out

    def test_refuses_to_overwrite_existing_without_force(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"
        db_path.touch()

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 1
        captured = capsys.readouterr()
        assert "already exists" in captured.out

    def test_overwrites_existing_with_force(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"
        db_path.write_text("old data")

        class Args:
            database = str(db_path)
            force = True

        result = cmd_init(Args())

        assert result == 0
        assert "Initialized database" in capsys.readouterr().out


class TestCmdVersion:
    def test_prints_version(self, capsys):
        result = cmd_version(None)

        assert result == 0
        assert "Investment Ledger v0.1.0" in capsys.readouterr().out


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_database_is_reported(self, tmp_path, capsys):
        result = run(tmp_path / "missing.db", "status")

        assert result == 1
        output = capsys.readouterr().out
        assert "Database not found" in output
        assert "ilg init" in output

    def test_invalid_owner_rejected(self, db_path, capsys):
        result = main(["--database", str(db_path), "--owner", "nope", "status"])

        assert result == 1
        assert "Invalid owner ID" in capsys.readouterr().out

    def test_status_counts(self, db_path, capsys):
        run(db_path, "buy", "AAPL", "10", "100", "--date", "2023-01-01")
        capsys.readouterr()

        assert run(db_path, "status") == 0

        output = capsys.readouterr().out
        assert "Transactions: 1" in output
        assert "Open tax lots: 1" in output


class TestRecordCommands:
    def test_buy(self, db_path, capsys):
        result = run(
            db_path, "buy", "aapl", "10", "100", "--date", "2023-01-01", "--fees", "5"
        )

        assert result == 0
        output = capsys.readouterr().out
        assert "Recorded BUY 10 AAPL @ $100.00 on 2023-01-01" in output
        assert "Total amount: $1,005.00" in output
        assert "cost basis $100.50/unit" in output

    def test_sell_prints_realized_gains(self, db_path, capsys):
        run(db_path, "buy", "AAPL", "10", "100", "--date", "2023-01-01", "--fees", "5")
        run(db_path, "buy", "AAPL", "5", "120", "--date", "2023-06-01")
        capsys.readouterr()

        result = run(db_path, "sell", "AAPL", "12", "150", "--date", "2024-02-01")

        assert result == 0
        output = capsys.readouterr().out
        assert "LONG" in output
        assert "SHORT" in output
        assert "Realized gain/loss: $555.00" in output

    def test_oversell_is_an_error(self, db_path, capsys):
        run(db_path, "buy", "AAPL", "3", "100", "--date", "2023-01-01")
        capsys.readouterr()

        result = run(db_path, "sell", "AAPL", "4", "150", "--date", "2023-02-01")

        assert result == 1
        output = capsys.readouterr().out
        assert output.startswith("Error: Insufficient holdings of AAPL")

    def test_bad_quantity_is_an_error(self, db_path, capsys):
        result = run(db_path, "buy", "AAPL", "ten", "100")

        assert result == 1
        assert "quantity must be a number" in capsys.readouterr().out

    def test_bad_date_is_an_error(self, db_path, capsys):
        result = run(db_path, "buy", "AAPL", "1", "100", "--date", "yesterday")

        assert result == 1
        assert capsys.readouterr().out.startswith("Error:")


class TestDeleteCommand:
    def test_delete_sell_then_buy(self, db_path, capsys):
        run(db_path, "buy", "AAPL", "10", "100", "--date", "2023-01-01")
        buy_id = transaction_id(capsys.readouterr().out)
        run(db_path, "sell", "AAPL", "4", "150", "--date", "2023-02-01")
        sell_id = transaction_id(capsys.readouterr().out)

        assert run(db_path, "delete", buy_id) == 1
        assert "associated sell transactions" in capsys.readouterr().out

        assert run(db_path, "delete", sell_id) == 0
        assert run(db_path, "delete", buy_id) == 0
        capsys.readouterr()

        run(db_path, "transactions")
        assert "No transactions found" in capsys.readouterr().out

    def test_invalid_id(self, db_path, capsys):
        assert run(db_path, "delete", "not-a-uuid") == 1
        assert "Invalid transaction ID" in capsys.readouterr().out

    def test_unknown_id(self, db_path, capsys):
        result = run(db_path, "delete", "22222222-2222-2222-2222-222222222222")

        assert result == 1
        assert "Transaction not found" in capsys.readouterr().out


class TestListingCommands:
    @pytest.fixture
    def history(self, db_path, capsys):
        run(db_path, "buy", "AAPL", "10", "100", "--date", "2023-01-01", "--fees", "5")
        run(db_path, "buy", "AAPL", "5", "120", "--date", "2023-06-01")
        run(db_path, "buy", "BTC", "0.5", "40000", "-c", "CRYPTO", "--date", "2023-03-01")
        run(db_path, "sell", "AAPL", "12", "150", "--date", "2024-02-01")
        capsys.readouterr()
        return db_path

    def test_transactions(self, history, capsys):
        assert run(history, "transactions", "--limit", "2") == 0

        output = capsys.readouterr().out
        assert "Showing 2 of 4 transactions (offset 0)" in output

    def test_transactions_filtered(self, history, capsys):
        assert run(history, "transactions", "--asset-class", "CRYPTO") == 0

        output = capsys.readouterr().out
        assert "BTC" in output
        assert "Showing 1 of 1 transactions" in output

    def test_lots(self, history, capsys):
        assert run(history, "lots") == 0
        assert "Total: 2 lots" in capsys.readouterr().out

        assert run(history, "lots", "--all") == 0
        assert "Total: 3 lots" in capsys.readouterr().out

    def test_cost_basis(self, history, capsys):
        assert run(history, "cost-basis") == 0

        output = capsys.readouterr().out
        assert "Cost Basis Report" in output
        assert "Total cost basis: $20,360.00" in output

    def test_unrealized_with_missing_price(self, history, capsys):
        result = run(history, "unrealized", "AAPL=130", "--as-of", "2024-03-01")

        assert result == 0
        output = capsys.readouterr().out
        assert "Total unrealized gain/loss: $30.00" in output
        assert "No price for: BTC" in output

    def test_holdings(self, history, capsys):
        assert run(history, "holdings", "AAPL=130") == 0

        output = capsys.readouterr().out
        assert "Total cost basis: $20,360.00" in output
        assert "Total unrealized gain/loss: $30.00" in output
        assert "Total realized gain/loss: $555.00" in output
        assert "No price for: BTC" in output

    def test_holdings_empty(self, db_path, capsys):
        assert run(db_path, "holdings") == 0
        assert "No holdings" in capsys.readouterr().out

    def test_unrealized_bad_price(self, history, capsys):
        assert run(history, "unrealized", "AAPL:130") == 1
        assert "expected SYMBOL=PRICE" in capsys.readouterr().out

    def test_tax_summary(self, history, capsys):
        assert run(history, "tax-summary", "2024") == 0

        output = capsys.readouterr().out
        assert "Tax Summary for 2024" in output
        assert "Total net gain:    $555.00" in output

    def test_realized(self, history, capsys):
        assert run(history, "realized") == 0

        output = capsys.readouterr().out
        assert "(2 records)" in output

    def test_realized_empty(self, history, capsys):
        assert run(history, "realized", "--asset-class", "CRYPTO") == 0
        assert "No realized gains found" in capsys.readouterr().out

    def test_other_owner_sees_nothing(self, history, capsys):
        other = "33333333-3333-3333-3333-333333333333"

        main(["--database", str(history), "--owner", other, "lots"])

        assert "No tax lots found" in capsys.readouterr().out


class TestParsePrices:
    def test_parses_pairs(self):
        prices = _parse_prices(["aapl=130", "BTC = 50000.5"])

        assert str(prices["AAPL"]) == "130"
        assert str(prices["BTC"]) == "50000.5"

    @pytest.mark.parametrize("pair", ["AAPL", "=10", "AAPL=abc"])
    def test_rejects_bad_pairs(self, pair):
        with pytest.raises(ValueError):
            _parse_prices([pair])

"""Command-line interface for Investment Ledger."""

import argparse
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from investment_ledger import __version__
from investment_ledger.config import DatabaseType, Settings, get_settings
from investment_ledger.container import Container
from investment_ledger.domain.value_objects import AssetClass, TransactionType
from investment_ledger.exceptions import InvestmentLedgerError
from investment_ledger.logging_config import configure_logging
from investment_ledger.repositories.interfaces import TransactionQuery
from investment_ledger.repositories.sqlite import SQLiteDatabase


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    if args.database:
        settings = settings.model_copy(
            update={
                "database_type": DatabaseType.SQLITE,
                "sqlite_path": Path(args.database),
            }
        )
    return settings


def _db_path(args: argparse.Namespace) -> Path:
    return Path(_settings_for(args).sqlite_path)


def _owner_id(args: argparse.Namespace) -> UUID:
    if args.owner:
        return UUID(args.owner)
    return get_settings().default_owner_id


def _open_container(args: argparse.Namespace) -> Container | None:
    """Return a container for an existing ledger, or None after printing why not."""
    settings = _settings_for(args)
    if settings.database_type == DatabaseType.SQLITE and not Path(
        settings.sqlite_path
    ).exists():
        print(f"Error: Database not found at {settings.sqlite_path}")
        print("Run 'ilg init' to create a new database")
        return None
    return Container(settings=settings)


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    return date.fromisoformat(value)


def _money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    return f"${value:,.2f}"


def _qty(value: Decimal) -> str:
    return format(value.normalize(), "f")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    db.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show database status."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            owner_id = _owner_id(args)
            assets = list(container.asset_repository.list_all())
            txn_count = container.transaction_repository.count_by_owner(owner_id)
            open_lots = container.tax_lot_store.lots_for_owner(owner_id)

            print(f"Database: {container.settings.sqlite_path}")
            print(f"Owner: {owner_id}")
            print(f"Assets: {len(assets)}")
            print(f"Transactions: {txn_count}")
            print(f"Open tax lots: {len(open_lots)}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Investment Ledger v{__version__}")
    return 0


def _cmd_record(args: argparse.Namespace, transaction_type: TransactionType) -> int:
    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            result = container.ledger_service.record_transaction(
                owner_id=_owner_id(args),
                symbol=args.symbol,
                asset_class=args.asset_class,
                transaction_type=transaction_type,
                quantity=args.quantity,
                price_per_unit=args.price,
                transaction_date=_parse_date(args.date) or date.today(),
                fees=args.fees,
                notes=args.notes,
            )

            txn = result.transaction
            print(
                f"Recorded {txn.transaction_type.value} {_qty(txn.quantity)} "
                f"{result.asset.symbol} @ {_money(txn.price_per_unit)} "
                f"on {txn.transaction_date.isoformat()}"
            )
            print(f"Transaction ID: {txn.id}")
            print(f"Total amount: {_money(txn.total_amount)}")

            if result.tax_lot is not None:
                lot = result.tax_lot
                print(
                    f"Opened tax lot {lot.id} "
                    f"(cost basis {_money(lot.cost_basis_per_unit)}/unit)"
                )

            if result.realized_gains:
                print(f"\n{'Lot':<38} {'Qty':>14} {'Gain/Loss':>14} {'Days':>6} {'Term':<6}")
                print("-" * 82)
                for gain in result.realized_gains:
                    term = "LONG" if gain.is_long_term else "SHORT"
                    print(
                        f"{str(gain.tax_lot_id):<38} {_qty(gain.quantity_sold):>14} "
                        f"{_money(gain.gain_loss):>14} {gain.holding_period_days:>6} "
                        f"{term:<6}"
                    )
                print(f"\nRealized gain/loss: {_money(result.total_gain_loss)}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_buy(args: argparse.Namespace) -> int:
    """Record a purchase."""
    return _cmd_record(args, TransactionType.BUY)


def cmd_sell(args: argparse.Namespace) -> int:
    """Record a sale."""
    return _cmd_record(args, TransactionType.SELL)


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a transaction and undo its lot or realized gains."""
    try:
        transaction_id = UUID(args.transaction_id)
    except ValueError:
        print(f"Error: Invalid transaction ID: {args.transaction_id}")
        return 1

    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            container.ledger_service.delete_transaction(_owner_id(args), transaction_id)
        print(f"Deleted transaction {transaction_id}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_transactions(args: argparse.Namespace) -> int:
    """List transactions, newest first."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        query = TransactionQuery(
            asset_class=AssetClass(args.asset_class) if args.asset_class else None,
            symbol=args.symbol,
            start_date=_parse_date(args.start_date),
            end_date=_parse_date(args.end_date),
            transaction_type=TransactionType(args.type) if args.type else None,
            limit=args.limit,
            offset=args.offset,
        )
        with container:
            page = container.ledger_service.list_transactions(_owner_id(args), query)

        if not page.items:
            print("No transactions found")
            return 0

        print(
            f"{'Date':<12} {'Type':<5} {'Symbol':<10} {'Quantity':>16} "
            f"{'Price':>14} {'Total':>16}  {'ID'}"
        )
        print("-" * 112)
        for view in page.items:
            txn = view.transaction
            print(
                f"{txn.transaction_date.isoformat():<12} {txn.transaction_type.value:<5} "
                f"{view.symbol:<10} {_qty(txn.quantity):>16} "
                f"{_money(txn.price_per_unit):>14} {_money(txn.total_amount):>16}  {txn.id}"
            )
        print(
            f"\nShowing {len(page.items)} of {page.total} transactions "
            f"(offset {page.offset})"
        )
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_lots(args: argparse.Namespace) -> int:
    """List tax lots."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            views = container.reporting_service.get_tax_lots(
                _owner_id(args), include_exhausted=args.all
            )

        if not views:
            print("No tax lots found")
            return 0

        print(
            f"{'Symbol':<10} {'Purchased':<12} {'Original':>16} {'Remaining':>16} "
            f"{'Cost/Unit':>14}  {'Lot ID'}"
        )
        print("-" * 110)
        for view in views:
            lot = view.lot
            print(
                f"{view.symbol:<10} {lot.purchase_date.isoformat():<12} "
                f"{_qty(lot.original_quantity):>16} {_qty(lot.remaining_quantity):>16} "
                f"{_money(lot.cost_basis_per_unit):>14}  {lot.id}"
            )
        print(f"\nTotal: {len(views)} lots")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_cost_basis(args: argparse.Namespace) -> int:
    """Show remaining cost basis grouped by asset class."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            report = container.reporting_service.get_cost_basis_report(_owner_id(args))

        print("Cost Basis Report")
        print("=" * 60)
        for asset_class, group in report.groups.items():
            print(f"\n{asset_class.value} ({len(group.lots)} lots)")
            for line in group.lots:
                print(
                    f"  {line.symbol:<10} {line.purchase_date.isoformat():<12} "
                    f"{_qty(line.remaining_quantity):>16} {_money(line.total_cost_basis):>16}"
                )
            print(f"  Total: {_money(group.total_cost_basis)}")
        print(f"\nTotal cost basis: {_money(report.total_cost_basis)}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def _parse_prices(pairs: list[str]) -> dict[str, Decimal]:
    prices: dict[str, Decimal] = {}
    for pair in pairs:
        symbol, sep, price = pair.partition("=")
        if not sep or not symbol.strip():
            raise ValueError(f"Invalid price '{pair}', expected SYMBOL=PRICE")
        try:
            prices[symbol.strip().upper()] = Decimal(price.strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid price '{pair}', expected SYMBOL=PRICE") from e
    return prices


def cmd_unrealized(args: argparse.Namespace) -> int:
    """Show unrealized gains at the given prices."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        prices = _parse_prices(args.prices)
        with container:
            report = container.reporting_service.get_unrealized_gains(
                _owner_id(args), prices, as_of=_parse_date(args.as_of)
            )

        if not report.lots:
            print("No open tax lots")
            return 0

        print(
            f"{'Symbol':<10} {'Quantity':>16} {'Cost Basis':>16} {'Value':>16} "
            f"{'Gain/Loss':>16} {'%':>9} {'Days':>6} {'Term':<6}"
        )
        print("-" * 104)
        for line in report.lots:
            term = "LONG" if line.would_be_long_term else "SHORT"
            pct = (
                f"{line.unrealized_gain_percent:.2f}"
                if line.unrealized_gain_percent is not None
                else "n/a"
            )
            print(
                f"{line.symbol:<10} {_qty(line.quantity):>16} "
                f"{_money(line.cost_basis):>16} {_money(line.current_value):>16} "
                f"{_money(line.unrealized_gain):>16} {pct:>9} "
                f"{line.holding_days:>6} {term:<6}"
            )
        print(f"\nTotal unrealized gain/loss: {_money(report.total_unrealized_gain)}")
        if report.unpriced_symbols:
            print(f"No price for: {', '.join(report.unpriced_symbols)}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_holdings(args: argparse.Namespace) -> int:
    """Show each held asset with value, unrealized and realized gains."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        prices = _parse_prices(args.prices)
        with container:
            report = container.reporting_service.get_holdings(_owner_id(args), prices)

        if not report.holdings:
            print("No holdings")
            return 0

        print(
            f"{'Symbol':<10} {'Class':<7} {'Quantity':>16} {'Cost Basis':>16} "
            f"{'Value':>16} {'Unrealized':>14} {'%':>9} {'Realized':>14} {'Return':>14}"
        )
        print("-" * 124)
        for line in report.holdings:
            pct = (
                f"{line.unrealized_gain_percent:.2f}"
                if line.unrealized_gain_percent is not None
                else "n/a"
            )
            print(
                f"{line.symbol:<10} {line.asset_class.value:<7} {_qty(line.quantity):>16} "
                f"{_money(line.cost_basis):>16} {_money(line.current_value):>16} "
                f"{_money(line.unrealized_gain):>14} {pct:>9} "
                f"{_money(line.realized_gain):>14} {_money(line.total_return):>14}"
            )
        print(f"\nTotal cost basis: {_money(report.total_cost_basis)}")
        print(f"Total value: {_money(report.total_current_value)}")
        print(f"Total unrealized gain/loss: {_money(report.total_unrealized_gain)}")
        print(f"Total realized gain/loss: {_money(report.total_realized_gain)}")
        if report.unpriced_symbols:
            print(f"No price for: {', '.join(report.unpriced_symbols)}")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_tax_summary(args: argparse.Namespace) -> int:
    """Show the short/long-term summary for one tax year."""
    container = _open_container(args)
    if container is None:
        return 1

    year = args.year or date.today().year
    try:
        with container:
            summary = container.reporting_service.get_tax_summary(_owner_id(args), year)

        print(f"Tax Summary for {summary.year}")
        print("=" * 60)
        print(f"Short-term gains:  {_money(summary.short_term_gains)}")
        print(f"Short-term losses: {_money(summary.short_term_losses)}")
        print(f"Net short-term:    {_money(summary.net_short_term)}")
        print(f"Long-term gains:   {_money(summary.long_term_gains)}")
        print(f"Long-term losses:  {_money(summary.long_term_losses)}")
        print(f"Net long-term:     {_money(summary.net_long_term)}")
        print(f"Total net gain:    {_money(summary.total_net_gain)}")

        if summary.by_asset:
            print(f"\n{'Symbol':<10} {'Class':<7} {'Term':<6} {'Quantity':>16} {'Gain/Loss':>16}")
            print("-" * 60)
            for row in summary.by_asset:
                term = "LONG" if row.is_long_term else "SHORT"
                print(
                    f"{row.symbol:<10} {row.asset_class.value:<7} {term:<6} "
                    f"{_qty(row.quantity_sold):>16} {_money(row.gain_loss):>16}"
                )
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def cmd_realized(args: argparse.Namespace) -> int:
    """List realized gains."""
    container = _open_container(args)
    if container is None:
        return 1

    try:
        with container:
            report = container.reporting_service.get_realized_gains(
                _owner_id(args),
                start_date=_parse_date(args.start_date),
                end_date=_parse_date(args.end_date),
                asset_class=AssetClass(args.asset_class) if args.asset_class else None,
            )

        if not report.gains:
            print("No realized gains found")
            return 0

        print(
            f"{'Sold':<12} {'Symbol':<10} {'Quantity':>16} {'Proceeds':>14} "
            f"{'Cost Basis':>14} {'Gain/Loss':>14} {'Term':<6}"
        )
        print("-" * 94)
        for view in report.gains:
            gain = view.gain
            term = "LONG" if gain.is_long_term else "SHORT"
            print(
                f"{gain.sale_date.isoformat():<12} {view.symbol:<10} "
                f"{_qty(gain.quantity_sold):>16} {_money(gain.proceeds):>14} "
                f"{_money(gain.cost_basis):>14} {_money(gain.gain_loss):>14} {term:<6}"
            )
        print(f"\nShort-term: {_money(report.short_term_gain_loss)}")
        print(f"Long-term:  {_money(report.long_term_gain_loss)}")
        print(f"Total:      {_money(report.total_gain_loss)} ({report.count} records)")
        return 0
    except (InvestmentLedgerError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def _add_record_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("symbol", help="Ticker or coin symbol")
    parser.add_argument("quantity", help="Number of units")
    parser.add_argument("price", help="Price per unit")
    parser.add_argument(
        "--asset-class",
        "-c",
        choices=[c.value for c in AssetClass],
        default=AssetClass.STOCK.value,
        help="Asset class (default: STOCK)",
    )
    parser.add_argument("--date", help="Trade date YYYY-MM-DD (default: today)")
    parser.add_argument("--fees", default="0", help="Fees paid (default: 0)")
    parser.add_argument("--notes", default="", help="Free-text notes")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ilg",
        description="Investment Ledger - FIFO tax-lot accounting for stocks and crypto",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )
    parser.add_argument(
        "--owner",
        help="Owner UUID (default: ILG_DEFAULT_OWNER_ID)",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # status command
    status_parser = subparsers.add_parser("status", help="Show database status")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # buy / sell commands
    buy_parser = subparsers.add_parser("buy", help="Record a purchase")
    _add_record_arguments(buy_parser)
    buy_parser.set_defaults(func=cmd_buy)

    sell_parser = subparsers.add_parser("sell", help="Record a sale (FIFO)")
    _add_record_arguments(sell_parser)
    sell_parser.set_defaults(func=cmd_sell)

    # delete command
    delete_parser = subparsers.add_parser(
        "delete", help="Delete a transaction and undo its effects"
    )
    delete_parser.add_argument("transaction_id", help="Transaction UUID")
    delete_parser.set_defaults(func=cmd_delete)

    # transactions command
    txns_parser = subparsers.add_parser("transactions", help="List transactions")
    txns_parser.add_argument("--symbol", help="Filter by symbol")
    txns_parser.add_argument(
        "--asset-class", choices=[c.value for c in AssetClass], help="Filter by class"
    )
    txns_parser.add_argument(
        "--type", choices=[t.value for t in TransactionType], help="Filter by type"
    )
    txns_parser.add_argument("--start-date", help="Earliest date YYYY-MM-DD")
    txns_parser.add_argument("--end-date", help="Latest date YYYY-MM-DD")
    txns_parser.add_argument("--limit", type=int, default=100, help="Page size")
    txns_parser.add_argument("--offset", type=int, default=0, help="Rows to skip")
    txns_parser.set_defaults(func=cmd_transactions)

    # lots command
    lots_parser = subparsers.add_parser("lots", help="List tax lots")
    lots_parser.add_argument(
        "--all", action="store_true", help="Include fully sold lots"
    )
    lots_parser.set_defaults(func=cmd_lots)

    # cost-basis command
    cost_basis_parser = subparsers.add_parser(
        "cost-basis", help="Show cost basis of open lots"
    )
    cost_basis_parser.set_defaults(func=cmd_cost_basis)

    # unrealized command
    unrealized_parser = subparsers.add_parser(
        "unrealized", help="Show unrealized gains at given prices"
    )
    unrealized_parser.add_argument(
        "prices", nargs="*", metavar="SYMBOL=PRICE", help="Current prices"
    )
    unrealized_parser.add_argument("--as-of", help="Valuation date YYYY-MM-DD")
    unrealized_parser.set_defaults(func=cmd_unrealized)

    # holdings command
    holdings_parser = subparsers.add_parser(
        "holdings", help="Per-asset holdings with unrealized and realized gains"
    )
    holdings_parser.add_argument(
        "prices", nargs="*", metavar="SYMBOL=PRICE", help="Current prices"
    )
    holdings_parser.set_defaults(func=cmd_holdings)

    # tax-summary command
    tax_parser = subparsers.add_parser(
        "tax-summary", help="Short/long-term summary for a tax year"
    )
    tax_parser.add_argument("year", type=int, nargs="?", help="Tax year")
    tax_parser.set_defaults(func=cmd_tax_summary)

    # realized command
    realized_parser = subparsers.add_parser("realized", help="List realized gains")
    realized_parser.add_argument("--start-date", help="Earliest sale date YYYY-MM-DD")
    realized_parser.add_argument("--end-date", help="Latest sale date YYYY-MM-DD")
    realized_parser.add_argument(
        "--asset-class", choices=[c.value for c in AssetClass], help="Filter by class"
    )
    realized_parser.set_defaults(func=cmd_realized)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.owner:
        try:
            UUID(args.owner)
        except ValueError:
            print(f"Error: Invalid owner ID: {args.owner}")
            return 1

    configure_logging(_settings_for(args))

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())

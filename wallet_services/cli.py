"""
``wallet`` command line.

Usage:
    wallet [--config PATH] [--database-url URL] <command> [options]

Commands:
    init-db                                     Create all tables.
    add-currency SYMBOL [--name NAME]           Register an ISO 4217 currency.
    add-user --name N --email E --credential C --currency SYM
                                                Register a wallet holder.
    set-rate FROM TO RATE [--source S]          Publish a directed rate.
    deposit --user ID --currency SYM --amount A Fund a ledger row.
    transfer --sender ID --receiver ID --currency SYM --amount A
                                                Transfer; settles in the
                                                receiver's preferred currency.
    balances --user ID                          List a user's ledger rows.

Exit codes:
    0  success
    1  wallet error, printed as ``error: <CODE>: <message>``
    2  usage error
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from wallet_kernel.db.engine import create_tables, reset_engine, session_scope
from wallet_kernel.domain.clock import SystemClock
from wallet_kernel.exceptions import CurrencyNotFoundError, WalletKernelError
from wallet_kernel.selectors.ledger_selector import LedgerSelector
from wallet_kernel.services.reference_data_service import ReferenceDataService
from wallet_kernel.services.transfer_engine import TransferEngine
from wallet_services.bootstrap import WalletRuntime, bootstrap


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal number: {value!r}") from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wallet",
        description="Multi-currency wallet ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides config and WALLET_DATABASE_URL).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")

    p = sub.add_parser("add-currency", help="Register an ISO 4217 currency.")
    p.add_argument("symbol")
    p.add_argument("--name", default=None)

    p = sub.add_parser("add-user", help="Register a wallet holder.")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--credential", required=True)
    p.add_argument("--currency", required=True, help="Preferred currency symbol.")

    p = sub.add_parser("set-rate", help="Publish a directed exchange rate.")
    p.add_argument("from_symbol")
    p.add_argument("to_symbol")
    p.add_argument("rate", type=_decimal)
    p.add_argument("--source", default="manual")

    p = sub.add_parser("deposit", help="Fund a ledger row.")
    p.add_argument("--user", type=UUID, required=True)
    p.add_argument("--currency", required=True)
    p.add_argument("--amount", type=_decimal, required=True)

    p = sub.add_parser("transfer", help="Transfer between users.")
    p.add_argument("--sender", type=UUID, required=True)
    p.add_argument("--receiver", type=UUID, required=True)
    p.add_argument("--currency", required=True, help="Source currency symbol.")
    p.add_argument("--amount", type=_decimal, required=True)

    p = sub.add_parser("balances", help="List a user's ledger rows.")
    p.add_argument("--user", type=UUID, required=True)

    return parser


def _currency_id(service: ReferenceDataService, symbol: str) -> UUID:
    currency = service.get_currency_by_symbol(symbol)
    if currency is None:
        raise CurrencyNotFoundError(symbol)
    return currency.id


def _run(args: argparse.Namespace, runtime: WalletRuntime) -> None:
    clock = SystemClock()

    if args.command == "init-db":
        create_tables()
        print("tables created")
        return

    if args.command == "transfer":
        with session_scope() as session:
            source_id = _currency_id(ReferenceDataService(session, clock), args.currency)
        with session_scope() as session:
            engine = TransferEngine(session, clock=clock, policy=runtime.policy)
            result = engine.transfer(args.sender, args.receiver, source_id, args.amount)
        print(f"transaction {result.transaction_id}")
        print(
            f"debited {result.amount} {args.currency.upper()}, "
            f"credited {result.settled_amount} at rate {result.rate_used}"
        )
        return

    with session_scope() as session:
        service = ReferenceDataService(session, clock)

        if args.command == "add-currency":
            currency = service.create_currency(args.symbol, args.name)
            print(f"{currency.symbol} {currency.id}")

        elif args.command == "add-user":
            user = service.register_user(
                name=args.name,
                email=args.email,
                credential=args.credential,
                preferred_currency_id=_currency_id(service, args.currency),
            )
            print(f"user {user.id}")

        elif args.command == "set-rate":
            row = service.publish_rate(
                _currency_id(service, args.from_symbol),
                _currency_id(service, args.to_symbol),
                args.rate,
                source=args.source,
            )
            print(f"rate {row.id} = {row.rate}")

        elif args.command == "deposit":
            new_amount = service.deposit(
                args.user, _currency_id(service, args.currency), args.amount,
            )
            print(f"balance {new_amount}")

        elif args.command == "balances":
            for view in LedgerSelector(session).balances_for_user(args.user):
                print(f"{view.currency_symbol} {view.amount}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    runtime = bootstrap(args.config, args.database_url)
    try:
        _run(args, runtime)
    except WalletKernelError as exc:
        print(f"error: {exc.code}: {exc}", file=sys.stderr)
        return 1
    finally:
        reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())

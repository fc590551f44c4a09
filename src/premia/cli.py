"""Command line interface for premia

premia add SYMBOL KIND QTY ENTRY STRIKE EXPIRATION
premia remove ID
premia list
premia value
premia watch
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass
from datetime import date, timedelta
from zoneinfo import ZoneInfoNotFoundError

from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.table import Table

from premia.application.services import PricingOrchestrator
from premia.core.config import (
    MAX_POLL_INTERVAL_SECONDS,
    MIN_POLL_INTERVAL_SECONDS,
    Config,
)
from premia.domain.calendar import MarketCalendar
from premia.domain.models import (
    OptionPosition,
    PositionKind,
    ValuedOptionPosition,
    format_option_symbol,
)
from premia.domain.pricing import PricingEngine, summarize
from premia.infrastructure.database import BaseDatabase
from premia.infrastructure.database.repositories import (
    SqlClosingPriceCache,
    SqlPositionStore,
)
from premia.infrastructure.feeds.yahoo import YahooOptionPriceSource
from premia.shared.exceptions import ConfigurationError, PremiaError

KIND_ALIASES = {
    "sell-put": PositionKind.SELL_PUT,
    "buy-call": PositionKind.BUY_CALL,
    "buy-put": PositionKind.BUY_PUT,
}


@dataclass
class Services:
    """Wired collaborators for one CLI invocation"""

    db: BaseDatabase
    store: SqlPositionStore
    closing_cache: SqlClosingPriceCache
    price_source: YahooOptionPriceSource
    orchestrator: PricingOrchestrator

    async def aclose(self) -> None:
        await self.price_source.aclose()
        self.db.close()


def build_services(config: Config) -> Services:
    """Wire database, store, cache, feed and orchestrator from config

    Raises:
        ConfigurationError: If the market timezone is unknown
    """
    try:
        calendar = MarketCalendar(
            holidays=config.calendar.all_holidays,
            timezone_name=config.calendar.timezone,
            open_time=config.calendar.open_time,
            close_time=config.calendar.close_time,
        )
    except ZoneInfoNotFoundError as e:
        raise ConfigurationError(
            f"Unknown market timezone: {config.calendar.timezone}"
        ) from e

    db = BaseDatabase(config.db_path)
    store = SqlPositionStore(db, calendar=calendar)
    closing_cache = SqlClosingPriceCache(
        db,
        refresh_after=timedelta(hours=config.pricing.refresh_after_hours),
    )
    price_source = YahooOptionPriceSource.from_config(config.feed)
    orchestrator = PricingOrchestrator(
        store,
        price_source,
        closing_cache,
        calendar=calendar,
        engine=PricingEngine(change_epsilon=config.pricing.change_epsilon),
        poll_interval_seconds=config.pricing.poll_interval_seconds,
    )
    return Services(db, store, closing_cache, price_source, orchestrator)


def _signed(value: float) -> str:
    colour = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{colour}]{value:+,.2f}[/{colour}]"


def _percent(value: float) -> str:
    colour = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{colour}]{value:+.2f}%[/{colour}]"


def _price(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "-"


def display_positions(positions: list[OptionPosition], console: Console) -> None:
    """Display stored positions in a formatted table."""
    if not positions:
        console.print("[yellow]No positions[/yellow]")
        return

    table = Table(title=f"Option Positions ({len(positions)})")
    table.add_column("ID", style="dim")
    table.add_column("Contract", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("Qty", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Expires")

    for p in positions:
        table.add_row(
            p.id or "-",
            format_option_symbol(
                p.underlying_symbol, p.strike_price, p.position_kind
            ),
            p.position_kind.value,
            str(p.contract_quantity),
            f"{p.entry_price_per_share:.2f}",
            p.expiration_date.isoformat(),
        )

    console.print(table)


def display_valuation(
    valued: list[ValuedOptionPosition], console: Console
) -> None:
    """Display valued positions and the portfolio summary."""
    if not valued:
        console.print("[yellow]No positions[/yellow]")
        return

    last_day = valued[0].is_last_trading_day
    title = "Last Trading Day" if last_day else "Today"
    table = Table(title=f"Option Valuation ({title})")
    table.add_column("Contract", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Bid", justify="right")
    table.add_column("Ask", justify="right")
    table.add_column("Mark", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Value", justify="right")
    table.add_column(f"{title} P&L", justify="right")
    table.add_column(f"{title} %", justify="right")
    table.add_column("Total P&L", justify="right")
    table.add_column("Total %", justify="right")

    for v in valued:
        table.add_row(
            format_option_symbol(
                v.underlying_symbol, v.position.strike_price, v.position_kind
            ),
            str(v.contract_quantity),
            _price(v.bid),
            _price(v.ask),
            f"{v.mark_price:.2f}",
            f"{v.cost:,.2f}",
            f"{v.current_value:,.2f}",
            _signed(v.today_gain_loss.amount),
            _percent(v.today_gain_loss.percent),
            _signed(v.total_gain_loss.amount),
            _percent(v.total_gain_loss.percent),
        )

    console.print(table)

    summary = summarize(valued)
    console.print(
        f"Cost: {summary.total_cost:,.2f}  "
        f"Value: {summary.total_current_value:,.2f}  "
        f"{title}: {_signed(summary.today_gain_loss)}  "
        f"Total: {_signed(summary.total_gain_loss.amount)} "
        f"({_percent(summary.total_gain_loss.percent)})"
    )


def poll_interval(value: str) -> int:
    """argparse type for --interval, bounded like PREMIA_POLL_INTERVAL"""
    try:
        seconds = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r}") from e
    if not MIN_POLL_INTERVAL_SECONDS <= seconds <= MAX_POLL_INTERVAL_SECONDS:
        raise argparse.ArgumentTypeError(
            f"interval must be between {MIN_POLL_INTERVAL_SECONDS} and "
            f"{MAX_POLL_INTERVAL_SECONDS} seconds, got {seconds}"
        )
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="premia", description="Option position pricing"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    add_parser = subparsers.add_parser("add", help="Add an option position")
    add_parser.add_argument("symbol", help="Underlying symbol (e.g. AMD)")
    add_parser.add_argument(
        "kind", choices=sorted(KIND_ALIASES), help="Position kind"
    )
    add_parser.add_argument("quantity", type=int, help="Number of contracts")
    add_parser.add_argument(
        "entry_price", type=float, help="Premium per share at entry"
    )
    add_parser.add_argument("strike", type=float, help="Strike price")
    add_parser.add_argument(
        "expiration",
        type=date.fromisoformat,
        help="Expiration date (YYYY-MM-DD)",
    )

    remove_parser = subparsers.add_parser("remove", help="Remove a position")
    remove_parser.add_argument("position_id", help="Position ID")

    subparsers.add_parser("list", help="List stored positions")
    subparsers.add_parser("value", help="Run one pricing pass")

    watch_parser = subparsers.add_parser(
        "watch", help="Poll prices until interrupted"
    )
    watch_parser.add_argument(
        "--interval",
        type=poll_interval,
        default=None,
        help="Override the poll interval in seconds",
    )
    return parser


async def _watch(services: Services, console: Console) -> None:
    services.orchestrator.subscribe(
        lambda valued: display_valuation(valued, console)
    )
    await services.orchestrator.start()
    try:
        while services.orchestrator.is_running:
            await asyncio.sleep(1)
    finally:
        await services.orchestrator.stop()


async def run_command(
    args: argparse.Namespace, services: Services, console: Console
) -> int:
    """Execute one parsed command

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args.command == "add":
        position = services.store.add(
            OptionPosition(
                underlying_symbol=args.symbol.upper(),
                position_kind=KIND_ALIASES[args.kind],
                contract_quantity=args.quantity,
                entry_price_per_share=args.entry_price,
                strike_price=args.strike,
                expiration_date=args.expiration,
            )
        )
        console.print(
            f"[green]Added {position.contract_id} ({position.id})[/green]"
        )
    elif args.command == "remove":
        services.store.delete(args.position_id)
        console.print(f"[green]Removed {args.position_id}[/green]")
    elif args.command == "list":
        display_positions(services.store.list(), console)
    elif args.command == "value":
        display_valuation(await services.orchestrator.refresh(), console)
    elif args.command == "watch":
        if args.interval is not None:
            services.orchestrator.poll_interval_seconds = args.interval
        await _watch(services, console)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = Config.from_env()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.remove()
    logger.add(sys.stderr, level=config.log_level)
    logger.add(
        "logs/premia_{time}.log",
        rotation="1 day",
        retention="30 days",
        compression="gz",
        level="DEBUG",
    )

    console = Console()
    try:
        services = build_services(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    async def run() -> int:
        try:
            return await run_command(args, services, console)
        finally:
            await services.aclose()

    try:
        return asyncio.run(run())
    except PremiaError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0
    except Exception as e:
        logger.opt(exception=True).critical(f"Unhandled exception: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

import argparse
import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from stablepair.config import ClientConfig, load_config
from stablepair.models import Asset
from stablepair.session import StablePairSession


def configure_logging(verbose: bool) -> None:
    logging.Formatter.converter = time.gmtime  # UTC
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def resolve_config(config_path: Optional[Path]) -> ClientConfig:
    if config_path is not None and config_path.exists():
        return load_config(config_path)
    return ClientConfig()


async def run(args: argparse.Namespace, config: ClientConfig) -> str:
    async with StablePairSession(config) as session:
        if args.command == "quote":
            asset_in = Asset(args.sell)
            asset_out = Asset.USDT if asset_in is Asset.USDC else Asset.USDC
            if args.exact_out:
                estimate = await session.solve_exact_output(asset_in, asset_out, args.amount, max_in=args.max_in)
            else:
                estimate = await session.solve_exact_input(asset_in, asset_out, args.amount)
            return (
                f"sell {estimate.amount_in} {asset_in.display_name} -> "
                f"buy {estimate.amount_out} {asset_out.display_name} "
                f"(price {estimate.quote.price}, fee {estimate.quote.fee}, converged={estimate.converged})"
            )

        if args.command == "balance":
            outcome = await session.refresh_and_observe(args.user, tries=args.tries)
            return (
                f"ckUSDC {outcome.balance.usdc} | ckUSDT {outcome.balance.usdt} "
                f"(reads={outcome.attempts}, changed={outcome.changed})"
            )

        if args.command == "activity":
            page = await session.load_first_page(args.limit)
            lines = [f"{event.timestamp_ms} {event.kind:<15} {event.actor}" for event in page.events]
            lines.append(f"cursor={page.cursor} has_more={page.has_more}")
            return "\n".join(lines)

        if args.command == "position":
            shares = await session.user_position(args.user)
            fees = await session.unclaimed_fee(args.user)
            return f"shares={shares} unclaimed ckUSDC={fees.usdc} ckUSDT={fees.usdt}"

        if args.command == "stats":
            stats = await session.pool_stats()
            return (
                f"tvl={stats.tvl} vol24h={stats.volume_24h} vol7d={stats.volume_7d} "
                f"fee24h={stats.fee_24h} swaps24h={stats.swaps_24h} apy24h={stats.apy_24h_pct}%"
            )

        info = await session.pool_info()
        return (
            f"amp={info.amp} fee={info.fee_bps}bps ckUSDC={info.reserve_usdc} "
            f"ckUSDT={info.reserve_usdt} shares={info.total_shares} tvl={info.tvl}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="ckUSDC/ckUSDT pool client")
    parser.add_argument("--config", type=Path, default=Path("config/client.yaml"))
    parser.add_argument("--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    quote = commands.add_parser("quote", help="Estimate a swap")
    quote.add_argument("--sell", choices=[asset.value for asset in Asset], default=Asset.USDC.value)
    quote.add_argument("--amount", required=True)
    quote.add_argument("--exact-out", action="store_true", help="Treat --amount as the amount to receive")
    quote.add_argument("--max-in", default=None, help="Upper bound on the sell amount")

    balance = commands.add_parser("balance", help="Refresh and read available balances")
    balance.add_argument("user")
    balance.add_argument("--tries", type=int, default=None)

    activity = commands.add_parser("activity", help="Show the newest activity page")
    activity.add_argument("--limit", type=int, default=None)

    position = commands.add_parser("position", help="Show LP shares and unclaimed fees")
    position.add_argument("user")

    commands.add_parser("stats", help="Show 24h/7d pool statistics")
    commands.add_parser("pool", help="Show pool info")

    args = parser.parse_args()
    configure_logging(args.verbose)
    print(asyncio.run(run(args, resolve_config(args.config))))


if __name__ == "__main__":
    main()

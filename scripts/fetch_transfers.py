"""Fetch ERC-20 transfers of a wallet for a date window and print them as JSON lines.

Usage:
    PYTHONPATH=src python scripts/fetch_transfers.py mainnet \
        0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48 2024-01-01 2024-01-31 \
        --wallet 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045 [--journal-id 7] [-v]

Configuration (ALCHEMY_API_KEY, TRANSFER_SOURCE, RPC_URL, ...) is read from the
environment or .env.
"""

import argparse
import asyncio
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s - %(message)s"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve ERC-20 transfers for a wallet and date range")
    parser.add_argument("network", help="network key, e.g. mainnet, base, arbitrum")
    parser.add_argument("token", help="token contract address")
    parser.add_argument("from_date", help="YYYY-MM-DD (inclusive, UTC)")
    parser.add_argument("to_date", help="YYYY-MM-DD (inclusive, UTC)")
    parser.add_argument("--wallet", help="wallet address; omit to list every transfer of the token")
    parser.add_argument("--journal-id", type=int, help="print ledger statement lines for this journal")
    parser.add_argument("--company-id", type=int)
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logs and chunk/page progress")
    return parser.parse_args(argv)


async def main(argv: list[str]) -> int:
    from erc20sync.container import Container
    from erc20sync.domain.models.progress import ProgressEvent
    from erc20sync.exceptions import ChainError
    from erc20sync.sync.statement import build_statement_line

    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    progress_logger = logging.getLogger("erc20sync.progress")

    def on_progress(event: ProgressEvent) -> None:
        suffix = f" [{event.current}/{event.total or '?'}]" if event.current is not None else ""
        progress_logger.debug("%s: %s%s", event.stage.value, event.message, suffix)

    container = Container()
    service = container.transfer_service()
    http_client = container.http_client()
    try:
        records = await service.get_transfer_records(
            network=args.network,
            token_address=args.token,
            from_date=args.from_date,
            to_date=args.to_date,
            wallet_address=args.wallet,
            observer=on_progress if args.verbose else None,
        )
    except ChainError as e:
        logging.getLogger("fetch_transfers").error("%s", e)
        return 1
    finally:
        await http_client.close()

    for record in records:
        if args.journal_id is not None:
            line = build_statement_line(record, args.journal_id, args.company_id)
            print(line.to_json())
        else:
            print(record.model_dump_json())

    print(f"{len(records)} transfer(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))

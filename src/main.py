from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from time import perf_counter
from typing import Sequence

from config import config
from db.db import init_db
from db.repositories import LedgerEventRepository
from domain.errors import LedgerValidationError
from domain.inventory import ReplayResult, replay_ledger
from domain.positions import PositionProjector
from domain.settings import LotMethod, Settings
from domain.tax_report import TaxYearReportBuilder
from importers.csv_ledger import load_ledger_csv
from utils.debug_dump import dump_tax_report
from utils.inventory_summary import render_positions
from utils.tax_summary import render_tax_report

logger = logging.getLogger(__name__)


def run(
    csv_path: Path,
    db_file: Path,
    *,
    settings: Settings,
    year: int | None = None,
    lot_method: LotMethod | None = None,
    prices: dict[str, Decimal] | None = None,
    dump_dir: Path | None = None,
) -> None:
    # Setup components
    logger.info("Initializing DB at %s", db_file)
    session = init_db(db_file, reset=True)
    event_repository = LedgerEventRepository(session)

    # Get data
    started = perf_counter()
    event_repository.create_many(load_ledger_csv(csv_path))
    events = event_repository.list()
    logger.info("Stored %d events from %s in %.2fs", len(events), csv_path, perf_counter() - started)

    # Process stuff
    started = perf_counter()
    replay = replay_ledger(events, settings, lot_method=lot_method)
    logger.info("Replayed ledger in %.2fs", perf_counter() - started)

    # Print summary
    print_base_replay_summary(replay)
    projector = PositionProjector(settings.base_currency)
    render_positions(projector.project(replay.positions, prices or {}), settings.base_currency)

    if year is None:
        return

    report = TaxYearReportBuilder(settings).build(events, year, lot_method_override=lot_method)
    render_tax_report(report)
    if dump_dir is not None:
        paths = dump_tax_report(report, root_dir=dump_dir)
        logger.info("Wrote tax report artifacts to %s", paths["report"].parent)


def print_base_replay_summary(result: ReplayResult) -> None:
    print(f"Replay summary ({result.lot_method}):")
    print(f"  Open lots:     {sum(len(lots) for lots in result.lots_by_asset.values())}")
    print(f"  Disposals:     {len(result.disposals)}")
    print(f"  Realized gain: {result.realized_gain_base}")
    print(f"  Warnings:      {len(result.warnings)}")


def _parse_price(raw: str) -> tuple[str, Decimal]:
    asset_id, sep, price = raw.partition("=")
    if not sep or not asset_id:
        raise argparse.ArgumentTypeError(f"expected ASSET=PRICE, got {raw!r}")
    try:
        return asset_id.strip(), Decimal(price.strip())
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid price {price!r}") from None


def main(argv: Sequence[str] | None = None) -> None:
    app_settings = config()
    parser = argparse.ArgumentParser(description="Replay a ledger CSV into lots, positions and tax reports.")
    parser.add_argument("--csv", type=Path, required=True)
    parser.add_argument("--db", type=Path, default=app_settings.db_file)
    parser.add_argument("--year", type=int, default=None)
    parser.add_argument("--lot-method", type=LotMethod, choices=list(LotMethod), default=None)
    parser.add_argument("--price", type=_parse_price, action="append", default=[], metavar="ASSET=PRICE")
    parser.add_argument("--dump-dir", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        run(
            args.csv,
            args.db,
            settings=app_settings.ledger_settings(),
            year=args.year,
            lot_method=args.lot_method,
            prices=dict(args.price),
            dump_dir=args.dump_dir,
        )
    except LedgerValidationError as err:
        logger.error("Ledger validation failed: %s", err)
        print(f"error: {err}", file=sys.stderr)
        raise SystemExit(2) from err


if __name__ == "__main__":
    main()

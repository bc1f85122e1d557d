# greentrain/scripts/service_dates.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date

from greentrain.config import settings
from greentrain.domain.errors import GreenTrainError
from greentrain.services import sales_window, time_math
from greentrain.services.calendar_resolver import resolve
from greentrain.services.trains_repo import TrainsRepo, get_repo

log = logging.getLogger("service_dates")


def _date_arg(value: str) -> date:
    try:
        return time_math.parse_service_date(value)
    except GreenTrainError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Lists the service dates of a train with the sale status of each one.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("train_id", help="Train id as in the catalog.")
    p.add_argument("--from", dest="date_from", type=_date_arg, required=True, help="YYYY-MM-DD")
    p.add_argument("--to", dest="date_to", type=_date_arg, required=True, help="YYYY-MM-DD")
    p.add_argument(
        "--catalog",
        default=None,
        help=f"Trains JSON (default: {getattr(settings, 'TRAINS_JSON', '')}).",
    )
    p.add_argument("--station", type=int, default=0, help="Boarding station index.")
    p.add_argument("--log-level", default=getattr(settings, "LOG_LEVEL", "INFO"))
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.catalog:
            repo = TrainsRepo(args.catalog)
            repo.load()
        else:
            repo = get_repo()
    except FileNotFoundError as e:
        print(f"Catalog not found: {e}", file=sys.stderr)
        return 2

    train = repo.get(args.train_id)
    if train is None:
        print(f"Unknown train: {args.train_id}", file=sys.stderr)
        return 1

    now = time_math.now_instant(train.timezone)
    out = []
    try:
        for d in resolve(train, args.date_from, args.date_to):
            opens, closes = sales_window.sales_window(train, d, args.station)
            out.append(
                {
                    "service_date": d.isoformat(),
                    "sale_status": sales_window.status(train, now, d, args.station),
                    "sales_open": opens.local_iso if opens else None,
                    "sales_close": closes.local_iso,
                }
            )
    except GreenTrainError as e:
        print(str(e), file=sys.stderr)
        return 1

    log.debug("%s: %d dates between %s and %s", train.id, len(out), args.date_from, args.date_to)
    print(
        json.dumps(
            {"train_id": train.id, "timezone": train.timezone, "now": now.local_iso, "dates": out},
            indent=2,
            ensure_ascii=False,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

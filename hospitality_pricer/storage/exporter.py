# hospitality_pricer/storage/exporter.py
import csv
import io
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from loguru import logger
from pydantic import BaseModel

from hospitality_pricer.models.enums import PriceMode
from hospitality_pricer.models.match import CanonicalMatchRecord
from hospitality_pricer.models.offer import Offer
from hospitality_pricer.pricing.rates import RateSnapshot
from hospitality_pricer.utils.misc_utils import decimal_to_number

# Sheet columns and the lounge title fragment each one is filled from
SHEET_LOUNGES = [
    ("Pitchside Lounge", "Pitchside"),
    ("VIP", "VIP"),
    ("Trophy Lounge", "Trophy"),
    ("Champions Club", "Champions"),
    ("FIFA Pavilion", "Pavilion"),
]


class ExportError(Exception):
    """Raised when an export file cannot be written."""

    pass


class ExportPaths(BaseModel):
    json_snapshot: Path
    json_latest: Path
    csv_snapshot: Path
    csv_latest: Path
    sheet_latest: Path


def _atomic_write(path: Path, content: str) -> None:
    """Write via temp file + os.replace so readers never see a partial file."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as e:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise ExportError(f"Failed to write {path}: {e}") from e


def build_snapshot(
    records: Sequence[CanonicalMatchRecord], rates: RateSnapshot, run_at: datetime
) -> Dict[str, Any]:
    return {
        "scraped_at": run_at.isoformat(),
        "base_currency": rates.base,
        "exchange_rates": rates.model_dump(mode="json")["rates"],
        "rate_source": rates.source,
        "total_records": len(records),
        "records": [
            record.model_dump(mode="json", exclude={"description"}) for record in records
        ],
    }


def csv_header(mode: PriceMode, base_currency: str) -> List[str]:
    if mode == PriceMode.LOWEST_AVAILABLE:
        price_columns = ["Lowest Lounge", "Lowest Price"]
    else:
        price_columns = ["Lounge Type", "Original Price"]
    return [
        "Match Number",
        "Stage",
        "Host Team",
        "Away Team",
        "Venue",
        "City",
        "Country",
        "Date",
        "Time",
        *price_columns,
        "Original Currency",
        f"Price ({base_currency})",
        "Portal",
    ]


def csv_rows(records: Iterable[CanonicalMatchRecord], mode: PriceMode) -> List[List[Any]]:
    """One row per record, or one per offer when every offer is exported."""
    rows: List[List[Any]] = []
    for record in records:
        if mode == PriceMode.LOWEST_AVAILABLE:
            offers: List[Offer] = [
                Offer(
                    title=record.lounge or "",
                    amount=record.price or 0,
                    currency=record.currency,
                    base_amount=record.base_price,
                )
            ]
        else:
            offers = record.offers
        for offer in offers:
            rows.append(
                [
                    record.match_number,
                    record.stage,
                    record.host_team.name,
                    record.opposing_team.name,
                    record.venue.name,
                    record.venue.town,
                    record.venue.country,
                    record.match_date,
                    record.match_time,
                    offer.title,
                    decimal_to_number(offer.amount),
                    offer.currency,
                    decimal_to_number(offer.base_amount),
                    record.portal,
                ]
            )
    return rows


def _render_csv(header: List[str], rows: List[List[Any]]) -> str:
    buffer = io.StringIO()
    # Numbers stay bare, free text is quoted
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def lounge_matrix(
    records: Iterable[CanonicalMatchRecord], updated_at: datetime
) -> List[List[Any]]:
    """Spreadsheet layout: one row per record, one column per lounge family."""
    rows: List[List[Any]] = [
        ["Match #", "Host Team", "Away Team", "Venue", "City", "Country", "Date", "Time"]
        + [column for column, _ in SHEET_LOUNGES]
        + ["Last Updated"]
    ]
    for record in records:
        prices = []
        for _, fragment in SHEET_LOUNGES:
            offer = next(
                (o for o in record.offers if fragment.lower() in o.title.lower()), None
            )
            prices.append(decimal_to_number(offer.amount) if offer else "")
        rows.append(
            [
                record.match_number,
                record.host_team.name,
                record.opposing_team.name,
                record.venue.name,
                record.venue.town,
                record.venue.country,
                record.match_date,
                record.match_time,
                *prices,
                updated_at.isoformat(),
            ]
        )
    return rows


def export_records(
    records: Sequence[CanonicalMatchRecord],
    rates: RateSnapshot,
    run_at: datetime,
    mode: PriceMode,
    output_dir: str = "data",
    prefix: str = "fifa_data",
) -> ExportPaths:
    """Writes the dated and "latest" JSON/CSV exports plus the sheet matrix."""
    out = Path(output_dir)
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportError(f"Cannot create output directory {out}: {e}") from e

    stamp = run_at.strftime("%Y-%m-%d")
    paths = ExportPaths(
        json_snapshot=out / f"{prefix}_{stamp}.json",
        json_latest=out / f"{prefix}_latest.json",
        csv_snapshot=out / f"{prefix}_{stamp}.csv",
        csv_latest=out / f"{prefix}_latest.csv",
        sheet_latest=out / f"{prefix}_sheet_latest.csv",
    )

    snapshot = json.dumps(build_snapshot(records, rates, run_at), indent=2, ensure_ascii=False)
    _atomic_write(paths.json_snapshot, snapshot)
    _atomic_write(paths.json_latest, snapshot)
    logger.success(f"Saved JSON: {paths.json_snapshot}")

    table = _render_csv(csv_header(mode, rates.base), csv_rows(records, mode))
    _atomic_write(paths.csv_snapshot, table)
    _atomic_write(paths.csv_latest, table)
    logger.success(f"Saved CSV: {paths.csv_snapshot}")

    matrix = lounge_matrix(records, run_at)
    _atomic_write(paths.sheet_latest, _render_csv(matrix[0], matrix[1:]))
    logger.info(f"Saved sheet matrix with {len(matrix) - 1} rows: {paths.sheet_latest}")

    return paths

import sys
import asyncio
from datetime import datetime, timezone

# --- Settings/Logging ---
from hospitality_pricer.logging.setup import setup_logging
from hospitality_pricer.config.settings import settings

setup_logging()

from loguru import logger

from hospitality_pricer.config.pipeline import PipelineConfig
from hospitality_pricer.models.portal import resolve_portals
from hospitality_pricer.pipeline.runner import PipelineResult, PricingPipeline
from hospitality_pricer.portals.fifa_hospitality import FifaHospitalityClient
from hospitality_pricer.pricing.rates import fetch_rates
from hospitality_pricer.storage.exporter import export_records
from hospitality_pricer.storage.supabase_client import initialize_supabase, save_records

from rich.console import Console
from rich.table import Table


def print_summary(result: PipelineResult) -> None:
    """Prints per-portal counters and the final row count."""
    table = Table(title=f"Hospitality pricing ({len(result.records)} rows)")
    for column in ("Portal", "Listed", "Priced", "No offers", "Fetch failed", "Filtered"):
        table.add_column(column, justify="left" if column == "Portal" else "right")
    for stats in result.stats:
        table.add_row(
            stats.portal,
            str(stats.listed),
            str(stats.priced),
            str(stats.no_offers),
            str(stats.fetch_failed),
            str(stats.filtered),
        )
    rates = result.rates
    caption = f"Rates ({rates.source}, base {rates.base}): " + ", ".join(
        f"{code} {rates.rates[code]}" for code in ("CAD", "MXN", "USD") if code in rates.rates
    )
    table.caption = caption
    Console(stderr=True).print(table)


async def main() -> None:
    """Runs the pricing pipeline once: rates, portals, reconciliation, export."""
    run_at = datetime.now(timezone.utc)
    logger.info("Starting FIFA hospitality pricing run...")

    config = PipelineConfig.from_settings(settings)
    portals = resolve_portals(settings.portal_codes)
    logger.info(
        f"Mode={config.price_mode.value} currency_rule={config.currency_rule.value} "
        f"merge={config.merge_policy.value} stage_filter={settings.stage_filter.value} "
        f"portals={[p.code for p in portals]}"
    )

    # Rates are fetched once and reused for every conversion in the run
    rates = await fetch_rates(config.base_currency)

    client = FifaHospitalityClient()
    try:
        result = await PricingPipeline(client, config, portals).run(rates)
    finally:
        await client.close()

    paths = export_records(
        result.records,
        rates,
        run_at,
        config.price_mode,
        output_dir=settings.output_dir,
        prefix=settings.file_prefix,
    )
    logger.success(f"Exports written to {paths.json_latest.parent}")

    if settings.supabase_enabled:
        supabase_client = await initialize_supabase()
        if not supabase_client:
            raise RuntimeError("Supabase is configured but the client could not be created.")
        if not await save_records(result.records, run_at, supabase_client):
            raise RuntimeError(f"Failed to save records to {settings.supabase_table}.")

    print_summary(result)
    logger.success("Scraping complete!")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)

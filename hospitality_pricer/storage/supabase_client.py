# hospitality_pricer/storage/supabase_client.py
from datetime import datetime
from typing import List, Dict, Any, Optional

from loguru import logger
from supabase import create_async_client, AsyncClient
from postgrest import APIResponse
from postgrest.exceptions import APIError

from hospitality_pricer.config.settings import settings
from hospitality_pricer.models.match import CanonicalMatchRecord
from hospitality_pricer.utils.misc_utils import decimal_to_number, generate_canonical_id

# Module-level storage for the async client instance
_async_supabase_client: Optional[AsyncClient] = None


async def initialize_supabase() -> Optional[AsyncClient]:
    """Initializes the global ASYNC Supabase client and returns it."""
    global _async_supabase_client
    if _async_supabase_client:
        logger.debug("Async Supabase client already initialized.")
        return _async_supabase_client

    if not settings.supabase_enabled:
        logger.info("Supabase URL or key not configured; skipping the Supabase sink.")
        return None

    logger.debug(f"Attempting to initialize Async Supabase client with URL: {settings.supabase_url}")
    try:
        client: AsyncClient = await create_async_client(
            settings.supabase_url, settings.supabase_key
        )
        _async_supabase_client = client
        logger.success("Async Supabase client initialized successfully.")
        return client
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        return None


def record_rows(records: List[CanonicalMatchRecord], run_at: datetime) -> List[Dict[str, Any]]:
    """Flattens records into one row per (match, portal, lounge)."""
    rows = []
    for record in records:
        for offer in record.offers:
            rows.append(
                {
                    "row_id": generate_canonical_id(
                        record.match_number, record.portal_code, offer.title
                    ),
                    "match_number": record.match_number,
                    "stage": record.stage,
                    "host_team": record.host_team.name,
                    "opposing_team": record.opposing_team.name,
                    "venue": record.venue.name,
                    "city": record.venue.town,
                    "country": record.venue.country,
                    "match_date": record.match_date,
                    "match_time": record.match_time,
                    "lounge": offer.title,
                    "price": decimal_to_number(offer.amount),
                    "currency": offer.currency,
                    "base_price": decimal_to_number(offer.base_amount),
                    "base_currency": record.base_currency,
                    "portal": record.portal,
                    "scraped_at": run_at.isoformat(),
                }
            )
    return rows


async def save_records(
    records: List[CanonicalMatchRecord],
    run_at: datetime,
    client: Optional[AsyncClient] = None,
) -> bool:
    """Upserts the canonical records into the configured Supabase table."""
    client = client or _async_supabase_client
    if not client:
        logger.error("Async Supabase client not available for upsert.")
        return False

    rows = record_rows(records, run_at)
    if not rows:
        logger.debug(f"No rows to upsert to {settings.supabase_table}. Skipping.")
        return True

    try:
        response: APIResponse = (
            await client.table(settings.supabase_table)
            .upsert(rows, on_conflict="row_id")
            .execute()
        )
        logger.success(
            f"Successfully upserted {len(response.data or rows)} rows to {settings.supabase_table}."
        )
        return True
    except APIError as e:
        logger.error(f"Error during upsert to {settings.supabase_table}: {e.message}")
        logger.debug(f"Full APIError details: {e}")
        return False

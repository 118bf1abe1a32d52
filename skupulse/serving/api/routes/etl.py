"""
Sync Trigger Endpoint

Runs one sync pass on request. Callers authenticate with a shared secret in
the `x-etl-secret` header or the `secret` query parameter. Responses are
plain text.
"""

import hmac
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse

from skupulse.config.settings import Settings
from skupulse.exceptions import SkuPulseError
from skupulse.serving.api.dependencies import get_app_settings, get_database, get_skus_cache
from skupulse.serving.cache import CacheManager
from skupulse.sync import run_sync

router = APIRouter()
logger = structlog.get_logger(__name__)


def secret_matches(supplied: Optional[str], expected: str) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


@router.api_route("/run-etl", methods=["GET", "POST"], response_class=PlainTextResponse)
async def run_etl(
    request: Request,
    x_etl_secret: Optional[str] = Header(default=None),
    secret: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_app_settings),
    cache: CacheManager = Depends(get_skus_cache),
) -> PlainTextResponse:
    """Trigger a full sync and report counts"""
    expected = settings.sync.trigger_secret
    if expected is None:
        # Unset or placeholder secret: nothing can authenticate
        logger.error("Sync trigger misconfigured", missing=["ETL_SECRET"])
        return PlainTextResponse("ETL_SECRET not set", status_code=500)

    supplied = x_etl_secret or secret
    if not secret_matches(supplied, expected):
        logger.warning("Sync trigger rejected", reason="bad_secret")
        return PlainTextResponse("unauthorized", status_code=401)

    missing = settings.missing_sync_config(include_trigger=True)
    db = get_database(request)
    if missing or db is None:
        message = f"{', '.join(missing) or 'DATABASE_URL'} not set"
        logger.error("Sync trigger misconfigured", missing=missing)
        return PlainTextResponse(message, status_code=500)

    client = request.app.state.client_factory(settings)
    notifier = request.app.state.notifier
    try:
        summary = await run_sync(db, client, notifier, settings)
    except SkuPulseError as e:
        return PlainTextResponse(f"ETL failed: {e}", status_code=500)
    except Exception as e:
        logger.exception("Sync crashed")
        return PlainTextResponse(f"ETL failed: {e}", status_code=500)
    finally:
        await client.aclose()

    await cache.invalidate_all()
    return PlainTextResponse(summary.as_text(), status_code=200)

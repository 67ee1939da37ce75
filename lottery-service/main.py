"""
Broadway Lottery Service
Scrapes current lottery listings and enters them for users, on a schedule or on demand.

Platforms:
1. BroadwayDirect - lottery.broadwaydirect.com
2. LuckySeat (SocialToaster) - luckyseat.com
"""
import hmac
import logging
import os
from datetime import date, datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import Settings
from errors import AllPlatformsFailed, BrowserLaunchError, NoCatalogAvailable, UserNotFound
from lottery_service import LotteryService, create_service
from models import Platform

settings = Settings.from_env()

# Configure logging
logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Broadway Lottery Service",
    version="1.0.0",
    docs_url="/docs" if os.getenv("ENABLE_DOCS", "false").lower() == "true" else None,
)

# CORS - restrict to known origins in production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)

service: LotteryService = create_service(settings)

# Simple rate limiting (in production, use Redis-backed rate limiter)
request_counts: dict[str, list[float]] = {}
RATE_WINDOW = 60  # seconds


class CreateUserRequest(BaseModel):
    email: str
    preferences: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    ticket_quantity: int = 2


class PreferencesRequest(BaseModel):
    preferences: str


class OverrideRequest(BaseModel):
    user_id: str
    show_name: str
    platform: Platform
    should_apply: Optional[bool] = None  # None deletes the override


def check_rate_limit(request: Request):
    """Simple in-memory rate limiting."""
    client_ip = request.client.host if request.client else "unknown"
    now = datetime.now().timestamp()

    if client_ip not in request_counts:
        request_counts[client_ip] = []

    # Clean old entries
    request_counts[client_ip] = [t for t in request_counts[client_ip] if now - t < RATE_WINDOW]

    if len(request_counts[client_ip]) >= settings.rate_limit:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")

    request_counts[client_ip].append(now)


def verify_api_key(request: Request):
    """Optional API key verification."""
    if not settings.api_key:
        return  # No API key configured, allow all requests

    api_key = request.headers.get("X-API-Key") or ""
    if not hmac.compare_digest(api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def verify_cron(request: Request):
    """Cron triggers must present Authorization: Bearer $CRON_SECRET."""
    if not settings.cron_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")

    auth = request.headers.get("Authorization") or ""
    if not hmac.compare_digest(auth, f"Bearer {settings.cron_secret}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


async def _apply_all() -> dict:
    try:
        results = await service.apply_for_all_users()
    except BrowserLaunchError:
        logger.error("Lottery run aborted: browser could not start")
        raise HTTPException(status_code=503, detail="Browser unavailable")
    except NoCatalogAvailable:
        raise HTTPException(status_code=503, detail="No show catalog available")

    summaries = [service.summarize(r, user_id) for user_id, r in results.items()]
    successful = sum(s.successful for s in summaries)
    failed = sum(s.failed for s in summaries)
    logger.info(f"Lottery run finished: {len(results)} users, {successful} successful, {failed} failed")

    return {
        "total_users": len(results),
        "total_applications": successful + failed,
        "successful": successful,
        "failed": failed,
        "users": [s.model_dump(mode="json") for s in summaries],
    }


async def _refresh() -> dict:
    try:
        snapshot = await service.refresh_shows()
    except (NoCatalogAvailable, AllPlatformsFailed):
        raise HTTPException(status_code=503, detail="Failed to fetch shows")
    return {
        "total": len(snapshot.shows),
        "stale": snapshot.stale,
        "failed_platforms": [p.value for p in snapshot.failed_platforms],
        "timestamp": snapshot.timestamp,
    }


@app.get("/")
async def root():
    return {"service": "Broadway Lottery Service", "status": "running"}


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run."""
    return {
        "status": "healthy",
        "platforms": [p.value for p in Platform],
        "preference_parsing_enabled": bool(settings.google_api_key),
        "auto_submit": settings.auto_submit,
    }


@app.get("/shows")
async def get_shows(
    request: Request,
    refresh: bool = Query(default=False, description="Force a fresh scrape"),
):
    """Current lottery catalog. Served stale (and flagged) when a refresh fails."""
    check_rate_limit(request)
    if refresh:
        verify_api_key(request)

    try:
        snapshot = await service.get_shows(force_refresh=refresh)
    except NoCatalogAvailable:
        raise HTTPException(status_code=503, detail="No show catalog available")

    return {
        "shows": [s.model_dump(mode="json") for s in snapshot.shows],
        "total": len(snapshot.shows),
        "stale": snapshot.stale,
        "degraded": snapshot.degraded,
        "timestamp": snapshot.timestamp,
    }


@app.post("/refresh-shows")
async def refresh_shows(request: Request):
    check_rate_limit(request)
    verify_api_key(request)
    return await _refresh()


@app.post("/apply-lotteries")
async def apply_lotteries(request: Request):
    """Manual trigger: apply for every user."""
    check_rate_limit(request)
    verify_api_key(request)
    return await _apply_all()


@app.post("/apply-lotteries/{user_id}")
async def apply_lotteries_for_user(request: Request, user_id: str):
    check_rate_limit(request)
    verify_api_key(request)

    try:
        results = await service.apply_for_user(user_id)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except BrowserLaunchError:
        raise HTTPException(status_code=503, detail="Browser unavailable")
    except NoCatalogAvailable:
        raise HTTPException(status_code=503, detail="No show catalog available")

    return service.summarize(results, user_id).model_dump(mode="json")


@app.get("/cron/apply-lotteries")
async def cron_apply_lotteries(request: Request):
    verify_cron(request)
    return await _apply_all()


@app.get("/cron/refresh-shows")
async def cron_refresh_shows(request: Request):
    verify_cron(request)
    return await _refresh()


@app.post("/users")
async def create_user(request: Request, body: CreateUserRequest):
    check_rate_limit(request)
    verify_api_key(request)
    user = await service.create_user(**body.model_dump())
    return user.model_dump(mode="json")


@app.put("/users/{user_id}/preferences")
async def update_preferences(request: Request, user_id: str, body: PreferencesRequest):
    check_rate_limit(request)
    verify_api_key(request)
    try:
        user = await service.update_user_preferences(user_id, body.preferences)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    return user.model_dump(mode="json")


@app.get("/users/{user_id}/shows")
async def user_shows(request: Request, user_id: str):
    """Every active show with this user's preference match, override and final decision."""
    check_rate_limit(request)
    verify_api_key(request)

    user = await service.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        decisions = await service.resolve_shows_for_user(user)
    except NoCatalogAvailable:
        raise HTTPException(status_code=503, detail="No show catalog available")
    return {"shows": [d.model_dump(mode="json") for d in decisions]}


@app.get("/users/{user_id}/history")
async def user_history(
    request: Request,
    user_id: str,
    limit: int = Query(default=20, ge=1, le=100),
):
    check_rate_limit(request)
    verify_api_key(request)
    results = await service.history(user_id, limit)
    return {"results": [r.model_dump(mode="json") for r in results]}


@app.put("/overrides")
async def put_override(request: Request, body: OverrideRequest):
    """Set a manual yes/no for one show; should_apply=null removes it."""
    check_rate_limit(request)
    verify_api_key(request)

    if body.should_apply is None:
        await service.delete_override(body.user_id, body.platform, body.show_name)
        return {"success": True, "deleted": True}

    try:
        override = await service.set_override(body.user_id, body.platform, body.show_name, body.should_apply)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "override": override.model_dump(mode="json")}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8080)))

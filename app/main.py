# app/main.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from .deps import LOG_LEVEL
from .errors import CatalogUnavailableError, install_error_handlers
from .schemas import (
    PROVINCES,
    AISearchRequest,
    AISearchResponse,
    ApiKeyUpdate,
    BrowseOptions,
    CompareRequest,
    CompareResponse,
    ContactRequest,
    PlansResponse,
    ProvincesResponse,
)
from .services.ai_search import AISearchClient
from .services.browse import browse_plans
from .services.catalog import CatalogStore, get_catalog
from .services.comparison import compare_plans, get_all_plans
from .services.developer import (
    ApiKeyProvider,
    TokenUsageLedger,
    get_api_key_provider,
    get_usage_ledger,
    mask_key,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

SERVICE_NAME = "HealthSync Insurance Comparison Engine"
VERSION = "1.0.0"
CATALOG_NOTICE = "Plan database is currently unavailable. Use AI Search to discover insurance plans."
STORY_MIN, STORY_MAX = 10, 2000

app = FastAPI(title=SERVICE_NAME, version=VERSION)
install_error_handlers(app)

# -----------------------------
# Singleton AI client
# -----------------------------
_ai_client: Optional[AISearchClient] = None


def get_ai_client(
    keys: ApiKeyProvider = Depends(get_api_key_provider),
    usage: TokenUsageLedger = Depends(get_usage_ledger),
) -> AISearchClient:
    global _ai_client
    if _ai_client is None:
        _ai_client = AISearchClient(keys, usage)
    return _ai_client


def _unavailable_catalog() -> JSONResponse:
    return JSONResponse(status_code=200, content={"count": 0, "plans": [], "notice": CATALOG_NOTICE})


# -----------------------------
# Routes
# -----------------------------
@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/provinces", response_model=ProvincesResponse)
def provinces():
    return {"provinces": [{"code": code, "name": name} for code, name in PROVINCES.items()]}


@app.get("/plans", response_model=PlansResponse)
def list_plans(store: CatalogStore = Depends(get_catalog)):
    try:
        plans = get_all_plans(store)
    except CatalogUnavailableError as e:
        # browsing must stay usable (AI search fallback), so no 5xx here
        log.warning("[Plans] Database unavailable, returning empty plans: %s", e.details or e.message)
        return _unavailable_catalog()
    return {"count": len(plans), "plans": plans}


@app.post("/plans/browse", response_model=PlansResponse)
def browse(options: BrowseOptions, store: CatalogStore = Depends(get_catalog)):
    try:
        plans = get_all_plans(store)
    except CatalogUnavailableError as e:
        log.warning("[Plans] Database unavailable, returning empty plans: %s", e.details or e.message)
        return _unavailable_catalog()
    plans = browse_plans(plans, options)
    return {"count": len(plans), "plans": plans}


@app.post("/compare", response_model=CompareResponse)
def compare(request: CompareRequest, store: CatalogStore = Depends(get_catalog)):
    results = compare_plans(request, store)
    return {
        "count": len(results),
        "filters_applied": {
            "age": request.age,
            "province": request.province,
            "smoking_status": request.smoking_status,
            "coverage_type": request.coverage_type or "all",
            "plan_type": request.plan_type or "all",
            "budget_range": {"min": request.budget_min, "max": request.budget_max},
            "requested_addons": request.addons,
        },
        "results": results,
    }


@app.post("/ai-search", response_model=AISearchResponse)
def ai_search(body: AISearchRequest, client: AISearchClient = Depends(get_ai_client)):
    story = (body.story or "").strip()
    if len(story) < STORY_MIN:
        return JSONResponse(
            status_code=400,
            content={"error": "Please provide a health story with at least 10 characters.", "code": "INVALID_STORY"},
        )
    if len(body.story) > STORY_MAX:
        return JSONResponse(
            status_code=400,
            content={"error": "Story is too long. Please keep it under 2000 characters.", "code": "STORY_TOO_LONG"},
        )

    log.info('[AI Search] Processing story: "%s..."', story[:100])
    result = client.search(story)
    log.info("[AI Search] Found %d recommendations", len(result["results"]))
    return {"success": True, **result}


@app.post("/contact")
def contact(body: ContactRequest):
    log.info("[Contact Form] From: %s <%s> | Subject: %s", body.name, body.email, body.subject)
    return {"success": True, "message": "Thank you for your message. We will get back to you shortly."}


# -----------------------------
# Developer console (unlisted)
# -----------------------------
@app.get("/developer/api-key")
def get_api_key(keys: ApiKeyProvider = Depends(get_api_key_provider)):
    return keys.status()


@app.post("/developer/api-key")
def update_api_key(body: ApiKeyUpdate, keys: ApiKeyProvider = Depends(get_api_key_provider)):
    try:
        key = keys.swap(body.apiKey)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    masked = mask_key(key)
    log.info("[Developer] Gemini API key updated (masked: %s)", masked)
    return {
        "success": True,
        "maskedKey": masked,
        "message": "Gemini API key updated successfully. The new key is active immediately.",
    }


@app.get("/developer/api-key/test")
def test_api_key(client: AISearchClient = Depends(get_ai_client)):
    return client.probe()


@app.get("/developer/token-usage")
def token_usage(usage: TokenUsageLedger = Depends(get_usage_ledger)):
    return usage.snapshot()


@app.post("/developer/token-usage/reset")
def reset_token_usage(usage: TokenUsageLedger = Depends(get_usage_ledger)):
    usage.reset()
    return {"success": True, "message": "Token usage counters have been reset."}

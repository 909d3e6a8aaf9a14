# app/services/ai_search.py
from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

import requests

from ..deps import AI_SEARCH_MODELS, AI_SEARCH_RETRY_DELAY, AI_SEARCH_TIMEOUT
from ..errors import AIConfigError, AIParseError, AIRateLimitError, AISearchError
from .developer import ApiKeyProvider, TokenUsageLedger

log = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
PROBE_MODEL = "gemini-2.0-flash"

SYSTEM_PROMPT = (
    "You are a health insurance comparison expert. Read the user's description of their "
    "health situation and recommend 4 to 8 REAL insurance providers and policies that fit it. "
    "Only use real companies and their main health-insurance pages as URLs; never invent links. "
    "Respond with ONLY a JSON object of the form "
    '{"analysis_summary": str, "identified_needs": [str], "results": [{"company_name": str, '
    '"policy_name": str, "logo_url": str, "explanation": str, "url": str, '
    '"coverage_highlights": [str], "estimated_monthly_cost": str, "rating": 1-5, "best_for": str}]}'
)

# Known-good landing pages; AI-supplied URLs are only used when nothing matches here
KNOWN_PROVIDER_URLS = {
    "blue cross": "https://www.bluecross.ca/en/health-insurance",
    "sun life": "https://www.sunlife.ca/en/insurance/health-insurance/",
    "manulife": "https://www.manulife.ca/personal/insurance/health-insurance.html",
    "canada life": "https://www.canadalife.com/insurance/health-and-dental-insurance.html",
    "desjardins": "https://www.desjardins.com/ca/personal/insurance/health-insurance/index.jsp",
    "greenshield": "https://www.greenshield.ca/en-ca/individual-plans",
    "green shield": "https://www.greenshield.ca/en-ca/individual-plans",
    "ia financial": "https://ia.ca/individuals/insurance/health-insurance",
    "equitable life": "https://www.equitable.ca/en/individuals/health-and-dental",
    "ssq": "https://ssq.ca/en/individuals/insurance/health-insurance",
    "gms": "https://www.gms.ca/health-insurance",
    "medavie": "https://www.medavie.bluecross.ca/en/health-insurance",
}

KNOWN_LOGO_DOMAINS = {
    "blue cross": "bluecross.ca",
    "sun life": "sunlife.ca",
    "manulife": "manulife.ca",
    "canada life": "canadalife.com",
    "desjardins": "desjardins.com",
    "greenshield": "greenshield.ca",
    "green shield": "greenshield.ca",
    "ia financial": "ia.ca",
    "equitable life": "equitable.ca",
    "ssq": "ssq.ca",
    "gms": "gms.ca",
    "medavie": "medavie.bluecross.ca",
}

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _lookup(table: Dict[str, str], company: str) -> Optional[str]:
    key = company.lower().strip()
    if not key:
        return None
    for k, v in table.items():
        if k in key or key in k:
            return v
    return None


def _usable_url(url: Any) -> bool:
    return (
        isinstance(url, str)
        and url.startswith("http")
        and "[object" not in url
        and "undefined" not in url
    )


def reliable_url(company: str, ai_url: Any = None) -> str:
    known = _lookup(KNOWN_PROVIDER_URLS, company)
    if known:
        return known
    if _usable_url(ai_url):
        return ai_url
    return "https://www.google.com/search?q=" + quote_plus(f"{company} health insurance plans")


def reliable_logo_url(company: str, ai_logo: Any = None) -> str:
    domain = _lookup(KNOWN_LOGO_DOMAINS, company)
    if domain:
        return f"https://logo.clearbit.com/{domain}"
    if _usable_url(ai_logo):
        return ai_logo
    slug = re.sub(r"\s+", "", company.lower())
    stripped = re.sub(r"insurance|health|care|group|inc|corp|ltd", "", slug)
    return f"https://logo.clearbit.com/{stripped if len(stripped) > 2 else slug}.com"


def extract_json(text: str) -> Dict[str, Any]:
    """Pull the JSON object out of a model reply that may be wrapped in prose or a code fence."""
    body = text or ""
    m = _FENCE.search(body)
    if m:
        body = m.group(1).strip()
    start, end = body.find("{"), body.rfind("}")
    if start != -1 and end != -1:
        body = body[start:end + 1]
    try:
        parsed = json.loads(body)
    except ValueError as e:
        log.error("Failed to parse AI response: %s", (text or "")[:500])
        raise AIParseError("AI returned an unexpected response. Please try again.", details=str(e)) from e
    if not isinstance(parsed, dict):
        raise AIParseError("AI returned an unexpected response. Please try again.")
    return parsed


def _clamp_rating(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 4.0
    return float(min(5, max(1, value)))


def _str_list(value: Any) -> List[str]:
    return [str(v) for v in value if v is not None] if isinstance(value, list) else []


def _str(value: Any, default: str) -> str:
    if value is None or isinstance(value, (dict, list)) or value == "":
        return default
    return str(value)


def sanitize_response(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults, repair URLs/logos and order recommendations best match first."""
    raw = parsed.get("results")
    if not isinstance(raw, list):
        raise AIParseError("AI response missing results array")

    results = []
    for r in raw:
        if not isinstance(r, dict):
            continue
        company = _str(r.get("company_name"), "")
        results.append(
            {
                "company_name": company or "Unknown Provider",
                "policy_name": _str(r.get("policy_name"), "Health Insurance Plan"),
                "logo_url": reliable_logo_url(company, r.get("logo_url")),
                "explanation": _str(r.get("explanation"), "This plan may match your needs."),
                "url": reliable_url(company, r.get("url")),
                "coverage_highlights": _str_list(r.get("coverage_highlights")),
                "estimated_monthly_cost": _str(r.get("estimated_monthly_cost"), "Contact for pricing"),
                "rating": _clamp_rating(r.get("rating")),
                "best_for": _str(r.get("best_for"), "General health coverage"),
            }
        )
    results.sort(key=lambda x: x["rating"], reverse=True)

    return {
        "analysis_summary": _str(
            parsed.get("analysis_summary"),
            "We analyzed your health needs and found matching insurance plans.",
        ),
        "identified_needs": _str_list(parsed.get("identified_needs")),
        "results": results,
    }


class AISearchClient:
    """Thin proxy to the Gemini generateContent REST endpoint."""

    def __init__(
        self,
        keys: ApiKeyProvider,
        usage: TokenUsageLedger,
        *,
        models: Optional[List[str]] = None,
        timeout: float = AI_SEARCH_TIMEOUT,
        retry_delay: float = AI_SEARCH_RETRY_DELAY,
        session: Optional[requests.Session] = None,
    ):
        self.keys = keys
        self.usage = usage
        self.models = models or list(AI_SEARCH_MODELS)
        self.timeout = timeout
        self.retry_delay = retry_delay
        # a Session is not shared across worker threads; without one requests.post opens one per call
        self.session = session

    def _require_key(self) -> str:
        key = self.keys.get()
        if not key:
            raise AIConfigError("AI service is not properly configured.", details="Gemini API key is not configured")
        return key

    def _generate(self, model: str, prompt: str, *, grounded: bool, endpoint: str) -> str:
        key = self._require_key()
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if grounded:
            body["tools"] = [{"google_search": {}}]

        try:
            http = self.session or requests
            resp = http.post(
                GEMINI_URL.format(model=model),
                params={"key": key},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AISearchError("AI search failed. Please try again later.", details=str(e)) from e

        if resp.status_code == 429:
            raise AIRateLimitError("AI model is rate limited.", details=f"{model}: 429 Too Many Requests")
        if resp.status_code in (401, 403):
            raise AIConfigError("AI service is not properly configured.", details=resp.text[:200])
        if resp.status_code >= 400:
            raise AISearchError("AI search failed. Please try again later.", details=resp.text[:200])

        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIParseError("AI returned an unexpected response. Please try again.", details=str(e)) from e

        meta = data.get("usageMetadata") or {}
        if meta:
            self.usage.track(
                model,
                meta.get("promptTokenCount", 0),
                meta.get("candidatesTokenCount", 0),
                meta.get("totalTokenCount", 0),
                endpoint,
            )
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    def search(self, story: str) -> Dict[str, Any]:
        """Try each configured model in turn; only rate limits fall through to the next one."""
        self._require_key()
        prompt = (
            f"{SYSTEM_PROMPT}\n\nUser's health insurance story:\n\n\"{story}\"\n\n"
            "Return your response as a JSON object only."
        )
        last: Optional[Exception] = None
        for i, model in enumerate(self.models):
            log.info("[AI Search] Trying model: %s", model)
            try:
                text = self._generate(model, prompt, grounded=True, endpoint="/ai-search")
                return sanitize_response(extract_json(text))
            except AIRateLimitError as e:
                last = e
                log.warning("[AI Search] Model %s rate limited", model)
                if i < len(self.models) - 1 and self.retry_delay > 0:
                    time.sleep(self.retry_delay)
        raise AISearchError(
            "All AI models failed due to rate limits. Please try again in a moment.",
            details=getattr(last, "details", None),
        )

    def probe(self) -> Dict[str, Any]:
        """Live key check for the developer console; reports failures instead of raising."""
        tested_at = datetime.now(timezone.utc).isoformat()
        if not self.keys.get():
            return {"live": False, "error": "No Gemini API key is configured.", "models": []}
        try:
            text = self._generate(
                PROBE_MODEL,
                "Say 'API key is working' in exactly those words.",
                grounded=False,
                endpoint="/developer/api-key/test",
            )
        except AIConfigError as e:
            return {
                "live": False, "error": "The API key is invalid or has been revoked.",
                "errorCode": "INVALID_KEY", "details": (e.details or "")[:200], "testedAt": tested_at,
            }
        except AIRateLimitError as e:
            return {
                "live": False, "error": "API key is valid but rate limited. Try again in a moment.",
                "errorCode": "RATE_LIMITED", "details": (e.details or "")[:200], "testedAt": tested_at,
            }
        except (AISearchError, AIParseError) as e:
            log.error("[Developer] API key test failed: %s", e.details or e.message)
            return {
                "live": False, "error": "API key test failed.",
                "errorCode": "UNKNOWN_ERROR", "details": (e.details or "")[:200], "testedAt": tested_at,
            }
        return {
            "live": True,
            "message": "Gemini API key is live and working!",
            "testResponse": text[:100],
            "testedModel": PROBE_MODEL,
            "testedAt": tested_at,
        }

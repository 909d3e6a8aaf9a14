# app/services/developer.py
from __future__ import annotations

import os
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

MAX_USAGE_RECORDS = 500
MIN_KEY_LENGTH = 10


def mask_key(key: str) -> str:
    """Keep the first 8 and last 4 characters visible."""
    if len(key) > 12:
        return key[:8] + "•" * (len(key) - 12) + key[-4:]
    return "•" * len(key)


class ApiKeyProvider:
    """
    Holds the AI service key for the process.

    Seeded once from the environment; swaps are lock-guarded and never
    write back to os.environ.
    """

    def __init__(self, initial: Optional[str] = None, env_var: str = "GEMINI_API_KEY"):
        self._lock = threading.Lock()
        self._key = (initial if initial is not None else os.getenv(env_var, "")).strip()

    def get(self) -> str:
        with self._lock:
            return self._key

    def swap(self, new_key: str) -> str:
        key = (new_key or "").strip()
        if len(key) < MIN_KEY_LENGTH:
            raise ValueError(f"Please provide a valid API key (at least {MIN_KEY_LENGTH} characters).")
        with self._lock:
            self._key = key
        return key

    def status(self) -> Dict[str, Any]:
        key = self.get()
        if not key:
            return {"configured": False, "maskedKey": "", "message": "No Gemini API key is configured."}
        return {
            "configured": True,
            "maskedKey": mask_key(key),
            "keyLength": len(key),
            "message": "Gemini API key is configured.",
        }


@dataclass
class TokenUsageRecord:
    model: str
    promptTokens: int
    completionTokens: int
    totalTokens: int
    endpoint: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class TokenUsageLedger:
    """Rolling window of AI token usage; only the newest MAX_USAGE_RECORDS are counted."""

    def __init__(self, max_records: int = MAX_USAGE_RECORDS):
        self._lock = threading.Lock()
        self._records: Deque[TokenUsageRecord] = deque(maxlen=max_records)

    def track(self, model: str, prompt: int, completion: int, total: int, endpoint: str) -> TokenUsageRecord:
        rec = TokenUsageRecord(model, int(prompt), int(completion), int(total), endpoint)
        with self._lock:
            self._records.append(rec)
        return rec

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def snapshot(self, recent: int = 20) -> Dict[str, Any]:
        with self._lock:
            records: List[TokenUsageRecord] = list(self._records)

        breakdown: Dict[str, Dict[str, int]] = {}
        for r in records:
            m = breakdown.setdefault(
                r.model, {"requests": 0, "promptTokens": 0, "completionTokens": 0, "totalTokens": 0}
            )
            m["requests"] += 1
            m["promptTokens"] += r.promptTokens
            m["completionTokens"] += r.completionTokens
            m["totalTokens"] += r.totalTokens

        return {
            "summary": {
                "totalRequests": len(records),
                "totalPromptTokens": sum(r.promptTokens for r in records),
                "totalCompletionTokens": sum(r.completionTokens for r in records),
                "totalTokensUsed": sum(r.totalTokens for r in records),
                "trackingSince": records[0].timestamp if records else None,
            },
            "modelBreakdown": breakdown,
            "recentRequests": [asdict(r) for r in reversed(records[-recent:])] if recent > 0 else [],
        }


# Process-scoped instances handed out through FastAPI dependencies
_api_keys: Optional[ApiKeyProvider] = None
_usage: Optional[TokenUsageLedger] = None


def get_api_key_provider() -> ApiKeyProvider:
    global _api_keys
    if _api_keys is None:
        _api_keys = ApiKeyProvider()
    return _api_keys


def get_usage_ledger() -> TokenUsageLedger:
    global _usage
    if _usage is None:
        _usage = TokenUsageLedger()
    return _usage

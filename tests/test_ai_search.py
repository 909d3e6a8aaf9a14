import pytest
from fastapi.testclient import TestClient

from app.errors import AIConfigError, AIParseError, AISearchError
from app.main import app, get_ai_client
from app.services import ai_search
from app.services.ai_search import (
    AISearchClient,
    extract_json,
    reliable_logo_url,
    reliable_url,
    sanitize_response,
)
from app.services.developer import ApiKeyProvider, TokenUsageLedger

REPLY = (
    'Here you go:\n```json\n{"analysis_summary": "Young diabetic", "identified_needs": ["drugs"], '
    '"results": [{"company_name": "Sun Life", "policy_name": "Basic", "rating": 3},'
    '{"company_name": "Manulife", "policy_name": "Flex", "rating": 9}]}\n```'
)


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, params=None, json=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json})
        return self.responses.pop(0)


def gemini_reply(text, usage=True):
    payload = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if usage:
        payload["usageMetadata"] = {"promptTokenCount": 10, "candidatesTokenCount": 5, "totalTokenCount": 15}
    return FakeResponse(200, payload)


def make_client(responses, key="k" * 20, models=("m1", "m2")):
    session = FakeSession(responses)
    usage = TokenUsageLedger()
    client = AISearchClient(
        ApiKeyProvider(initial=key), usage, models=list(models), retry_delay=0, session=session,
    )
    return client, session, usage


# -----------------------------
# Parsing / sanitizing
# -----------------------------
def test_extract_json_from_fenced_reply():
    assert extract_json(REPLY)["analysis_summary"] == "Young diabetic"


def test_extract_json_from_prose():
    assert extract_json('Sure! {"results": []} Hope that helps') == {"results": []}


@pytest.mark.parametrize("text", ["no json here", "", "[1, 2]"])
def test_extract_json_rejects_garbage(text):
    with pytest.raises(AIParseError):
        extract_json(text)


def test_sanitize_fills_defaults_and_orders_by_rating():
    out = sanitize_response(extract_json(REPLY))
    assert [r["company_name"] for r in out["results"]] == ["Manulife", "Sun Life"]
    assert out["results"][0]["rating"] == 5.0
    assert out["results"][1]["rating"] == 3.0
    r = out["results"][1]
    assert r["url"] == "https://www.sunlife.ca/en/insurance/health-insurance/"
    assert r["logo_url"] == "https://logo.clearbit.com/sunlife.ca"
    assert r["estimated_monthly_cost"] == "Contact for pricing"
    assert r["coverage_highlights"] == []


def test_sanitize_defaults_for_sparse_entries():
    out = sanitize_response({"results": [{"rating": "great"}, "junk"]})
    assert len(out["results"]) == 1
    r = out["results"][0]
    assert r["company_name"] == "Unknown Provider"
    assert r["rating"] == 4.0
    assert out["identified_needs"] == []
    assert out["analysis_summary"]


def test_sanitize_requires_results_list():
    with pytest.raises(AIParseError):
        sanitize_response({"results": "none"})


def test_unknown_company_urls():
    assert reliable_url("Acme Mutual", "https://acme.example/plans") == "https://acme.example/plans"
    assert reliable_url("Acme Mutual", "undefined").startswith("https://www.google.com/search?q=")
    assert reliable_logo_url("Acme Mutual") == "https://logo.clearbit.com/acmemutual.com"


# -----------------------------
# Client
# -----------------------------
def test_search_tracks_usage_and_sends_key():
    client, session, usage = make_client([gemini_reply(REPLY)])
    out = client.search("I am 25 and have type 1 diabetes")
    assert len(out["results"]) == 2
    assert session.calls[0]["params"] == {"key": "k" * 20}
    assert session.calls[0]["json"]["tools"] == [{"google_search": {}}]
    summary = usage.snapshot()["summary"]
    assert summary["totalRequests"] == 1
    assert summary["totalTokensUsed"] == 15


def test_rate_limit_falls_through_to_next_model():
    client, session, _ = make_client([FakeResponse(429, text="quota"), gemini_reply(REPLY)])
    client.search("I am 25 and have type 1 diabetes")
    assert "m1:generateContent" in session.calls[0]["url"]
    assert "m2:generateContent" in session.calls[1]["url"]


def test_all_models_rate_limited():
    client, _, _ = make_client([FakeResponse(429), FakeResponse(429)])
    with pytest.raises(AISearchError) as exc:
        client.search("I am 25 and have type 1 diabetes")
    assert "rate limits" in exc.value.message


def test_other_failures_do_not_fall_through():
    client, session, _ = make_client([FakeResponse(500, text="boom"), gemini_reply(REPLY)])
    with pytest.raises(AISearchError):
        client.search("I am 25 and have type 1 diabetes")
    assert len(session.calls) == 1


def test_missing_key_is_config_error():
    client, session, _ = make_client([], key="")
    with pytest.raises(AIConfigError):
        client.search("I am 25 and have type 1 diabetes")
    assert session.calls == []


def test_unparseable_reply():
    client, _, _ = make_client([gemini_reply("sorry, I can't help")])
    with pytest.raises(AIParseError):
        client.search("I am 25 and have type 1 diabetes")


def test_probe_reports_invalid_key():
    client, _, _ = make_client([FakeResponse(403, text="API key not valid")])
    out = client.probe()
    assert out["live"] is False
    assert out["errorCode"] == "INVALID_KEY"


def test_probe_live():
    client, session, usage = make_client([gemini_reply("API key is working", usage=False)])
    out = client.probe()
    assert out["live"] is True
    assert out["testResponse"] == "API key is working"
    assert "tools" not in session.calls[0]["json"]
    assert usage.snapshot()["summary"]["totalRequests"] == 0


# -----------------------------
# Endpoint
# -----------------------------
@pytest.fixture
def ai_client(client):
    fake, session, usage = make_client([gemini_reply(REPLY)])
    app.dependency_overrides[get_ai_client] = lambda: fake
    yield client
    app.dependency_overrides.pop(get_ai_client, None)


def test_ai_search_endpoint(ai_client):
    r = ai_client.post("/ai-search", json={"story": "I am 25 and have type 1 diabetes"})
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["identified_needs"] == ["drugs"]
    assert len(data["results"]) == 2


@pytest.mark.parametrize(
    "story,code",
    [(None, "INVALID_STORY"), ("   short  ", "INVALID_STORY"), ("x" * 2001, "STORY_TOO_LONG")],
)
def test_ai_search_story_validation(ai_client, story, code):
    r = ai_client.post("/ai-search", json={"story": story})
    assert r.status_code == 400
    assert r.json()["code"] == code


def test_ai_search_surfaces_config_error(client):
    fake, _, _ = make_client([], key="")
    app.dependency_overrides[get_ai_client] = lambda: fake
    try:
        r = client.post("/ai-search", json={"story": "I need dental coverage for my family"})
    finally:
        app.dependency_overrides.pop(get_ai_client, None)
    assert r.status_code == 503
    assert r.json()["code"] == "AI_CONFIG_ERROR"


def test_sanitize_coerces_non_string_fields():
    out = sanitize_response({
        "analysis_summary": ["needs", "drugs"],
        "identified_needs": ["dental", 3, None],
        "results": [{
            "company_name": 42,
            "policy_name": 7,
            "explanation": {"why": "cheap"},
            "estimated_monthly_cost": 150,
            "coverage_highlights": ["drugs", 80],
            "best_for": 1.5,
            "rating": 4,
        }],
    })
    assert out["analysis_summary"] == "We analyzed your health needs and found matching insurance plans."
    assert out["identified_needs"] == ["dental", "3"]
    r = out["results"][0]
    assert r["company_name"] == "42"
    assert r["policy_name"] == "7"
    assert r["explanation"] == "This plan may match your needs."
    assert r["estimated_monthly_cost"] == "150"
    assert r["coverage_highlights"] == ["drugs", "80"]
    assert r["best_for"] == "1.5"


def test_ai_search_endpoint_with_numeric_fields(client):
    reply = '{"results": [{"company_name": "Sun Life", "policy_name": "Basic", "estimated_monthly_cost": 150, "rating": 4}]}'
    fake, _, _ = make_client([gemini_reply(reply)])
    app.dependency_overrides[get_ai_client] = lambda: fake
    try:
        r = client.post("/ai-search", json={"story": "I am 25 and have type 1 diabetes"})
    finally:
        app.dependency_overrides.pop(get_ai_client, None)
    assert r.status_code == 200
    assert r.json()["results"][0]["estimated_monthly_cost"] == "150"


class ExplodingClient:
    def search(self, story):
        raise RuntimeError("boom")


def test_unexpected_errors_return_json():
    app.dependency_overrides[get_ai_client] = lambda: ExplodingClient()
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = c.post("/ai-search", json={"story": "I need dental coverage for my family"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}


def test_without_injected_session_each_call_goes_through_requests_post(monkeypatch):
    calls = []

    def fake_post(url, params=None, json=None, timeout=None):
        calls.append(url)
        return gemini_reply(REPLY)

    monkeypatch.setattr(ai_search.requests, "post", fake_post)
    client = AISearchClient(ApiKeyProvider(initial="k" * 20), TokenUsageLedger(), models=["m1"], retry_delay=0)
    assert client.session is None
    client.search("I am 25 and have type 1 diabetes")
    client.search("I am 25 and have type 1 diabetes")
    assert len(calls) == 2

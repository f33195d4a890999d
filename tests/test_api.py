"""HTTP surface -- rounds, usage, health, auth, rate limiting."""

import pytest
from fastapi.testclient import TestClient

from mars_next.api.gateway import create_app
from mars_next.config import Settings
from mars_next.usage import UsageLedger

from .conftest import SYNTH_MODEL, FakeProvider, FailingSink, StatusError


def _settings(tmp_path, **overrides):
    return Settings(
        synthesis_model=SYNTH_MODEL,
        usage_db_path=tmp_path / "usage.db",
        inference_mode="simulated",
        **overrides,
    )


@pytest.fixture
def fake():
    return FakeProvider()


@pytest.fixture
def ledger(tmp_path):
    return UsageLedger(tmp_path / "usage.db")


@pytest.fixture
def client(tmp_path, fake, ledger):
    app = create_app(settings=_settings(tmp_path), provider=fake, ledger=ledger)
    return TestClient(app)


def _body(agents=2, **context):
    return {
        "prompt": "What should we ship first?",
        "agents": [
            {"id": f"a{i}", "name": f"Agent {i}", "model": f"model-{i}", "systemPrompt": "Be brief."}
            for i in range(agents)
        ],
        "context": {"userId": "user-1", "projectId": "project-1", **context},
    }


class TestRounds:
    def test_completed_round(self, client, ledger):
        response = client.post("/api/v1/rounds", json=_body())

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert [r["agent_id"] for r in data["responses"]] == ["a0", "a1"]
        assert data["synthesis"]["content"] == f"{SYNTH_MODEL} answer"
        assert data["synthesis"]["agent_count"] == 2
        assert ledger.count(user_id="user-1") == 3

    def test_snake_case_fields_are_accepted_too(self, client):
        body = _body()
        body["context"] = {"user_id": "user-1"}
        body["agents"][0] = {"id": "a0", "name": "A", "model": "model-0", "max_tokens": 50}

        assert client.post("/api/v1/rounds", json=body).status_code == 200

    def test_no_agents(self, client, fake, ledger):
        response = client.post("/api/v1/rounds", json=_body(agents=0))

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "no_agents"
        assert data["message"].startswith("No agents available")
        assert data["responses"] == []
        assert data["synthesis"] is None
        assert fake.calls == []
        assert ledger.count() == 0

    def test_synthesis_failure_is_502_with_generic_message(self, client, fake, ledger):
        fake.failures = {SYNTH_MODEL: StatusError("secret internal detail", 500)}

        response = client.post("/api/v1/rounds", json=_body())

        assert response.status_code == 502
        assert "secret" not in response.text
        assert "responses" not in response.json()
        assert ledger.count(action="agent_response") == 2

    def test_all_agents_failed_is_502(self, client, fake):
        fake.failures = {"model-0": StatusError("x", 500), "model-1": StatusError("y", 500)}

        response = client.post("/api/v1/rounds", json=_body())

        assert response.status_code == 502
        assert "All agents" in response.json()["detail"]

    def test_partial_failure_still_completes(self, client, fake):
        fake.failures = {"model-1": StatusError("slow down", 429)}

        data = client.post("/api/v1/rounds", json=_body()).json()

        assert data["status"] == "completed"
        assert data["responses"][1]["error_type"] == "rate_limit"

    def test_fallback_is_reported_per_agent(self, tmp_path, fake, ledger):
        app = create_app(settings=_settings(tmp_path, model_fallback=True), provider=fake, ledger=ledger)
        fake.failures = {"model-1": StatusError("Not found", 404)}

        data = TestClient(app).post("/api/v1/rounds", json=_body()).json()

        assert data["status"] == "completed"
        rescued = data["responses"][1]
        assert rescued["model"] == "gpt-3.5-turbo"
        assert rescued["fallback_used"]["original_model"] == "model-1"
        assert data["responses"][0]["fallback_used"] is None
        assert ledger.count(action="agent_response") == 3

    def test_usage_sink_failure_does_not_fail_the_request(self, tmp_path, fake, ledger):
        app = create_app(settings=_settings(tmp_path), provider=fake, ledger=ledger, sink=FailingSink())
        client = TestClient(app)

        response = client.post("/api/v1/rounds", json=_body())

        assert response.status_code == 200
        assert client.get("/metrics").json()["usage_record_failures"] == 3

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda b: b.update(prompt="   "),
            lambda b: b["agents"].append(dict(b["agents"][0])),
        ],
    )
    def test_bad_input_is_400(self, client, mutate):
        body = _body()
        mutate(body)

        assert client.post("/api/v1/rounds", json=body).status_code == 400

    def test_schema_violations_are_422(self, client):
        body = _body()
        body["agents"][0]["temperature"] = 9

        assert client.post("/api/v1/rounds", json=body).status_code == 422
        assert client.post("/api/v1/rounds", json={"prompt": "hi"}).status_code == 422


class TestUsageEndpoints:
    def test_summary_and_records_after_a_round(self, client):
        client.post("/api/v1/rounds", json=_body())

        summary = client.get("/api/v1/usage/summary", params={"user_id": "user-1"}).json()
        records = client.get(
            "/api/v1/usage/records", params={"user_id": "user-1", "page_size": 2}
        ).json()

        assert summary["total_calls"] == 3
        assert summary["total_tokens"] == 45
        assert summary["project_usage"][0]["project_id"] == "project-1"
        assert records["total"] == 3
        assert len(records["records"]) == 2

    def test_start_after_end_is_400(self, client):
        response = client.get(
            "/api/v1/usage/summary",
            params={"user_id": "u", "start": "2026-05-01T00:00:00", "end": "2026-04-01T00:00:00"},
        )
        assert response.status_code == 400

    def test_user_id_is_required(self, client):
        assert client.get("/api/v1/usage/records").status_code == 422


class TestHealthAndMetrics:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["inference_mode"] == "simulated"

    def test_metrics_count_rounds(self, client, fake):
        client.post("/api/v1/rounds", json=_body())
        client.post("/api/v1/rounds", json=_body(agents=0))
        fake.failures = {SYNTH_MODEL: StatusError("boom", 500)}
        client.post("/api/v1/rounds", json=_body())

        data = client.get("/metrics").json()

        assert data["rounds_completed"] == 1
        assert data["rounds_no_agents"] == 1
        assert data["rounds_failed"] == 1
        assert data["total_agent_calls"] == 2


class TestAuth:
    @pytest.fixture
    def secured(self, tmp_path, fake, ledger):
        app = create_app(settings=_settings(tmp_path, api_key="s3cret"), provider=fake, ledger=ledger)
        return TestClient(app)

    def test_missing_key_is_401(self, secured):
        assert secured.post("/api/v1/rounds", json=_body()).status_code == 401

    def test_wrong_key_is_403(self, secured):
        response = secured.post(
            "/api/v1/rounds", json=_body(), headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 403

    def test_right_key_passes(self, secured):
        response = secured.post(
            "/api/v1/rounds", json=_body(), headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200

    def test_health_is_open(self, secured):
        assert secured.get("/health").status_code == 200

    def test_production_requires_a_key(self, tmp_path, fake, ledger):
        with pytest.raises(RuntimeError):
            create_app(settings=_settings(tmp_path, environment="production"), provider=fake, ledger=ledger)

    def test_production_allows_explicit_opt_out(self, tmp_path, fake, ledger):
        app = create_app(
            settings=_settings(tmp_path, environment="production", auth_disabled=True),
            provider=fake,
            ledger=ledger,
        )
        assert TestClient(app).get("/health").status_code == 200


class TestRateLimit:
    def test_limit_returns_429(self, tmp_path, fake, ledger):
        app = create_app(
            settings=_settings(tmp_path, rate_limit_per_minute=2), provider=fake, ledger=ledger
        )
        client = TestClient(app)

        codes = [client.post("/api/v1/rounds", json=_body(agents=0)).status_code for _ in range(3)]

        assert codes == [200, 200, 429]

    def test_sliding_window_frees_old_requests(self):
        from mars_next.api.middleware.rate_limit import SlidingWindowLimiter

        limiter = SlidingWindowLimiter(limit=1, window_seconds=60)

        assert limiter.allow("c", now=0)
        assert not limiter.allow("c", now=30)
        assert limiter.allow("c", now=61)
        assert limiter.allow("other", now=30)

import pytest

import app as relay_app
from config import Config
from insight import InsightGenerator
from utils import LedgerContext
from tests.conftest import FakeCompletions, FakeOpenAI, OPERATOR_KEY, PATIENT, REGISTRY


@pytest.fixture
def ledger_ctx(w3):
    return LedgerContext(w3, REGISTRY, OPERATOR_KEY)


@pytest.fixture
def client(ledger_ctx, completions):
    flask_app = relay_app.create_app(ledger_ctx, InsightGenerator(FakeOpenAI(completions)))
    return flask_app.test_client()


def test_login_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"userWalletAddress" in response.data


def test_balance_in_ether(client, w3):
    w3.eth.balance = 1500000000000000000
    response = client.get("/balance")
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "balance": "1.5 ETH"}


def test_balance_node_failure_reports_raw_message(client, w3):
    w3.eth.balance_error = ConnectionError("HTTPSConnectionPool: Max retries exceeded")
    response = client.get("/balance")
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "HTTPSConnectionPool: Max retries exceeded"}
    # process keeps serving
    w3.eth.balance_error = None
    assert client.get("/balance").status_code == 200


def test_register_success(client, w3):
    response = client.post("/register", json={"name": "Alice", "age": "34", "medicalHistory": "no known allergies"})

    assert response.status_code == 200
    body = response.get_json()
    assert body == {"success": True, "transactionHash": "0x" + "12" * 32}
    assert len(w3.eth.sent_raw) == 1


@pytest.mark.parametrize("body", [
    {"age": 34, "medicalHistory": "x"},
    {"name": "Alice", "medicalHistory": "x"},
    {"name": "Alice", "age": 34},
    {},
])
def test_register_missing_fields(client, w3, body):
    response = client.post("/register", json=body)
    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": "Missing required fields"}
    assert w3.eth.registry.calls == []
    assert w3.eth.sent_raw == []


def test_register_non_json_body_is_validation_error(client, w3):
    response = client.post("/register", data="name=Alice", content_type="text/plain")
    assert response.status_code == 400
    assert w3.eth.sent_raw == []


def test_register_chain_failure(client, w3):
    w3.eth.registry.errors[("estimate_gas", "registerPatient")] = ValueError("execution reverted: already registered")
    response = client.post("/register", json={"name": "Alice", "age": 34, "medicalHistory": "x"})
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "execution reverted: already registered"}


def test_patient_details(client, w3, ledger_ctx):
    w3.eth.registry.results["getPatientDetails"] = ("Alice", 34, "none")

    response = client.get(f"/patient/{PATIENT}")

    assert response.get_json() == {"success": True, "data": ["Alice", 34, "none"]}
    assert w3.eth.registry.calls[0][3] == {"from": ledger_ctx.operator_address}


def test_patient_details_unauthorized_is_generic(client, w3):
    w3.eth.registry.errors["getPatientDetails"] = ValueError("execution reverted: caller is not the doctor")
    response = client.get(f"/patient/{PATIENT}")
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Not authorized to view patient details."}


def test_patient_details_bad_address_is_generic(client):
    response = client.get("/patient/0xUNAUTHORIZED")
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Not authorized to view patient details."}


def test_generate_insight(client, w3, completions):
    w3.eth.registry.results["getPatientDetails"] = ("Alice", 34, "asthma")

    response = client.post("/generate-insight", json={"patientAddress": PATIENT})

    assert response.get_json() == {"success": True, "insight": "Stay hydrated."}
    assert "named Alice, aged 34" in completions.requests[0]["messages"][0]["content"]


def test_generate_insight_requires_address(client, completions):
    response = client.post("/generate-insight", json={})
    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": "Patient address is required"}
    assert completions.requests == []


def test_generate_insight_lookup_failure_skips_api(client, w3, completions):
    w3.eth.registry.errors["getPatientDetails"] = ValueError("execution reverted: no such patient")
    response = client.post("/generate-insight", json={"patientAddress": PATIENT})
    assert response.status_code == 500
    assert response.get_json()["error"] == "execution reverted: no such patient"
    assert completions.requests == []


def test_generate_insight_upstream_failure(client, w3, completions):
    w3.eth.registry.results["getPatientDetails"] = ("Alice", 34, "asthma")
    completions.error = RuntimeError("Incorrect API key provided")
    response = client.post("/generate-insight", json={"patientAddress": PATIENT})
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Incorrect API key provided"}


def test_unhandled_error_is_generic(ledger_ctx):
    class ExplodingGenerator:
        def generate(self, record):
            raise RuntimeError("secret internals")

    ledger_ctx.w3.eth.registry.results["getPatientDetails"] = ("Alice", 34, "asthma")
    client = relay_app.create_app(ledger_ctx, ExplodingGenerator()).test_client()
    response = client.post("/generate-insight", json={"patientAddress": PATIENT})
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Internal server error"}


def test_unknown_route_uses_envelope(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_cors_header(client, w3):
    response = client.get("/balance", headers={"Origin": "http://example.com"})
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_main_exits_when_config_missing(monkeypatch):
    monkeypatch.setattr(Config, "OPENAI_API", None)
    monkeypatch.setattr(Config, "PRIVATE_KEY", "")
    with pytest.raises(SystemExit) as excinfo:
        relay_app.main()
    assert excinfo.value.code == 1
    assert Config.missing_required()[-2:] == ["PRIVATE_KEY", "OPENAI_API"]


def test_main_exits_on_malformed_operator_key(monkeypatch):
    for key in ("INFURA_PROJECT_ID", "OPENAI_API"):
        monkeypatch.setattr(Config, key, "x")
    monkeypatch.setattr(Config, "CONTRACT_ADDRESS", REGISTRY)
    monkeypatch.setattr(Config, "PRIVATE_KEY", "not-a-key")
    monkeypatch.setattr(Config, "BLOCKCHAIN_NODE_URI", "http://127.0.0.1:1")
    with pytest.raises(SystemExit) as excinfo:
        relay_app.main()
    assert excinfo.value.code == 1


@pytest.mark.parametrize("age", [34.9, True, "thirty", "34.5"])
def test_register_non_integer_age_is_validation_error(client, w3, age):
    response = client.post("/register", json={"name": "Alice", "age": age, "medicalHistory": "x"})
    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert w3.eth.registry.calls == []
    assert w3.eth.sent_raw == []


def test_register_accepts_integer_age(client, w3):
    response = client.post("/register", json={"name": "Alice", "age": 34, "medicalHistory": "x"})
    assert response.status_code == 200
    assert w3.eth.registry.calls_of("estimate_gas")[0][2] == ("Alice", 34, "x")

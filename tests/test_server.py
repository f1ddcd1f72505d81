"""
Integration tests for the facilitator HTTP API
"""

import pytest

from x402_facilitator.aptos.client import ChainError
from x402_facilitator.aptos.gas_station import SponsorResult
from tests.conftest import TX_HASH
from tests.factories import (
    OTHER,
    SponsoredRequirementsFactory,
    build_request_body,
    build_transaction,
)


class TestGeneralEndpoints:
    """Info, health and supported kinds"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["idempotency_entries"] == 0

    def test_supported(self, client):
        response = client.get("/supported")
        assert response.status_code == 200
        kinds = response.json()["kinds"]
        assert {"x402Version": 2, "scheme": "exact", "network": "aptos:1"} in [
            {k: kind[k] for k in ("x402Version", "scheme", "network")} for kind in kinds
        ]
        assert len(kinds) == 4


class TestVerifyEndpoint:
    """POST /verify"""

    def test_valid_payment(self, client):
        response = client.post("/verify", json=build_request_body())

        assert response.status_code == 200
        assert response.json() == {"isValid": True, "invalidReason": None}
        assert int(response.headers["X-Verification-Time"]) >= 0

    def test_legacy_path(self, client):
        response = client.post("/api/facilitator/verify", json=build_request_body())
        assert response.status_code == 200
        assert response.json()["isValid"] is True

    def test_mismatch_is_200_with_reason(self, client):
        body = build_request_body(transaction=build_transaction(recipient=OTHER))
        response = client.post("/verify", json=body)

        assert response.status_code == 200
        assert response.json()["isValid"] is False
        assert response.json()["invalidReason"].startswith("Recipient mismatch")

    def test_missing_fields_is_400(self, client):
        response = client.post("/verify", json={"x402Version": 2})

        assert response.status_code == 400
        data = response.json()
        assert data["isValid"] is False
        assert "paymentHeader" in data["invalidReason"]

    def test_invalid_json_is_400(self, client):
        response = client.post("/verify", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["invalidReason"] == "Request body must be valid JSON"

    def test_non_ascii_digit_amount_is_400(self, client):
        body = build_request_body()
        body["paymentRequirements"]["amount"] = "\u00b2"
        response = client.post("/verify", json=body)

        assert response.status_code == 400
        assert response.json()["isValid"] is False

    def test_unexpected_error_is_500(self, client, processor, monkeypatch):
        async def explode(request):
            raise RuntimeError("secret internals")

        monkeypatch.setattr(processor, "verify", explode)
        response = client.post("/verify", json=build_request_body())

        assert response.status_code == 500
        assert response.json()["invalidReason"] == "Internal server error"


class TestSettleEndpoint:
    """POST /settle"""

    def test_settle(self, client, fake_chain):
        response = client.post("/settle", json=build_request_body())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["transaction"] == TX_HASH
        assert data["network"] == "aptos:2"
        assert data["error"] is None
        assert "X-Settlement-Time" in response.headers
        assert "X-Cached" not in response.headers

    def test_repeat_settle_is_cached(self, client, fake_chain):
        body = build_request_body()
        first = client.post("/settle", json=body)
        second = client.post("/settle", json=body)

        assert first.status_code == second.status_code == 200
        assert second.headers["X-Cached"] == "true"
        assert second.json()["transaction"] == first.json()["transaction"]
        assert len(fake_chain.submitted) == 1

    def test_malformed_is_400(self, client):
        response = client.post("/settle", json={"paymentHeader": "x"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_decode_error_is_400(self, client):
        body = build_request_body()
        body["paymentHeader"] = "not base64!!"
        response = client.post("/settle", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid base64 encoding in payment header"

    def test_field_mismatch_is_200(self, client, fake_chain):
        body = build_request_body(transaction=build_transaction(amount=1))
        response = client.post("/settle", json=body)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert fake_chain.submitted == []

    def test_conflict_is_409(self, client, fake_chain):
        fake_chain.submit_error = ChainError("SEQUENCE_NUMBER_TOO_OLD", status_code=400, error_code="vm_error")
        response = client.post("/settle", json=build_request_body())

        assert response.status_code == 409
        assert response.json()["error"].startswith("Transaction already used")

    def test_submission_failure_is_502(self, client, fake_chain):
        fake_chain.submit_error = ChainError("internal node error", status_code=500)
        response = client.post("/settle", json=build_request_body())

        assert response.status_code == 502
        assert response.json()["success"] is False

    @pytest.mark.parametrize("path", ["/settle", "/api/facilitator/settle"])
    def test_sponsor_unavailable_is_503(self, client, fake_gas_station, path):
        fake_gas_station.configured = False
        body = build_request_body(
            requirements=SponsoredRequirementsFactory(),
            transaction=build_transaction(fee_payer="0x0"),
        )
        response = client.post(path, json=body)

        assert response.status_code == 503
        assert "GAS_STATION_API_KEY" in response.json()["error"]

    def test_gas_station_rejection_is_503(self, client, fake_gas_station):
        fake_gas_station.result = SponsorResult(success=False, error="Gas station rejected transaction: quota exceeded")
        body = build_request_body(
            requirements=SponsoredRequirementsFactory(),
            transaction=build_transaction(fee_payer="0x0"),
        )
        response = client.post("/settle", json=body)

        assert response.status_code == 503
        assert response.json()["error"] == "Gas station rejected transaction: quota exceeded"

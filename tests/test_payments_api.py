import time

import pytest

from conftest import BASIC_PRODUCT, PRO_PRODUCT

URL = "/api/payments/create-checkout"


def _now_ms():
    return int(time.time() * 1000)


@pytest.mark.payment
def test_create_checkout_returns_provider_url(client, dodo):
    response = client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()})

    assert response.status_code == 200
    assert response.json() == {"url": "https://test.checkout.dodopayments.com/cks_test_123"}
    assert dodo.calls == [("create_checkout_session", PRO_PRODUCT, "http://localhost:3000/success")]


def test_create_checkout_uses_success_url(client, dodo):
    response = client.post(
        URL,
        json={
            "productId": BASIC_PRODUCT,
            "timestamp": _now_ms(),
            "successUrl": "https://app.example.com/thanks",
            "cancelUrl": "https://app.example.com/cancel",
        },
    )
    assert response.status_code == 200
    assert dodo.calls[0][2] == "https://app.example.com/thanks"


def test_stale_timestamp_is_rejected(client, dodo):
    six_minutes_ago = _now_ms() - 6 * 60 * 1000
    response = client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": six_minutes_ago})

    assert response.status_code == 400
    assert response.json() == {"error": "Request expired"}
    assert dodo.calls == []


@pytest.mark.parametrize("body", [{"productId": PRO_PRODUCT}, {"productId": PRO_PRODUCT, "timestamp": "now"}])
def test_missing_or_non_numeric_timestamp_is_rejected(client, body):
    response = client.post(URL, json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_timestamp_is_rejected(client, dodo, literal):
    # httpx will not serialize non-finite floats, so send the raw JSON
    raw = f'{{"productId": "{PRO_PRODUCT}", "timestamp": {literal}}}'
    response = client.post(URL, content=raw, headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    assert dodo.calls == []


@pytest.mark.parametrize("product_id", ["pdt_other", "pdt_aCU0mubTSuDWGXLcIE9fW", ""])
def test_product_outside_whitelist_is_rejected(client, dodo, product_id):
    response = client.post(URL, json={"productId": product_id, "timestamp": _now_ms()})
    assert response.status_code == 400
    assert dodo.calls == []


def test_invalid_return_url_is_rejected(client):
    response = client.post(
        URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms(), "successUrl": "javascript:alert(1)"}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid success URL"}


def test_provider_failure_is_502(client, dodo, provider_error):
    dodo.fail_with = provider_error
    response = client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()})

    assert response.status_code == 502
    assert response.json() == {"error": "Failed to create checkout session"}


def test_missing_checkout_url_is_502(client, dodo):
    dodo.checkout_response = {"session_id": "cks_1"}
    response = client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()})
    assert response.status_code == 502


def test_unconfigured_provider_is_503(unconfigured_client):
    response = unconfigured_client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()})
    assert response.status_code == 503
    assert response.json() == {"error": "Payment service unavailable"}


def test_checkout_is_rate_limited(client):
    for _ in range(10):
        assert client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()}).status_code == 200

    response = client.post(URL, json={"productId": PRO_PRODUCT, "timestamp": _now_ms()})
    assert response.status_code == 429
    assert "Retry-After" in response.headers


def test_oversized_body_is_rejected(client, dodo):
    padding = "x" * (11 * 1024)
    response = client.post(
        URL,
        json={"productId": PRO_PRODUCT, "timestamp": _now_ms(), "successUrl": f"https://app.example.com/{padding}"},
    )

    assert response.status_code == 413
    assert response.json() == {"error": "Request body too large"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert dodo.calls == []

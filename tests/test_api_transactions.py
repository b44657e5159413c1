import re
from decimal import Decimal

from tests.till_helpers import FailingSubmission

CART = "/till/terminals/till-1/cart"


def _add(client, product_id, unit_price, quantity=1, terminal="till-1"):
    response = client.post(
        f"/till/terminals/{terminal}/cart/lines",
        json={"product_id": product_id, "unit_price": unit_price, "quantity": quantity, "name": product_id.title()},
    )
    assert response.status_code == 201
    return response.json()


def _line_id(cart, product_id):
    return next(line["line_id"] for line in cart["lines"] if line["product_id"] == product_id and not line["is_return"])


def _fill_cart(client):
    _add(client, "rice-5kg", "4500.00")
    _add(client, "oil-1l", "3200.00", 2)
    response = client.put(f"{CART}/discount", json={"kind": "percentage", "value": "10"})
    assert response.status_code == 200
    return response.json()


def test_cart_lines_merge_and_total(client):
    _add(client, "rice-5kg", "4500.00")
    cart = _add(client, "rice-5kg", "4500.00")

    assert len(cart["lines"]) == 1
    assert cart["lines"][0]["quantity"] == 2
    assert Decimal(cart["total"]) == Decimal("9000")

    cart = _fill_cart(client)
    assert Decimal(cart["subtotal"]) == Decimal("19900")
    assert Decimal(cart["order_discount_amount"]) == Decimal("1990")
    assert cart["order_discount_value"] == "10"


def test_line_quantity_and_discount_edits(client):
    cart = _fill_cart(client)
    oil = _line_id(cart, "oil-1l")

    response = client.patch(f"{CART}/lines/{oil}", json={"delta": 1})
    assert response.json()["lines"][1]["quantity"] == 3

    response = client.put(f"{CART}/lines/{oil}/discount", json={"kind": "fixed", "value": "600"})
    cart = response.json()
    assert Decimal(cart["item_discount_total"]) == Decimal("600")
    assert Decimal(cart["total"]) == Decimal("12150")

    response = client.patch(f"{CART}/lines/{oil}", json={"quantity": 0})
    assert [line["product_id"] for line in response.json()["lines"]] == ["rice-5kg"]


def test_malformed_discount_counts_as_zero(client):
    cart = _fill_cart(client)
    rice = _line_id(cart, "rice-5kg")

    cart = client.put(f"{CART}/lines/{rice}/discount", json={"kind": "fixed", "value": "abc"}).json()

    assert cart["lines"][0]["discount_value"] == "abc"
    assert Decimal(cart["lines"][0]["discount_amount"]) == 0
    assert Decimal(cart["total"]) == Decimal("9810")


def test_loyalty_discount_sets_order_percentage(client):
    _fill_cart(client)
    cart = client.put(f"{CART}/discount/loyalty", json={"total_spent": "45000"}).json()
    assert cart["order_discount_kind"] == "percentage"
    assert cart["order_discount_value"] == "10"


def test_line_edit_errors(client):
    cart = _fill_cart(client)
    rice = _line_id(cart, "rice-5kg")

    response = client.patch(f"{CART}/lines/{rice}", json={"quantity": 2, "delta": 1})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = client.patch(f"{CART}/lines/missing", json={"quantity": 2})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"

    response = client.post(f"{CART}/lines", json={"product_id": "soap", "unit_price": "250", "quantity": 0})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_QUANTITY"


def test_terminals_keep_separate_carts(client):
    _fill_cart(client)
    response = client.get("/till/terminals/till-2/cart")
    assert response.json()["lines"] == []
    assert response.json()["terminal_id"] == "till-2"


def test_tender_preview(client):
    _fill_cart(client)
    response = client.post("/till/terminals/till-1/checkout/preview", json={"payment_method": "cash", "tendered": "9800"})
    payload = response.json()
    assert payload["is_sufficient"] is False
    assert Decimal(payload["balance"]) == Decimal("-10")

    payload = client.post("/till/terminals/till-1/checkout/preview", json={"payment_method": "card"}).json()
    assert payload["is_sufficient"] is True
    assert Decimal(payload["tendered"]) == Decimal("9810")


def test_insufficient_cash_is_rejected_with_trace(client):
    _fill_cart(client)
    response = client.post(
        "/till/terminals/till-1/checkout",
        json={"payment_method": "CASH", "tendered": "9800"},
        headers={"X-Trace-ID": "trace-checkout-1"},
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_PAYMENT"
    assert payload["trace_id"] == "trace-checkout-1"
    assert payload["details"]["short_by"] == "10.00"
    assert len(client.get(CART).json()["lines"]) == 2


def test_empty_cart_checkout(client):
    response = client.post("/till/terminals/till-1/checkout", json={"payment_method": "CARD"})
    assert response.status_code == 422
    assert response.json()["code"] == "EMPTY_CART"


def test_checkout_commits_invoice(client):
    _fill_cart(client)
    response = client.post(
        "/till/terminals/till-1/checkout",
        json={"payment_method": "CASH", "tendered": "10000", "cashier_id": "c-1", "cashier_name": "Nimal"},
    )

    assert response.status_code == 201
    invoice = response.json()
    assert re.fullmatch(r"INV-\d{8}-0001", invoice["id"])
    assert Decimal(invoice["total"]) == Decimal("9810")
    assert Decimal(invoice["balance"]) == Decimal("190")
    assert invoice["payment_method"] == "CASH"
    assert client.get(CART).json()["lines"] == []

    fetched = client.get(f"/till/invoices/{invoice['id']}").json()
    assert fetched == invoice

    listed = client.get("/till/invoices", params={"business_date": invoice["business_date"], "cashier_id": "c-1"})
    assert [item["id"] for item in listed.json()["invoices"]] == [invoice["id"]]

    metrics_text = client.get("/metrics").text
    assert 'sales_committed_total{payment_method="CASH"} 1.0' in metrics_text


def test_unknown_invoice(client):
    response = client.get("/till/invoices/INV-19990101-0001")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_submission_failure_keeps_cart(client):
    _fill_cart(client)
    client.app.state.ledger = FailingSubmission()

    response = client.post("/till/terminals/till-1/checkout", json={"payment_method": "CARD"})

    assert response.status_code == 502
    assert response.json()["code"] == "SUBMISSION_FAILED"
    assert len(client.get(CART).json()["lines"]) == 2


def _checkout(client, terminal="till-1", **body):
    response = client.post(f"/till/terminals/{terminal}/checkout", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_partial_return_with_exchange(client):
    _fill_cart(client)
    original = _checkout(client, payment_method="CARD")
    oil = next(line["line_id"] for line in original["lines"] if line["product_id"] == "oil-1l")

    session = client.post("/till/terminals/till-2/returns/load", json={"invoice_id": original["id"]}).json()
    assert session["state"] == "INVOICE_LOADED"
    assert session["payment_method"] == "CARD"
    assert {item["line_id"]: item["returnable_quantity"] for item in session["candidates"]}[oil] == 2

    session = client.patch(
        f"/till/terminals/till-2/returns/lines/{oil}", json={"return_quantity": 1, "reason": "leaking"}
    ).json()
    assert session["state"] == "ITEMS_SELECTED"

    committed = client.post("/till/terminals/till-2/returns/commit").json()
    assert len(committed["merged_line_ids"]) == 1
    cart = committed["cart"]
    assert cart["lines"][0]["quantity"] == -1
    assert cart["lines"][0]["refund_method"] == "CARD"
    assert Decimal(cart["return_subtotal"]) == Decimal("3200")
    assert client.get("/till/terminals/till-2/returns").json()["state"] == "IDLE"

    _add(client, "rice-5kg", "4500.00", terminal="till-2")
    preview = client.post(
        "/till/terminals/till-2/checkout/preview", json={"payment_method": "CASH", "tendered": "1300"}
    ).json()
    assert Decimal(preview["total"]) == Decimal("1300")
    assert Decimal(preview["amount_due"]) == Decimal("4500")
    assert {method: Decimal(amount) for method, amount in preview["refund_payouts"].items()} == {
        "CARD": Decimal("3200")
    }
    assert preview["is_sufficient"] is False

    response = client.post("/till/terminals/till-2/checkout", json={"payment_method": "CASH", "tendered": "1300"})
    assert response.status_code == 422
    assert response.json()["details"]["short_by"] == "3200.00"

    exchange = _checkout(client, terminal="till-2", payment_method="CASH", tendered="4500")

    assert Decimal(exchange["total"]) == Decimal("1300")
    assert Decimal(exchange["amount_due"]) == Decimal("4500")
    assert Decimal(exchange["refund_payouts"]["CARD"]) == Decimal("3200")
    assert Decimal(exchange["balance"]) == 0
    returned = next(line for line in exchange["lines"] if line["is_return"])
    assert returned["return_of_invoice_id"] == original["id"]
    assert returned["return_of_line_id"] == oil
    assert returned["reason"] == "leaking"

    untouched = client.get(f"/till/invoices/{original['id']}").json()
    assert untouched == original

    reloaded = client.post("/till/terminals/till-3/returns/load", json={"invoice_id": original["id"]}).json()
    assert {item["line_id"]: item["returnable_quantity"] for item in reloaded["candidates"]}[oil] == 1


def test_return_rules(client):
    _fill_cart(client)
    original = _checkout(client, payment_method="CASH", tendered="9810")
    rice = next(line["line_id"] for line in original["lines"] if line["product_id"] == "rice-5kg")

    response = client.post("/till/terminals/till-1/returns/commit")
    assert response.status_code == 409
    assert response.json()["code"] == "RETURN_NOT_STARTED"

    client.post("/till/terminals/till-1/returns/load", json={"invoice_id": original["id"]})
    response = client.patch(f"/till/terminals/till-1/returns/lines/{rice}", json={"return_quantity": 2})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_QUANTITY"

    response = client.post("/till/terminals/till-1/returns/commit")
    assert response.json()["code"] == "NOTHING_SELECTED"

    client.patch(f"/till/terminals/till-1/returns/lines/{rice}", json={"return_quantity": 1})
    response = client.post("/till/terminals/till-1/returns/commit")
    assert response.json()["code"] == "RETURN_REASON_REQUIRED"

    session = client.delete("/till/terminals/till-1/returns").json()
    assert session["state"] == "IDLE"
    assert session["candidates"] == []


def test_apply_return_request_is_all_or_nothing(client):
    _fill_cart(client)
    original = _checkout(client, payment_method="UPI")
    rice, oil = (line["line_id"] for line in original["lines"])

    response = client.post(
        "/till/terminals/till-1/returns",
        json={
            "original_invoice_id": original["id"],
            "selections": [
                {"line_id": rice, "return_quantity": 1, "reason": "wrong size"},
                {"line_id": oil, "return_quantity": 5, "reason": "leaking"},
            ],
        },
    )
    assert response.status_code == 422
    assert client.get(CART).json()["lines"] == []

    response = client.post(
        "/till/terminals/till-1/returns",
        json={
            "original_invoice_id": original["id"],
            "selections": [{"line_id": rice, "return_quantity": 1, "reason": "wrong size"}],
        },
    )
    assert response.status_code == 200
    cart = response.json()["cart"]
    assert cart["lines"][0]["refund_method"] == "UPI"
    assert Decimal(cart["total"]) == Decimal("-4500")

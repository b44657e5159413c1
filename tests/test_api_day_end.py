from decimal import Decimal


def _sell(client, terminal, lines, **body):
    for product_id, unit_price, quantity in lines:
        response = client.post(
            f"/till/terminals/{terminal}/cart/lines",
            json={"product_id": product_id, "unit_price": unit_price, "quantity": quantity},
        )
        assert response.status_code == 201
    response = client.post(f"/till/terminals/{terminal}/checkout", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _shift(client):
    client.post("/till/terminals/till-1/cart/lines", json={"product_id": "oil-1l", "unit_price": "3200", "quantity": 2})
    client.put("/till/terminals/till-1/cart/discount", json={"kind": "percentage", "value": "10"})
    cash_sale = _sell(
        client, "till-1", [("rice-5kg", "4500", 1)], payment_method="CASH", tendered="10000", cashier_id="c-1"
    )
    card_sale = _sell(client, "till-1", [("rice-5kg", "4500", 1)], payment_method="CARD", cashier_id="c-1")

    rice = card_sale["lines"][0]["line_id"]
    response = client.post(
        "/till/terminals/till-1/returns",
        json={
            "original_invoice_id": card_sale["id"],
            "selections": [{"line_id": rice, "return_quantity": 1, "reason": "torn bag"}],
        },
    )
    assert response.status_code == 200
    _sell(client, "till-1", [("soap", "250", 1)], payment_method="CARD", cashier_id="c-1")

    business_date = cash_sale["business_date"]
    for amount, method in (("500", "CASH"), ("200", "card")):
        response = client.post(
            "/till/expenses",
            json={"business_date": business_date, "amount": amount, "payment_method": method, "description": "Fuel"},
        )
        assert response.status_code == 201
    return business_date


def test_day_end_reconciliation(client):
    business_date = _shift(client)

    response = client.post(
        "/till/day-end",
        json={
            "business_date": business_date,
            "opening_cash": "1000",
            "cashier_id": "c-1",
            "cashier_name": "Nimal",
            "actual_cash_counted": "10300",
            "notes": "coins short",
        },
    )

    assert response.status_code == 200
    summary = response.json()
    assert summary["total_orders"] == 3
    assert Decimal(summary["total_sales"]) == Decimal("10060")
    assert Decimal(summary["sales_by_method"]["CASH"]) == Decimal("9810")
    assert Decimal(summary["sales_by_method"]["CARD"]) == Decimal("250")
    assert Decimal(summary["total_cash_refunds"]) == 0
    assert Decimal(summary["total_discounts"]) == Decimal("1090")
    assert Decimal(summary["total_expenses"]) == Decimal("700")
    assert Decimal(summary["cash_expenses"]) == Decimal("500")
    assert Decimal(summary["expected_cash"]) == Decimal("10310")
    assert Decimal(summary["difference"]) == Decimal("-10")
    assert summary["is_balanced"] is False
    assert summary["shift_start"] == "08:00"
    assert summary["shift_end"] == "20:00"
    assert summary["notes"] == "coins short"


def test_day_end_for_other_cashier_is_empty(client):
    business_date = _shift(client)
    summary = client.post("/till/day-end", json={"business_date": business_date, "cashier_id": "c-9"}).json()
    assert summary["total_orders"] == 0
    assert Decimal(summary["actual_cash_counted"]) == 0


def test_negative_counted_cash_is_rejected(client):
    response = client.post("/till/day-end", json={"business_date": "2024-03-01", "actual_cash_counted": "-5"})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_expense_amount_must_be_positive(client):
    response = client.post("/till/expenses", json={"business_date": "2024-03-01", "amount": "0"})
    assert response.status_code == 422
    assert response.json()["details"]["errors"][0]["field"] == "amount"


def test_day_end_report_text(client):
    business_date = _shift(client)

    response = client.post(
        "/till/day-end/report",
        json={
            "business_date": business_date,
            "opening_cash": "1000",
            "cashier_name": "Nimal",
            "actual_cash_counted": "10300",
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    text = response.text
    assert "DAY-END REPORT" in text
    assert "LKR 10,310.00" in text
    assert "-LKR 10.00" in text
    assert "Nimal" in text


def test_exchange_refunded_in_cash_and_paid_by_card(client):
    oil_sale = _sell(
        client, "till-1", [("oil-1l", "3200", 1)], payment_method="CASH", tendered="3200", cashier_id="c-2"
    )
    oil = oil_sale["lines"][0]["line_id"]

    response = client.post(
        "/till/terminals/till-2/returns",
        json={
            "original_invoice_id": oil_sale["id"],
            "selections": [{"line_id": oil, "return_quantity": 1, "reason": "leaking"}],
        },
    )
    assert response.status_code == 200
    exchange = _sell(client, "till-2", [("soap", "250", 20)], payment_method="CARD", cashier_id="c-2")

    assert Decimal(exchange["total"]) == Decimal("1800")
    assert Decimal(exchange["amount_due"]) == Decimal("5000")
    assert Decimal(exchange["tendered"]) == Decimal("5000")
    assert Decimal(exchange["refund_payouts"]["CASH"]) == Decimal("3200")

    business_date = exchange["business_date"]
    listed = client.get("/till/invoices", params={"business_date": business_date, "cashier_id": "c-2"}).json()
    assert [invoice["id"] for invoice in listed["invoices"]] == [oil_sale["id"], exchange["id"]]

    summary = client.post(
        "/till/day-end",
        json={"business_date": business_date, "cashier_id": "c-2", "opening_cash": "0", "actual_cash_counted": "0"},
    ).json()
    assert Decimal(summary["total_sales"]) == Decimal("5000")
    assert Decimal(summary["sales_by_method"]["CARD"]) == Decimal("5000")
    assert Decimal(summary["sales_by_method"]["CASH"]) == 0
    assert Decimal(summary["total_cash_refunds"]) == Decimal("3200")
    assert Decimal(summary["expected_cash"]) == 0
    assert summary["is_balanced"] is True

    reloaded = client.post("/till/terminals/till-3/returns/load", json={"invoice_id": oil_sale["id"]}).json()
    assert reloaded["candidates"][0]["returnable_quantity"] == 0

"""
Tests for Finance API endpoints
"""
from datetime import date, timedelta


def _create(client, headers, **fields):
    payload = {"type": "expense", "title": "Coffee", "amount": 4.5, "category": "food", **fields}
    response = client.post("/api/finance", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_entry(client, auth_headers):
    """Defaults: cash payment, dated today"""
    entry = _create(client, auth_headers)

    assert entry["paymentMethod"] == "cash"
    assert entry["date"] == date.today().isoformat()
    assert entry["amount"] == 4.5


def test_amount_must_be_positive(client, auth_headers):
    """Zero or negative amounts are rejected"""
    zero = client.post("/api/finance", json={"type": "expense", "title": "x", "amount": 0}, headers=auth_headers)
    negative = client.post("/api/finance", json={"type": "income", "title": "x", "amount": -10}, headers=auth_headers)

    assert zero.status_code == 400
    assert negative.status_code == 400
    assert zero.json()["code"] == "VALIDATION_ERROR"


def test_invalid_payment_method(client, auth_headers):
    """paymentMethod must be cash, card, bank or savings"""
    response = client.post(
        "/api/finance",
        json={"type": "expense", "title": "x", "amount": 1, "paymentMethod": "crypto"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "paymentMethod"


def test_filters_and_sorting(client, auth_headers):
    """type, paymentMethod and sort by amount"""
    _create(client, auth_headers, title="Rent", amount=900, paymentMethod="bank")
    _create(client, auth_headers, title="Coffee", amount=4.5, paymentMethod="card")
    _create(client, auth_headers, type="income", title="Salary", amount=3000, category="salary", paymentMethod="bank")

    expenses = client.get("/api/finance?type=expense&sortBy=amount&sortOrder=asc", headers=auth_headers).json()
    bank = client.get("/api/finance?paymentMethod=bank", headers=auth_headers).json()

    assert [e["title"] for e in expenses["data"]] == ["Coffee", "Rent"]
    assert {e["title"] for e in bank["data"]} == {"Rent", "Salary"}


def test_range_filter(client, auth_headers):
    """range=week keeps the last seven days"""
    today = date.today()
    _create(client, auth_headers, title="recent", date=today.isoformat())
    _create(client, auth_headers, title="old", date=(today - timedelta(days=400)).isoformat())

    week = client.get("/api/finance?range=week", headers=auth_headers).json()["data"]
    year = client.get("/api/finance?range=year", headers=auth_headers).json()["data"]

    assert [e["title"] for e in week] == ["recent"]
    assert [e["title"] for e in year] == ["recent"]


def test_stats_overview(client, auth_headers):
    """Totals, monthly figures and top categories"""
    _create(client, auth_headers, type="income", title="Salary", amount=1000, category="salary")
    _create(client, auth_headers, title="Rent", amount=500, category="housing")
    _create(client, auth_headers, title="Food", amount=120, category="food")
    _create(client, auth_headers, title="More food", amount=80, category="food")

    stats = client.get("/api/finance/stats/overview", headers=auth_headers).json()["data"]

    assert stats["totalIncome"] == 1000
    assert stats["totalExpenses"] == 700
    assert stats["balance"] == 300
    assert stats["monthlyIncome"] == 1000
    assert stats["monthlyNet"] == 300
    assert stats["topCategories"] == [
        {"category": "housing", "amount": 500},
        {"category": "food", "amount": 200},
    ]
    assert stats["incomeChange"] == 0
    assert len(stats["monthlyTrend"]) == 12

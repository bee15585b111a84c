import pytest


@pytest.fixture()
def books(api):
    r = api.post("/api/accounting/accounts/seed-default")
    assert r.status_code == 200
    assert r.json["data"] == {"created": 55, "skipped": 0}
    r = api.post("/api/accounting/periods/generate-year", json={"fiscal_year": 2026})
    assert r.json["data"] == {"created": 12, "skipped": 0}
    return api


def _periods(api):
    return {p["fiscal_month"]: p for p in api.get("/api/accounting/periods?fiscal_year=2026").json["data"]["items"]}


def _je(api, entry_date="2026-03-15", amount=500, debit_acct="1010", credit_acct="4000"):
    return api.post(
        "/api/accounting/journal-entries",
        json={
            "entry_date": entry_date,
            "description": "Invoice 42",
            "lines": [
                {"account_number": debit_acct, "debit": amount},
                {"account_number": credit_acct, "credit": amount},
            ],
        },
    )


def test_seed_is_idempotent_and_superuser_only(books, manager_api):
    r = books.post("/api/accounting/accounts/seed-default")
    assert r.json["data"] == {"created": 0, "skipped": 55}

    r = manager_api.post("/api/accounting/accounts/seed-default")
    assert r.status_code == 403

    accounts = {a["account_number"]: a for a in books.get("/api/accounting/accounts").json["data"]["items"]}
    assert accounts["1010"]["normal_balance"] == "Debit"
    assert accounts["1550"]["normal_balance"] == "Credit"
    assert accounts["4000"]["normal_balance"] == "Credit"


def test_chart_account_create_and_duplicate(books):
    r = books.post("/api/accounting/accounts", json={"account_number": "6310", "name": "AI Tools", "type": "Expense"})
    assert r.status_code == 201
    assert r.json["data"]["normal_balance"] == "Debit"

    r = books.post("/api/accounting/accounts", json={"account_number": "6310", "name": "Dup", "type": "Expense"})
    assert r.status_code == 400
    assert r.json["error"] == "account_number_exists"

    r = books.put(f"/api/accounting/accounts/{_chart_id(books, '6310')}", json={"is_active": False})
    assert r.json["data"]["is_active"] is False
    numbers = [a["account_number"] for a in books.get("/api/accounting/accounts").json["data"]["items"]]
    assert "6310" not in numbers


def _chart_id(api, number):
    items = api.get("/api/accounting/accounts?include_inactive=1").json["data"]["items"]
    return next(a["id"] for a in items if a["account_number"] == number)


def test_periods(books):
    r = books.post("/api/accounting/periods", json={"fiscal_year": 2026, "fiscal_month": 5})
    assert r.status_code == 409
    assert r.json["error"] == "period_exists"

    r = books.post("/api/accounting/periods", json={"fiscal_year": 2027, "fiscal_month": 2})
    assert r.status_code == 201
    assert r.json["data"]["name"] == "February 2027"
    assert r.json["data"]["end_date"] == "2027-02-28"

    r = books.post("/api/accounting/periods/generate-year", json={"fiscal_year": 2027})
    assert r.json["data"] == {"created": 11, "skipped": 1}


def test_journal_entry_posting_and_validation(books):
    r = _je(books)
    assert r.status_code == 201, r.json
    entry = r.json["data"]
    assert entry["entry_number"] == 10001
    assert entry["total_debit"] == entry["total_credit"] == 500
    assert entry["lines"][0]["account_name"] == "Checking Account"
    assert entry["audit"][0]["action"] == "posted"

    r = books.post(
        "/api/accounting/journal-entries",
        json={
            "entry_date": "2026-03-15",
            "lines": [{"account_number": "1010", "debit": 100}, {"account_number": "4000", "credit": 90}],
        },
    )
    assert r.status_code == 400
    assert r.json["error"] == "debits_credits_mismatch"

    r = books.post(
        "/api/accounting/journal-entries",
        json={
            "entry_date": "2026-03-15",
            "lines": [{"account_number": "1010", "debit": 5, "credit": 5}, {"account_number": "4000", "credit": 0}],
        },
    )
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"

    r = _je(books, credit_acct="9999")
    assert r.status_code == 400
    assert r.json["error"] == "invalid_account"
    assert r.json["details"] == {"account_numbers": ["9999"]}

    r = _je(books, entry_date="2031-01-01")
    assert r.status_code == 400
    assert r.json["error"] == "no_open_period"


def test_closed_and_locked_periods(books):
    march = _periods(books)[3]
    r = books.post(f"/api/accounting/periods/{march['id']}/close")
    assert r.json["data"]["status"] == "closed"
    assert r.json["data"]["closed_by"] == "admin@example.com"

    r = _je(books)
    assert r.status_code == 400
    assert r.json["error"] == "period_closed"

    books.post(f"/api/accounting/periods/{march['id']}/lock")
    r = books.post(f"/api/accounting/periods/{march['id']}/reopen")
    assert r.status_code == 400
    assert r.json["error"] == "period_locked"

    books.post(f"/api/accounting/periods/{march['id']}/unlock")
    r = books.post(f"/api/accounting/periods/{march['id']}/reopen")
    assert r.json["data"]["status"] == "open"
    assert _je(books).status_code == 201


def test_reverse_entry_and_trial_balance(books):
    entry = _je(books).json["data"]
    r = books.post(f"/api/accounting/journal-entries/{entry['id']}/reverse", json={"reversal_date": "2026-03-20", "reason": "typo"})
    assert r.status_code == 201
    original, reversal = r.json["data"]["original"], r.json["data"]["reversal"]
    assert original["status"] == "reversed"
    assert original["reversed_by_entry_id"] == reversal["id"]
    assert reversal["reverses_entry_id"] == entry["id"]
    assert reversal["source_type"] == "adjustment"
    assert reversal["lines"][0] == {**entry["lines"][0], "debit": 0, "credit": 500}

    r = books.post(f"/api/accounting/journal-entries/{entry['id']}/reverse", json={"reversal_date": "2026-03-21"})
    assert r.status_code == 400
    assert r.json["error"] == "already_reversed"

    _je(books, entry_date="2026-04-01", amount=250)
    tb = books.get("/api/accounting/trial-balance").json["data"]
    rows = {row["account_number"]: row for row in tb["rows"]}
    assert rows["1010"] == {
        "account_number": "1010",
        "account_name": "Checking Account",
        "type": "Asset",
        "normal_balance": "Debit",
        "debit": 750,
        "credit": 500,
        "balance": 250,
    }
    assert rows["4000"]["balance"] == 250
    assert tb["is_balanced"] is True

    tb = books.get("/api/accounting/trial-balance?as_of=2026-03-16").json["data"]
    assert {row["account_number"]: row["balance"] for row in tb["rows"]} == {"1010": 500, "4000": 500}

    r = books.get("/api/accounting/trial-balance?as_of=yesterday")
    assert r.status_code == 400
    assert r.json["error"] == "invalid_as_of"


def test_expense_lifecycle_through_approval(books, manager_api):
    r = books.post(
        "/api/accounting/expenses",
        json={"vendor": "Cloudy", "date": "2026-04-02", "lines": [{"account_number": "6300", "amount": 120.5}]},
    )
    assert r.status_code == 201
    expense = r.json["data"]
    assert expense["expense_number"] == 1001
    assert expense["status"] == "draft"
    assert expense["total"] == 120.5

    r = books.post(f"/api/accounting/expenses/{expense['id']}/pay")
    assert r.status_code == 400
    assert r.json["error"] == "must_be_approved"

    r = books.post(f"/api/accounting/expenses/{expense['id']}/submit", json={"approver_email": "member@example.com"})
    assert r.status_code == 403
    assert r.json["error"] == "approver_not_manager"

    r = books.post(f"/api/accounting/expenses/{expense['id']}/submit", json={"approver_email": "manager@example.com"})
    assert r.status_code == 200
    assert r.json["data"]["expense"]["status"] == "pending_approval"
    req = r.json["data"]["approval_request"]
    assert req["subject_type"] == "expense"
    assert req["amount"] == 120.5

    r = books.post(f"/api/accounting/expenses/{expense['id']}/submit", json={"approver_email": "manager@example.com"})
    assert r.json["error"] == "can_only_submit_draft"

    r = manager_api.post(f"/api/approvals/requests/{req['id']}/approve", json={"review_notes": "ok"})
    assert r.status_code == 200
    r = books.get(f"/api/accounting/expenses/{expense['id']}")
    assert r.json["data"]["status"] == "approved"
    assert r.json["data"]["approved_by"] == "manager@example.com"

    r = books.post(f"/api/accounting/expenses/{expense['id']}/pay")
    assert r.status_code == 200, r.json
    paid, je = r.json["data"]["expense"], r.json["data"]["journal_entry"]
    assert paid["status"] == "paid"
    assert paid["journal_entry_id"] == je["id"]
    assert je["source_type"] == "expense"
    assert [(l["account_number"], l["debit"], l["credit"]) for l in je["lines"]] == [
        ("6300", 120.5, 0),
        ("1010", 0, 120.5),
    ]

    r = books.post(f"/api/accounting/expenses/{expense['id']}/void")
    assert r.json["error"] == "cannot_void_paid"
    r = books.put(f"/api/accounting/expenses/{expense['id']}", json={"memo": "late edit"})
    assert r.json["error"] == "expense_finalized"

    totals = books.get("/api/accounting/expenses").json["data"]["totals"]
    assert totals == {"paid": {"count": 1, "total": 120.5}}


def test_rejected_expense_returns_to_draft_on_edit(books, manager_api):
    expense = books.post(
        "/api/accounting/expenses",
        json={"date": "2026-04-02", "lines": [{"account_number": "6600", "amount": 80}]},
    ).json["data"]
    req = books.post(
        f"/api/accounting/expenses/{expense['id']}/submit", json={"approver_email": "manager@example.com"}
    ).json["data"]["approval_request"]
    manager_api.post(f"/api/approvals/requests/{req['id']}/reject", json={"review_notes": "receipt missing"})

    assert books.get(f"/api/accounting/expenses/{expense['id']}").json["data"]["status"] == "rejected"
    r = books.put(
        f"/api/accounting/expenses/{expense['id']}",
        json={"lines": [{"account_number": "6600", "amount": 60}, {"account_number": "6800", "amount": 5}]},
    )
    assert r.json["data"]["status"] == "draft"
    assert r.json["data"]["total"] == 65

    r = books.post(f"/api/accounting/expenses/{expense['id']}/void")
    assert r.json["data"]["status"] == "void"


def test_pay_without_cash_account(api):
    api.post("/api/accounting/accounts", json={"account_number": "6300", "name": "Software", "type": "Expense"})
    api.post("/api/accounting/periods/generate-year", json={"fiscal_year": 2026})
    expense = api.post(
        "/api/accounting/expenses",
        json={"date": "2026-04-02", "lines": [{"account_number": "6300", "amount": 10}]},
    ).json["data"]
    api.post(f"/api/accounting/expenses/{expense['id']}/approve")
    r = api.post(f"/api/accounting/expenses/{expense['id']}/pay")
    assert r.status_code == 400
    assert r.json["error"] == "cash_account_missing"

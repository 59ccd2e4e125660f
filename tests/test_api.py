from datetime import timedelta

import pytest


def login(client, username="asha", password="secret123"):
    return client.post("/login", json={"username": username, "password": password})


def add_expense(client, user_id, **fields):
    payload = {"user_id": user_id, "name": "Lunch", "amount": 25000, "payment_mode": "upi"}
    payload.update(fields)
    return client.post("/expenses", json=payload)


def test_root(client):
    assert client.get("/").json() == {"message": "WealthWise API is running"}


# -----------------------------
# Users
# -----------------------------
def test_register_starts_with_no_coins(client, user_id):
    user = client.get(f"/users/{user_id}").json()
    assert (user["coins"], user["streak"], user["last_login"]) == (0, 0, None)
    assert "password" not in user


def test_register_duplicate_username(client, user_id):
    res = client.post("/register", json={"username": "asha", "password": "another1", "name": "A"})
    assert res.status_code == 400
    assert res.json() == {"error": "Username already exists"}


def test_register_validation_error(client):
    res = client.post("/register", json={"username": "x", "password": "123", "name": "X"})
    assert res.status_code == 422
    assert res.json()["error"] == "Validation Error"


def test_login_wrong_password(client, user_id):
    res = login(client, password="wrong-one")
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid username or password"}


def test_login_streak_flow(client, clock, user_id):
    first = login(client).json()
    assert (first["streak"], first["coins"], first["coins_awarded"]) == (1, 15, 15)

    clock.advance(hours=10)
    again = login(client).json()
    assert (again["streak"], again["coins"], again["coins_awarded"]) == (1, 15, 0)

    clock.advance(hours=15)  # 25h after the counted login
    next_day = login(client).json()
    assert (next_day["streak"], next_day["coins"]) == (2, 30)

    clock.advance(hours=49)
    broken = login(client).json()
    assert (broken["streak"], broken["coins"]) == (1, 45)


def test_fifth_day_pays_bonus(client, clock, user_id):
    login(client)
    for _ in range(4):
        clock.advance(hours=24)
        res = login(client).json()
    assert res["streak"] == 5
    assert res["coins_awarded"] == 35
    assert res["coins"] == 15 * 5 + 20


def test_unknown_user_is_404(client):
    res = client.get("/users/999")
    assert res.status_code == 404
    assert res.json() == {"error": "User not found"}


# -----------------------------
# Expenses
# -----------------------------
def test_expense_is_auto_classified(client, user_id):
    cheap = add_expense(client, user_id, name="Movie Tickets", amount=50000).json()["expense"]
    assert (cheap["category"], cheap["status"]) == ("entertainment", "avoidable")

    pricey = add_expense(client, user_id, name="Movie Tickets", amount=250000).json()["expense"]
    assert (pricey["category"], pricey["status"]) == ("entertainment", "unnecessary")


def test_expense_keeps_explicit_category_and_status(client, user_id):
    res = add_expense(client, user_id, name="Thing", category="Shopping", status="necessary")
    expense = res.json()["expense"]
    assert (expense["category"], expense["status"]) == ("shopping", "necessary")


def test_first_expense_of_the_day_earns_coins(client, clock, user_id):
    first = add_expense(client, user_id).json()
    assert (first["coins_awarded"], first["coins"]) == (10, 10)

    second = add_expense(client, user_id, name="Dinner").json()
    assert (second["coins_awarded"], second["coins"]) == (0, 10)

    # a back-dated expense does not count for today
    clock.advance(days=1)
    backdated = add_expense(client, user_id, date=(clock.now - timedelta(days=3)).isoformat()).json()
    assert backdated["coins_awarded"] == 0

    today = add_expense(client, user_id).json()
    assert (today["coins_awarded"], today["coins"]) == (10, 20)


def test_expense_validation(client, user_id):
    assert add_expense(client, user_id, amount=0).status_code == 422
    assert add_expense(client, user_id, amount=-100).status_code == 422
    assert add_expense(client, user_id, payment_mode="cheque").status_code == 422
    assert add_expense(client, user_id, status="optional").status_code == 422
    assert add_expense(client, 999).status_code == 404


def test_list_expenses_by_date_range(client, user_id):
    add_expense(client, user_id, name="Old", date="2026-09-01T10:00:00")
    add_expense(client, user_id, name="New", date="2026-10-10T10:00:00")

    everything = client.get(f"/expenses/{user_id}").json()
    assert [e["name"] for e in everything] == ["New", "Old"]

    october = client.get(f"/expenses/{user_id}", params={"start_date": "2026-10-01T00:00:00"}).json()
    assert [e["name"] for e in october] == ["New"]


def test_update_and_delete_expense(client, user_id):
    expense_id = add_expense(client, user_id).json()["expense"]["id"]

    res = client.put(f"/expenses/{user_id}/{expense_id}", json={"amount": 30000, "notes": "team lunch"})
    assert res.status_code == 200
    assert (res.json()["amount"], res.json()["notes"], res.json()["name"]) == (30000, "team lunch", "Lunch")

    assert client.delete(f"/expenses/{user_id}/{expense_id}").status_code == 200
    assert client.get(f"/expenses/{user_id}").json() == []


def test_expenses_are_scoped_to_their_owner(client, user_id, other_user_id):
    expense_id = add_expense(client, user_id).json()["expense"]["id"]

    res = client.put(f"/expenses/{other_user_id}/{expense_id}", json={"amount": 1})
    assert res.status_code == 404
    assert res.json() == {"error": "Expense not found"}
    assert client.delete(f"/expenses/{other_user_id}/{expense_id}").status_code == 404
    assert client.get(f"/expenses/{other_user_id}").json() == []


# -----------------------------
# Savings
# -----------------------------
def test_piggy_bank_saving_earns_coins(client, user_id):
    res = client.post("/savings", json={"user_id": user_id, "amount": 10000, "source": "piggy_bank"})
    assert res.status_code == 201
    assert (res.json()["coins_awarded"], res.json()["coins"]) == (5, 5)

    other = client.post("/savings", json={"user_id": user_id, "amount": 10000, "source": "salary"}).json()
    assert other["coins_awarded"] == 0


def test_delete_saving_checks_owner(client, user_id, other_user_id):
    saving_id = client.post(
        "/savings", json={"user_id": user_id, "amount": 500, "source": "salary"}
    ).json()["saving"]["id"]
    assert client.delete(f"/savings/{other_user_id}/{saving_id}").status_code == 404
    assert client.delete(f"/savings/{user_id}/{saving_id}").status_code == 200
    assert client.get(f"/savings/{user_id}").json() == []


def test_weekly_savings_overview(client, user_id):
    add_expense(client, user_id, name="Concert", amount=20000, status="avoidable")
    add_expense(client, user_id, name="Gadget", amount=10000, status="unnecessary")
    add_expense(client, user_id, name="Rent", amount=900000, status="necessary")
    client.post("/savings", json={"user_id": user_id, "amount": 7500, "source": "salary"})

    res = client.get(f"/savings/weekly/{user_id}", params={"weeks": 4})
    assert res.status_code == 200
    body = res.json()
    assert len(body["weeks"]) == 4
    assert body["weeks"][-1]["week_start"] == "2026-10-12T00:00:00"
    assert (body["avoidable_total"], body["unnecessary_total"], body["current_target"]) == (20000, 10000, 15000)
    assert body["current_actual"] == 7500
    assert body["percentage_coins"] == 50


def test_weekly_reconcile(client, clock, user_id):
    last_week = "2026-10-07T12:00:00"
    add_expense(client, user_id, name="Concert", amount=20000, status="avoidable", date=last_week)
    add_expense(client, user_id, name="Gadget", amount=10000, status="unnecessary", date=last_week)
    client.post("/savings", json={"user_id": user_id, "amount": 7500, "source": "salary", "date": last_week})

    res = client.post(f"/savings/weekly/reconcile/{user_id}")
    assert res.status_code == 200
    body = res.json()
    assert body["week_start"] == "2026-10-05T00:00:00"
    assert (body["target"], body["actual"], body["coins_awarded"], body["coins"]) == (15000, 7500, 50, 50)
    assert body["achievement"]["type"] == "savings_goal"

    again = client.post(f"/savings/weekly/reconcile/{user_id}").json()
    assert (again["coins_awarded"], again["coins"]) == (0, 50)
    assert len(client.get(f"/achievements/{user_id}").json()) == 1


def test_reconcile_rejects_unfinished_week(client, user_id):
    res = client.post(f"/savings/weekly/reconcile/{user_id}", params={"week_start": "2026-10-12T00:00:00"})
    assert res.status_code == 400


# -----------------------------
# Goals
# -----------------------------
def create_goal(client, user_id, target_amount=100000):
    res = client.post("/goals", json={
        "user_id": user_id,
        "name": "New bike",
        "target_amount": target_amount,
        "target_date": "2027-01-01T00:00:00",
    })
    assert res.status_code == 201
    return res.json()


def test_goal_completes_once_through_allocation(client, user_id):
    goal = create_goal(client, user_id)

    partial = client.post(f"/goals/{user_id}/{goal['id']}/allocate", json={"amount": 60000}).json()
    assert partial["goal"]["current_amount"] == 60000
    assert partial["goal"]["completed"] is False
    assert partial["coins_awarded"] == 0

    done = client.post(f"/goals/{user_id}/{goal['id']}/allocate", json={"amount": 50000}).json()
    assert done["goal"]["completed"] is True
    assert done["goal"]["completed_at"] == "2026-10-14T09:00:00"
    assert (done["coins_awarded"], done["coins"]) == (100, 100)

    extra = client.post(f"/goals/{user_id}/{goal['id']}/allocate", json={"amount": 1000}).json()
    assert (extra["coins_awarded"], extra["coins"]) == (0, 100)

    achievements = client.get(f"/achievements/{user_id}").json()
    assert [a["name"] for a in achievements] == ["Goal Achieved: New bike"]

    savings = client.get(f"/savings/{user_id}").json()
    assert sorted(s["amount"] for s in savings) == [-60000, -50000, -1000]
    assert all(s["source"] == "goal_allocation" for s in savings)


def test_goal_marked_complete_by_hand(client, user_id):
    goal = create_goal(client, user_id)
    res = client.put(f"/goals/{user_id}/{goal['id']}", json={"completed": True}).json()
    assert res["goal"]["completed"] is True
    assert res["coins_awarded"] == 100

    # completion cannot be undone and is not paid twice
    again = client.put(f"/goals/{user_id}/{goal['id']}", json={"completed": False, "name": "Bike"}).json()
    assert again["goal"]["completed"] is True
    assert again["goal"]["name"] == "Bike"
    assert (again["coins_awarded"], again["coins"]) == (0, 100)


def test_lowering_target_completes_funded_goal(client, user_id):
    goal = create_goal(client, user_id)
    client.post(f"/goals/{user_id}/{goal['id']}/allocate", json={"amount": 40000})
    res = client.put(f"/goals/{user_id}/{goal['id']}", json={"target_amount": 40000}).json()
    assert res["goal"]["completed"] is True
    assert res["coins_awarded"] == 100


def test_goals_are_scoped_to_their_owner(client, user_id, other_user_id):
    goal = create_goal(client, user_id)
    res = client.post(f"/goals/{other_user_id}/{goal['id']}/allocate", json={"amount": 100})
    assert res.status_code == 404
    assert res.json() == {"error": "Goal not found"}
    assert client.delete(f"/goals/{other_user_id}/{goal['id']}").status_code == 404
    assert client.delete(f"/goals/{user_id}/{goal['id']}").status_code == 200
    assert client.get(f"/goals/{user_id}").json() == []


# -----------------------------
# Predictions
# -----------------------------
def test_prediction_needs_expenses(client, user_id):
    res = client.post(f"/predictions/generate/{user_id}")
    assert res.status_code == 400
    assert res.json() == {"error": "Not enough expense data to generate prediction"}


def test_prediction_from_linear_trend(client, user_id):
    add_expense(client, user_id, name="Rent", amount=100000, category="housing", date="2026-08-05T10:00:00")
    add_expense(client, user_id, name="Rent", amount=200000, category="housing", date="2026-09-05T10:00:00")
    add_expense(client, user_id, name="Lunch", amount=5000, category="food_and_drinks")

    res = client.post(f"/predictions/generate/{user_id}")
    assert res.status_code == 200
    prediction = res.json()
    assert prediction["month"] == "2026-11"
    # finished months only: 1000 then 2000 rupees
    assert prediction["predicted_amount"] == 300000
    assert prediction["categories"] == {"housing": 150000}

    # regenerating replaces the month's prediction
    client.post(f"/predictions/generate/{user_id}")
    assert len(client.get(f"/predictions/{user_id}").json()) == 1


# -----------------------------
# Dashboard, reports and AI helpers
# -----------------------------
def test_dashboard_summary(client, user_id):
    add_expense(client, user_id, name="Concert", amount=40000, status="avoidable")
    add_expense(client, user_id, name="Rent", amount=100000, status="necessary", date="2026-09-05T10:00:00")
    client.post("/savings", json={"user_id": user_id, "amount": 2000, "source": "piggy_bank"})

    summary = client.get(f"/dashboard/summary/{user_id}").json()["summary"]
    assert summary["current_month_expenses"] == 40000
    assert summary["percentage_change"] == -60
    assert summary["monthly_change"] == -60000
    assert summary["savings_total"] == 2000
    assert summary["potential_weekly_savings"] == 10000


def test_monthly_report_defaults_to_current_month(client, user_id):
    add_expense(client, user_id, name="Shoes", amount=80000, status="unnecessary")
    add_expense(client, user_id, name="Groceries", amount=20000, status="necessary")

    report = client.get(f"/reports/monthly/{user_id}").json()
    assert (report["month_name"], report["year"], report["month"]) == ("October", 2026, 10)
    assert report["expenses"]["total"] == 100000
    assert report["expenses"]["by_category"][0]["category"] == "shopping"
    assert report["expenses"]["by_category"][0]["percentage"] == 80
    assert report["insights"]

    empty = client.get(f"/reports/monthly/{user_id}", params={"year": 2025, "month": 1}).json()
    assert empty["expenses"]["total"] == 0
    assert empty["expenses"]["change"] == 0


def test_ai_categorize(client):
    res = client.post("/ai/categorize", json={"expense_name": "Uber ride home"})
    assert res.json() == {"category": "transportation"}


def test_savings_tips(client, user_id):
    starter = client.get(f"/ai/savings-tips/{user_id}").json()["tips"]
    assert len(starter) == 3

    add_expense(client, user_id, name="Flight to Delhi", amount=900000, category="travel")
    tips = client.get(f"/ai/savings-tips/{user_id}").json()["tips"]
    assert len(tips) == 3
    assert tips[0].startswith("Book flights")


def test_deleting_and_re_adding_does_not_repeat_daily_award(client, user_id):
    first = add_expense(client, user_id).json()
    assert first["coins_awarded"] == 10

    assert client.delete(f"/expenses/{user_id}/{first['expense']['id']}").status_code == 200
    again = add_expense(client, user_id).json()
    assert (again["coins_awarded"], again["coins"]) == (0, 10)


@pytest.mark.parametrize("week_start", ["2026-10-05T00:00:00Z", "2026-10-05T05:30:00+05:30"])
def test_reconcile_accepts_timezone_aware_week_start(client, user_id, week_start):
    add_expense(client, user_id, name="Concert", amount=20000, status="avoidable", date="2026-10-07T12:00:00")
    client.post("/savings", json={"user_id": user_id, "amount": 10000, "source": "salary",
                                  "date": "2026-10-07T12:00:00"})

    res = client.post(f"/savings/weekly/reconcile/{user_id}", params={"week_start": week_start})
    assert res.status_code == 200
    assert res.json()["week_start"] == "2026-10-05T00:00:00"
    assert res.json()["coins_awarded"] == 100


def test_date_range_filters_accept_timezone_aware_bounds(client, user_id):
    add_expense(client, user_id, name="Late night", date="2026-09-30T20:00:00")
    add_expense(client, user_id, name="Morning", date="2026-09-30T10:00:00")
    client.post("/savings", json={"user_id": user_id, "amount": 500, "source": "salary",
                                  "date": "2026-09-30T20:00:00"})

    # midnight IST is 18:30 UTC the previous day
    params = {"start_date": "2026-10-01T00:00:00+05:30"}
    expenses = client.get(f"/expenses/{user_id}", params=params)
    assert expenses.status_code == 200
    assert [e["name"] for e in expenses.json()] == ["Late night"]

    savings = client.get(f"/savings/{user_id}", params=params)
    assert savings.status_code == 200
    assert len(savings.json()) == 1

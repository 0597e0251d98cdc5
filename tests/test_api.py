import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def signup_and_signin(client: TestClient, email: str) -> str:
    resp = client.post(
        "/api/auth/signup",
        json={"email": email, "password": "long enough", "fullName": "Test User"},
    )
    assert resp.status_code == 201
    resp = client.post("/api/auth/signin", json={"email": email, "password": "long enough"})
    assert resp.status_code == 200
    return resp.json()["token"]


def test_healthz(client: TestClient) -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_signup_requires_all_fields(client: TestClient) -> None:
    resp = client.post("/api/auth/signup", json={"email": "a@example.com"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email, password, and full name are required"}

    resp = client.post(
        "/api/auth/signup",
        json={"email": "a@example.com", "password": "short", "fullName": "A"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Password must be between 8 and 72 characters"


def test_protected_routes_need_a_session(client: TestClient) -> None:
    for path in ("/api/budgets", "/api/categories", "/api/transactions", "/api/dashboard"):
        resp = client.get(path)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    resp = client.get("/api/budgets", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 401


def test_budget_flow_reports_warning_once_eighty_percent_is_spent(client: TestClient) -> None:
    token = signup_and_signin(client, "owner@example.com")
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/api/auth/me", headers=headers).json()
    assert me["email"] == "owner@example.com"
    assert me["fullName"] == "Test User"
    assert "full_name" not in me

    resp = client.post("/api/categories", json={"name": "Food"}, headers=headers)
    assert resp.status_code == 201
    category_id = resp.json()["id"]

    resp = client.post(
        "/api/budgets",
        json={"category_id": category_id, "amount": 1000000, "month": "2024-03"},
        headers=headers,
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["month"] == "2024-03"
    assert created["amount"] == 1000000
    assert created["owner_id"] == me["id"]

    for amount, day in ((500000, "2024-03-05"), (350000, "2024-03-31"), (90000, "2024-04-01")):
        resp = client.post(
            "/api/transactions",
            json={
                "category_id": category_id,
                "amount": amount,
                "description": "Groceries",
                "date": day,
                "type": "expense",
            },
            headers=headers,
        )
        assert resp.status_code == 201

    resp = client.get("/api/budgets", params={"month": "2024-03"}, headers=headers)
    assert resp.status_code == 200
    [view] = resp.json()
    assert view["spent"] == 850000
    assert view["percentage"] == 85
    assert view["status"] == "WARNING"
    assert view["category"]["name"] == "Food"

    resp = client.post(
        "/api/budgets",
        json={"category_id": category_id, "amount": 5, "month": "2024-03"},
        headers=headers,
    )
    assert resp.status_code == 409
    assert resp.json() == {"error": "Budget already exists for this category in this month"}


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"amount": 10, "month": "2024-03"}, "Missing required fields: category_id, amount, month"),
        ({"category_id": 1, "amount": "ten", "month": "2024-03"}, "Amount must be a positive number"),
        ({"category_id": 1, "amount": 0, "month": "2024-03"}, "Amount must be a positive number"),
        ({"category_id": 1, "amount": 10, "month": "2024-3"}, "Month must be in YYYY-MM format"),
        ({"category_id": 1, "amount": 10, "month": "2024-13"}, "Month must be in YYYY-MM format"),
        ({"category_id": 999, "amount": 10, "month": "2024-03"}, "Category not found or invalid"),
    ],
)
def test_create_budget_rejects_bad_input(client: TestClient, payload: dict, message: str) -> None:
    signup_and_signin(client, "owner@example.com")
    client.post("/api/categories", json={"name": "Food"})

    resp = client.post("/api/budgets", json=payload)

    assert resp.status_code == 400
    assert resp.json() == {"error": message}


def test_budget_delete_is_limited_to_its_owner(client: TestClient) -> None:
    owner = {"Authorization": f"Bearer {signup_and_signin(client, 'owner@example.com')}"}
    other = {"Authorization": f"Bearer {signup_and_signin(client, 'other@example.com')}"}

    category_id = client.post("/api/categories", json={"name": "Rent"}, headers=owner).json()["id"]
    budget_id = client.post(
        "/api/budgets",
        json={"category_id": category_id, "amount": 1200, "month": "2024-05"},
        headers=owner,
    ).json()["id"]

    resp = client.delete(f"/api/budgets/{budget_id}", headers=other)
    assert resp.status_code == 403
    assert client.get("/api/budgets", headers=other).json() == []

    resp = client.delete(f"/api/budgets/{budget_id}", headers=owner)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Budget deleted successfully"}

    resp = client.delete(f"/api/budgets/{budget_id}", headers=owner)
    assert resp.status_code == 404


def test_signout_revokes_the_cookie_session(client: TestClient) -> None:
    token = signup_and_signin(client, "owner@example.com")
    assert client.get("/api/categories").status_code == 200

    resp = client.post("/api/auth/signout")
    assert resp.status_code == 200

    client.cookies.clear()
    assert client.get("/api/categories").status_code == 401
    resp = client.get("/api/categories", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_dashboard_summarises_transactions(client: TestClient) -> None:
    signup_and_signin(client, "owner@example.com")
    category_id = client.post("/api/categories", json={"name": "Salary"}).json()["id"]
    client.post(
        "/api/transactions",
        json={
            "category_id": category_id,
            "amount": 100,
            "description": "Pay",
            "date": "2024-03-01",
            "type": "income",
        },
    )
    client.post(
        "/api/transactions",
        json={
            "category_id": category_id,
            "amount": 40,
            "description": "Fee",
            "date": "2024-03-02",
            "type": "expense",
        },
    )

    resp = client.get("/api/dashboard", params={"range": "all"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["range"] == "all"
    assert body["stats"] == {"income": 100, "expenses": 40, "balance": 60}
    assert set(body) == {"range", "stats", "byCategory", "daily"}
    assert body["byCategory"] == [{"name": "Salary", "value": 40}]
    assert [d["date"] for d in body["daily"]] == ["2024-03-01", "2024-03-02"]

    resp = client.get("/api/transactions", params={"type": "income"})
    assert [t["description"] for t in resp.json()] == ["Pay"]

    resp = client.get("/api/dashboard", params={"range": "decade"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Range must be one of: week, month, all"}

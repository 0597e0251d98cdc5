import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db, init_db
from errors import TrackerError, ValidationError
from identity import IdentityProvider
from models import TransactionType
from schemas import (
    BudgetOut,
    BudgetView,
    CategoryIn,
    CategoryOut,
    DashboardOut,
    SignInIn,
    SignUpIn,
    TransactionIn,
    TransactionOut,
    UserOut,
    describe_validation_error,
)
from services import (
    BudgetService,
    CategoryService,
    DashboardService,
    TransactionService,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Tracker")

SESSION_COOKIE = "session"
SIGNUP_FIELD_ERRORS = {
    "email": "Email address is invalid",
    "password": "Password must be between 8 and 72 characters",
    "fullName": "Full name must be at most 120 characters",
}


def configure_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@app.on_event("startup")
def startup_event():
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db()
    logger.info("startup: database ready")


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    if not exc.public:
        logger.error(f"request_failed: path={request.url.path} error={exc.message}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"store_error: path={request.url.path}", exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    return JSONResponse({"error": f"{field}: {message}"}, status_code=400)


async def read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_payload(
    schema: type[BaseModel], body: dict, messages: Optional[dict[str, str]] = None
):
    try:
        return schema.model_validate(body)
    except SchemaValidationError as exc:
        raise ValidationError(describe_validation_error(exc, messages)) from exc


def session_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


def current_user_id(request: Request, db: Session = Depends(get_db)) -> str:
    return IdentityProvider(db).get_current_user(session_token(request))


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
    )


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.post("/api/auth/signup", status_code=201)
async def signup(request: Request, db: Session = Depends(get_db)):
    body = await read_json(request)
    if not body.get("email") or not body.get("password") or not body.get("fullName"):
        raise ValidationError("Email, password, and full name are required")
    data = parse_payload(SignUpIn, body, SIGNUP_FIELD_ERRORS)
    account = IdentityProvider(db).sign_up(data)
    return {
        "success": True,
        "message": "Signup successful.",
        "user": {"id": account.id, "email": account.email},
    }


@app.post("/api/auth/signin")
async def signin(request: Request, response: Response, db: Session = Depends(get_db)):
    body = await read_json(request)
    data = parse_payload(SignInIn, body)
    provider = IdentityProvider(db)
    token = provider.sign_in(data)
    account = provider.get_account(provider.get_current_user(token))
    set_session_cookie(response, token)
    return {"token": token, "user": {"id": account.id, "email": account.email}}


@app.post("/api/auth/refresh")
def refresh_session(request: Request, response: Response, db: Session = Depends(get_db)):
    token = IdentityProvider(db).refresh(session_token(request))
    set_session_cookie(response, token)
    return {"token": token}


@app.post("/api/auth/signout")
def signout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    IdentityProvider(db).sign_out(session_token(request))
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}


@app.get("/api/auth/me", response_model=UserOut)
def me(db: Session = Depends(get_db), user_id: str = Depends(current_user_id)):
    account = IdentityProvider(db).get_account(user_id)
    full_name = account.profile.full_name if account.profile else None
    return UserOut(id=account.id, email=account.email, full_name=full_name)


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    db: Session = Depends(get_db), user_id: str = Depends(current_user_id)
):
    return CategoryService(db).list(user_id)


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
async def create_category(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    data = parse_payload(CategoryIn, await read_json(request))
    return CategoryService(db).create(user_id, data)


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    CategoryService(db).delete(user_id, category_id)
    return {"success": True, "message": "Category deleted successfully"}


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    type: Optional[TransactionType] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    return TransactionService(db).list(user_id, type)


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
async def create_transaction(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    data = parse_payload(TransactionIn, await read_json(request))
    return TransactionService(db).create(user_id, data)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    TransactionService(db).delete(user_id, transaction_id)
    return {"success": True, "message": "Transaction deleted successfully"}


@app.post("/api/budgets", response_model=BudgetOut, status_code=201)
async def create_budget(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    body = await read_json(request)
    return BudgetService(db).create(
        user_id, body.get("category_id"), body.get("amount"), body.get("month")
    )


@app.get("/api/budgets", response_model=list[BudgetView])
def list_budgets(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    return BudgetService(db).list(user_id, month)


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    BudgetService(db).delete(user_id, budget_id)
    return {"success": True, "message": "Budget deleted successfully"}


@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(
    range: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    summary = DashboardService(db).summary(user_id, range or "month")
    return DashboardOut.model_validate(summary, from_attributes=True)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()

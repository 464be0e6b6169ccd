import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from analytics import AggregationSummary, BudgetReport
from auth import generate_auth_token, validate_auth_token
from categories import display_label, parse_category
from database import SessionLocal, store_reachable
from errors import (
    AuthError,
    ConflictError,
    InvalidBudget,
    NotFound,
    StoreUnavailable,
    ValidationError,
)
from models import Budget, Category, Transaction, User
from money import cents_to_decimal
from notifications import Notification
from periods import resolve_window
from schemas import (
    AvatarIn,
    BudgetIn,
    LoginIn,
    TransactionIn,
    TransactionQueryIn,
    TransactionUpdateIn,
    UserRegisterIn,
)
from services import (
    BudgetService,
    DashboardService,
    TransactionService,
    UserService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="FinanceFlow")


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_user_id(request: Request) -> int:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Missing auth token")
    user_id = validate_auth_token(token.strip())
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid auth token")
    return user_id


def _error(status_code: int, message: str, field: Optional[str] = None) -> JSONResponse:
    payload: dict[str, object] = {"success": False, "message": message}
    if field:
        payload["field"] = field
    return JSONResponse(status_code=status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = loc[-1] if loc else None
    cause = (first.get("ctx") or {}).get("error")
    if isinstance(cause, ValidationError):
        return _error(400, cause.message, cause.field)
    message = str(first.get("msg", "Invalid request"))
    return _error(400, f"{field}: {message}" if field else message, field)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error(400, exc.message, exc.field)


@app.exception_handler(InvalidBudget)
async def invalid_budget_handler(request: Request, exc: InvalidBudget):
    return _error(400, str(exc), "amount")


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error(404, str(exc))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return _error(401, str(exc))


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, str(exc))


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"store_unavailable: path={request.url.path} error={exc}")
    return _error(503, "Storage is temporarily unavailable")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


def user_payload(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "isAvatarImageSet": user.is_avatar_image_set,
        "avatarImage": user.avatar_image,
    }


def transaction_payload(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "userId": txn.user_id,
        "title": txn.title,
        "amount": str(cents_to_decimal(txn.amount_cents)),
        "amount_cents": txn.amount_cents,
        "category": txn.category.value,
        "categoryLabel": display_label(txn.category),
        "transactionType": txn.transaction_type.value,
        "date": txn.date.isoformat(),
        "description": txn.description,
    }


def budget_payload(budget: Budget) -> dict[str, object]:
    return {
        "category": budget.category.value,
        "categoryLabel": display_label(budget.category),
        "amount_cents": budget.amount_cents,
    }


def _totals_payload(totals) -> dict[str, int]:
    return {category.value: cents for category, cents in totals.items()}


def summary_payload(summary: AggregationSummary) -> dict[str, object]:
    return {
        "total_income_cents": summary.total_income_cents,
        "total_expenses_cents": summary.total_expenses_cents,
        "balance_cents": summary.balance_cents,
        "top_category": summary.top_category.value if summary.top_category else None,
        "average_expense_cents": summary.average_expense_cents,
        "this_month_spending_cents": summary.this_month_spending_cents,
        "last_month_spending_cents": summary.last_month_spending_cents,
        "spending_trend": {
            "direction": summary.spending_trend.direction.value,
            "percentage": str(summary.spending_trend.percentage),
        },
        "transaction_count": summary.transaction_count,
        "expense_count": summary.expense_count,
    }


def budget_report_payload(report: BudgetReport) -> dict[str, object]:
    return {
        "categories": {
            category.value: {
                "spent_cents": line.spent_cents,
                "budget_cents": line.budget_cents,
                "remaining_cents": line.remaining_cents,
                "percentage": str(line.rounded_percentage),
                "status": line.status.value,
                "exceeded": line.exceeded,
            }
            for category, line in report.lines.items()
        },
        "rejected": [
            {
                "category": getattr(item.category, "value", item.category),
                "amount_cents": item.amount_cents,
                "message": str(item),
            }
            for item in report.rejected
        ],
        "total_budget_cents": report.total_budget_cents,
        "total_spent_cents": report.total_spent_cents,
        "overall_percentage": str(report.overall_percentage),
    }


def notification_payload(notification: Notification) -> dict[str, object]:
    return {
        "id": notification.id,
        "type": notification.severity.value,
        "title": notification.title,
        "message": notification.message,
        "timestamp": notification.timestamp.isoformat(),
        "category": notification.tag.value,
    }


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    database_ok = store_reachable(db)
    if not database_ok:
        logger.warning("health_check: database unreachable")
    return {
        "status": "OK" if database_ok else "DEGRADED",
        "version": APP_VERSION,
        "databaseConnected": database_ok,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/api/auth/register")
def register(data: UserRegisterIn, db: Session = Depends(get_db)):
    user = UserService(db).register(data)
    return {
        "success": True,
        "message": "User Created Successfully",
        "user": user_payload(user),
    }


@app.post("/api/auth/login")
def login(data: LoginIn, db: Session = Depends(get_db)):
    user = UserService(db).authenticate(data.email, data.password)
    return {
        "success": True,
        "message": f"Welcome back, {user.name}",
        "user": user_payload(user),
        "token": generate_auth_token(user.id),
    }


@app.post("/api/auth/setAvatar")
def set_avatar(
    data: AvatarIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    user = UserService(db).set_avatar(user_id, data.image)
    return {"isSet": user.is_avatar_image_set, "image": user.avatar_image}


@app.get("/api/auth/users")
def list_users(db: Session = Depends(get_db), user_id: int = Depends(current_user_id)):
    users = UserService(db).list_others(user_id)
    return [user_payload(user) for user in users]


@app.post("/api/v1/addTransaction")
def add_transaction(
    data: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    txn = TransactionService(db, user_id).create(data)
    return {
        "success": True,
        "message": "Transaction Added Successfully",
        "transaction": transaction_payload(txn),
    }


@app.post("/api/v1/getTransaction")
def get_transactions(
    data: TransactionQueryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    window = resolve_window(data.frequency, data.start_date, data.end_date)
    transactions = TransactionService(db, user_id).query(window, data.type)
    return {
        "success": True,
        "transactions": [transaction_payload(txn) for txn in transactions],
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
    }


@app.put("/api/v1/updateTransaction/{transaction_id}")
def update_transaction(
    transaction_id: int,
    data: TransactionUpdateIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    txn = TransactionService(db, user_id).update(transaction_id, data)
    return {
        "success": True,
        "message": "Transaction Updated Successfully",
        "transaction": transaction_payload(txn),
    }


@app.delete("/api/v1/deleteTransaction/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    TransactionService(db, user_id).delete(transaction_id)
    return {"success": True, "message": "Transaction Deleted Successfully"}


@app.get("/api/v1/budgets")
def list_budgets(db: Session = Depends(get_db), user_id: int = Depends(current_user_id)):
    budgets = BudgetService(db, user_id).list_all()
    return {"success": True, "budgets": [budget_payload(b) for b in budgets]}


@app.put("/api/v1/budgets")
def upsert_budget(
    data: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    budget = BudgetService(db, user_id).upsert(data)
    return {"success": True, "budget": budget_payload(budget)}


@app.delete("/api/v1/budgets/{category}")
def delete_budget(
    category: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    parsed: Category = parse_category(category)
    BudgetService(db, user_id).delete(parsed)
    return {"success": True, "message": "Budget Removed"}


@app.post("/api/v1/dashboard")
def dashboard(
    data: TransactionQueryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    window = resolve_window(data.frequency, data.start_date, data.end_date)
    result = DashboardService(db, user_id).build(window, data.type)
    return {
        "success": True,
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "generated_at": result.generated_at.isoformat(),
        "summary": summary_payload(result.summary),
        "category_totals": _totals_payload(result.summary.category_totals),
        "month_category_totals": _totals_payload(result.month_category_totals),
        "budgets": budget_report_payload(result.budget_report),
        "notifications": [notification_payload(n) for n in result.notifications],
    }

import logging
from datetime import date, datetime
from decimal import Decimal

import bcrypt
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from backend import analytics, record_store
from backend.config import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, FRONTEND_ORIGIN, SYSTEM_DEFAULT_CURRENCY
from backend.database import init_db, transaction, users
from backend.errors import NotFoundError, StoreError, ValidationError
from backend.filter_builder import (
    EXPENSE_FILTER_CHOICES,
    SAVINGS_FILTER_CHOICES,
    FilterCriteria,
    build_predicate,
)
from backend.logging_config import setup_logging
from backend.pagination import PageWindow
from backend.records import (
    ExpenseCategory,
    ExpenseSortField,
    SavingsCategory,
    SavingsSortField,
    SavingsType,
    SortOrder,
)
from backend.schemas import (
    BulkDeleteResponse,
    CategoriesResponse,
    CategoryTrendsResponse,
    CredentialsPayload,
    DeletedCount,
    ExpenseBulkDeletePayload,
    ExpenseEnvelope,
    ExpenseListResponse,
    ExpensePayload,
    ExpenseResponse,
    MessageResponse,
    MonthlyTrendsResponse,
    OverviewResponse,
    PaginationResponse,
    PieChartResponse,
    SavingsBulkDeletePayload,
    SavingsCollectionResponse,
    SavingsEnvelope,
    SavingsGoalListResponse,
    SavingsListResponse,
    SavingsPayload,
    SavingsResponse,
    SummaryResponse,
    UserResponse,
    UserSettingsPayload,
)

logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

REQUEST_LOCATIONS = {"body", "query", "path", "header"}


@app.on_event("startup")
def startup() -> None:
    setup_logging()
    init_db()


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    content = {"success": False, "message": exc.message}
    if exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in REQUEST_LOCATIONS]
        errors.append({"field": ".".join(location), "message": error.get("msg", "Invalid value.")})
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "message": exc.message})


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error."})


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_user_id(x_user_id: str | None) -> int:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user identity.") from exc
    with transaction() as conn:
        result = conn.execute(select(users.c.id).where(users.c.id == user_id))
        if not result.first():
            raise HTTPException(status_code=401, detail="User not found.")
    return user_id


def build_criteria(
    start_date: datetime | date | None = None,
    end_date: datetime | date | None = None,
    category: str | None = None,
    type: str | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    payment_method: str | None = None,
    currency: str | None = None,
) -> FilterCriteria:
    return FilterCriteria(
        start_date=calendar_date(start_date),
        end_date=calendar_date(end_date),
        category=category or None,
        type=type or None,
        min_amount=min_amount,
        max_amount=max_amount,
        payment_method=payment_method or None,
        currency=currency or None,
    )


def calendar_date(value: datetime | date | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def pagination_response(window: PageWindow) -> PaginationResponse:
    return PaginationResponse.model_validate(window.as_response())


def user_response(row) -> UserResponse:
    return UserResponse(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        currency=row["currency"],
        timezone=row["timezone"],
        created_at=row["created_at"],
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/auth/signup", response_model=UserResponse, status_code=201)
def signup(payload: CredentialsPayload) -> UserResponse:
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise ValidationError("Email and password required.", field="email")
    if len(payload.password) < 6:
        raise ValidationError("Password must be at least 6 characters long.", field="password")
    hashed_password = hash_password(payload.password)

    with transaction() as conn:
        existing = conn.execute(select(users.c.id).where(users.c.email == email)).first()
        if existing:
            raise HTTPException(status_code=409, detail="Email already exists.")
        try:
            row = conn.execute(
                insert(users)
                .values(
                    email=email,
                    hashed_password=hashed_password,
                    first_name=payload.first_name.strip() if payload.first_name else None,
                    last_name=payload.last_name.strip() if payload.last_name else None,
                    currency=SYSTEM_DEFAULT_CURRENCY,
                    timezone="UTC",
                )
                .returning(*users.c)
            ).mappings().first()
        except IntegrityError as exc:
            raise HTTPException(status_code=409, detail="Email already exists.") from exc
    logger.info("Registered user %s", row["id"])
    return user_response(row)


@app.post("/auth/login", response_model=UserResponse)
def login(payload: CredentialsPayload) -> UserResponse:
    email = payload.email.strip().lower()
    with transaction() as conn:
        row = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return user_response(row)


@app.get("/users/me/settings", response_model=UserResponse)
def get_user_settings(x_user_id: str | None = Header(None, alias="x-user-id")) -> UserResponse:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    return user_response(row)


@app.put("/users/me/settings", response_model=UserResponse)
def update_user_settings(
    payload: UserSettingsPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> UserResponse:
    user_id = get_user_id(x_user_id)
    payload = UserSettingsPayload.validate_payload(payload)
    changes = {
        key: value
        for key, value in {"currency": payload.currency, "timezone": payload.timezone}.items()
        if value is not None
    }
    with transaction() as conn:
        if changes:
            conn.execute(update(users).where(users.c.id == user_id).values(**changes))
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    return user_response(row)


@app.get("/expenses/categories", response_model=CategoriesResponse)
def list_expense_categories(x_user_id: str | None = Header(None, alias="x-user-id")) -> CategoriesResponse:
    get_user_id(x_user_id)
    return CategoriesResponse(data=list(ExpenseCategory.values))


@app.get("/expenses/summary", response_model=SummaryResponse)
def expense_summary(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> SummaryResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date)
    with transaction() as conn:
        data = analytics.expense_summary(conn, user_id, criteria)
    return SummaryResponse(data=data)


@app.delete("/expenses/bulk", response_model=BulkDeleteResponse)
def bulk_delete_expenses(
    payload: ExpenseBulkDeletePayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> BulkDeleteResponse:
    user_id = get_user_id(x_user_id)
    if not payload.expense_ids:
        raise ValidationError(
            "Expense IDs array is required with at least one ID.", field="expenseIds"
        )
    with transaction() as conn:
        deleted = record_store.bulk_delete_expenses(conn, user_id, payload.expense_ids)
    return BulkDeleteResponse(
        message=f"Successfully deleted {deleted} expenses",
        data=DeletedCount(deleted_count=deleted),
    )


@app.post("/expenses", response_model=ExpenseEnvelope, status_code=201)
def create_expense(
    payload: ExpensePayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> ExpenseEnvelope:
    user_id = get_user_id(x_user_id)
    values = ExpensePayload.validate_payload(payload)
    with transaction() as conn:
        row = record_store.create_expense(conn, user_id, values)
    return ExpenseEnvelope(message="Expense created successfully", data=ExpenseResponse.from_row(row))


@app.get("/expenses", response_model=ExpenseListResponse)
def list_expenses(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    category: str | None = Query(None),
    min_amount: Decimal | None = Query(None, alias="minAmount"),
    max_amount: Decimal | None = Query(None, alias="maxAmount"),
    payment_method: str | None = Query(None, alias="paymentMethod"),
    currency: str | None = Query(None),
    sort_by: str = Query("date", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> ExpenseListResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(
        start_date=start_date,
        end_date=end_date,
        category=category,
        min_amount=min_amount,
        max_amount=max_amount,
        payment_method=payment_method,
        currency=currency,
    )
    predicate = build_predicate(user_id, criteria, EXPENSE_FILTER_CHOICES)
    sort_by = ExpenseSortField.validate(sort_by)
    sort_order = SortOrder.validate(sort_order)
    with transaction() as conn:
        rows, window = record_store.list_expenses(conn, predicate, sort_by, sort_order, page, limit)
    return ExpenseListResponse(
        data=[ExpenseResponse.from_row(row) for row in rows],
        pagination=pagination_response(window),
    )


@app.get("/expenses/{expense_id}", response_model=ExpenseEnvelope)
def get_expense(expense_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> ExpenseEnvelope:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        row = record_store.get_expense(conn, user_id, expense_id)
    return ExpenseEnvelope(data=ExpenseResponse.from_row(row))


@app.put("/expenses/{expense_id}", response_model=ExpenseEnvelope)
def update_expense(
    expense_id: int,
    payload: ExpensePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> ExpenseEnvelope:
    user_id = get_user_id(x_user_id)
    changes = ExpensePayload.validate_payload(payload, partial=True)
    with transaction() as conn:
        row = record_store.update_expense(conn, user_id, expense_id, changes)
    return ExpenseEnvelope(message="Expense updated successfully", data=ExpenseResponse.from_row(row))


@app.delete("/expenses/{expense_id}", response_model=MessageResponse)
def delete_expense(expense_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> MessageResponse:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        record_store.delete_expense(conn, user_id, expense_id)
    return MessageResponse(message="Expense deleted successfully")


@app.get("/savings/categories", response_model=CategoriesResponse)
def list_savings_categories(x_user_id: str | None = Header(None, alias="x-user-id")) -> CategoriesResponse:
    get_user_id(x_user_id)
    return CategoriesResponse(data=list(SavingsCategory.values))


@app.get("/savings/summary", response_model=SummaryResponse)
def savings_summary(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> SummaryResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date)
    with transaction() as conn:
        data = analytics.savings_summary(conn, user_id, criteria)
    return SummaryResponse(data=data)


@app.get("/savings/goals", response_model=SavingsGoalListResponse)
def list_savings_goals(x_user_id: str | None = Header(None, alias="x-user-id")) -> SavingsGoalListResponse:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        goals = analytics.savings_goals(conn, user_id, now=datetime.now())
    return SavingsGoalListResponse(data=goals)


@app.get("/savings/type/{savings_type}", response_model=SavingsCollectionResponse)
def list_savings_by_type(
    savings_type: str,
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> SavingsCollectionResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(
        start_date=start_date,
        end_date=end_date,
        type=SavingsType.validate(savings_type),
    )
    predicate = build_predicate(user_id, criteria, SAVINGS_FILTER_CHOICES)
    with transaction() as conn:
        rows = record_store.list_savings_by_predicate(conn, predicate)
    return SavingsCollectionResponse(data=[SavingsResponse.from_row(row) for row in rows])


@app.delete("/savings/bulk", response_model=BulkDeleteResponse)
def bulk_delete_savings(
    payload: SavingsBulkDeletePayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> BulkDeleteResponse:
    user_id = get_user_id(x_user_id)
    if not payload.savings_ids:
        raise ValidationError(
            "Savings IDs array is required with at least one ID.", field="savingsIds"
        )
    with transaction() as conn:
        deleted = record_store.bulk_delete_savings(conn, user_id, payload.savings_ids)
    return BulkDeleteResponse(
        message=f"Successfully deleted {deleted} savings entries",
        data=DeletedCount(deleted_count=deleted),
    )


@app.post("/savings", response_model=SavingsEnvelope, status_code=201)
def create_savings(
    payload: SavingsPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> SavingsEnvelope:
    user_id = get_user_id(x_user_id)
    values = SavingsPayload.validate_payload(payload)
    with transaction() as conn:
        row = record_store.create_savings(conn, user_id, values)
    return SavingsEnvelope(message="Savings entry created successfully", data=SavingsResponse.from_row(row))


@app.get("/savings", response_model=SavingsListResponse)
def list_savings(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    type: str | None = Query(None),
    category: str | None = Query(None),
    min_amount: Decimal | None = Query(None, alias="minAmount"),
    max_amount: Decimal | None = Query(None, alias="maxAmount"),
    currency: str | None = Query(None),
    sort_by: str = Query("date", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> SavingsListResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(
        start_date=start_date,
        end_date=end_date,
        type=type,
        category=category,
        min_amount=min_amount,
        max_amount=max_amount,
        currency=currency,
    )
    predicate = build_predicate(user_id, criteria, SAVINGS_FILTER_CHOICES)
    sort_by = SavingsSortField.validate(sort_by)
    sort_order = SortOrder.validate(sort_order)
    with transaction() as conn:
        rows, window = record_store.list_savings(conn, predicate, sort_by, sort_order, page, limit)
    return SavingsListResponse(
        data=[SavingsResponse.from_row(row) for row in rows],
        pagination=pagination_response(window),
    )


@app.get("/savings/{savings_id}", response_model=SavingsEnvelope)
def get_savings(savings_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> SavingsEnvelope:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        row = record_store.get_savings(conn, user_id, savings_id)
    return SavingsEnvelope(data=SavingsResponse.from_row(row))


@app.put("/savings/{savings_id}", response_model=SavingsEnvelope)
def update_savings(
    savings_id: int,
    payload: SavingsPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> SavingsEnvelope:
    user_id = get_user_id(x_user_id)
    changes = SavingsPayload.validate_payload(payload, partial=True)
    with transaction() as conn:
        row = record_store.update_savings(conn, user_id, savings_id, changes)
    return SavingsEnvelope(message="Savings entry updated successfully", data=SavingsResponse.from_row(row))


@app.delete("/savings/{savings_id}", response_model=MessageResponse)
def delete_savings(savings_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> MessageResponse:
    user_id = get_user_id(x_user_id)
    with transaction() as conn:
        record_store.delete_savings(conn, user_id, savings_id)
    return MessageResponse(message="Savings entry deleted successfully")


@app.get("/analytics/expenses/pie-chart", response_model=PieChartResponse)
def expense_pie_chart(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PieChartResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date, currency=currency)
    with transaction() as conn:
        data = analytics.expense_pie_chart(conn, user_id, criteria)
    return PieChartResponse(data=data)


@app.get("/analytics/savings/pie-chart", response_model=PieChartResponse)
def savings_pie_chart(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PieChartResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date, currency=currency)
    with transaction() as conn:
        data = analytics.savings_pie_chart(conn, user_id, criteria)
    return PieChartResponse(data=data)


@app.get("/analytics/overview", response_model=OverviewResponse)
def financial_overview(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> OverviewResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date, currency=currency)
    with transaction() as conn:
        data = analytics.financial_overview(conn, user_id, criteria)
    return OverviewResponse(data=data)


@app.get("/analytics/trends/monthly", response_model=MonthlyTrendsResponse)
def monthly_trends(
    year: int | None = Query(None),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> MonthlyTrendsResponse:
    user_id = get_user_id(x_user_id)
    if year is None:
        year = date.today().year
    with transaction() as conn:
        data = analytics.monthly_trends(conn, user_id, year, currency or None)
    return MonthlyTrendsResponse(data=data)


@app.get("/analytics/expenses/category-trends", response_model=CategoryTrendsResponse)
def expense_category_trends(
    start_date: datetime | date | None = Query(None, alias="startDate"),
    end_date: datetime | date | None = Query(None, alias="endDate"),
    group_by: str = Query("month", alias="groupBy"),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> CategoryTrendsResponse:
    user_id = get_user_id(x_user_id)
    criteria = build_criteria(start_date=start_date, end_date=end_date, currency=currency)
    with transaction() as conn:
        data = analytics.expense_category_trends(conn, user_id, criteria, group_by)
    return CategoryTrendsResponse(data=data)

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.derived_metrics import duration_days, goal_progress_percentage
from backend.errors import ValidationError
from backend.presentation import format_amount
from backend.records import (
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_RECURRING_FREQUENCY,
    DEFAULT_SAVINGS_SOURCE,
    DESCRIPTION_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    SUBCATEGORY_MAX_LENGTH,
    Currency,
    ExpenseCategory,
    PaymentMethod,
    RecurringFrequency,
    SavingsCategory,
    SavingsSource,
    SavingsType,
    clean_tags,
    clean_text,
)

MIN_EXPENSE_AMOUNT = Decimal("0.01")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsPayload(ApiModel):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None


class UserResponse(ApiModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    currency: str
    timezone: str
    created_at: datetime | None = None


class UserSettingsPayload(ApiModel):
    currency: str | None = None
    timezone: str | None = None

    @classmethod
    def validate_payload(cls, payload: "UserSettingsPayload") -> "UserSettingsPayload":
        payload.currency = Currency.validate_optional(payload.currency)
        if payload.timezone is not None:
            name = payload.timezone.strip()
            try:
                ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValidationError("Invalid timezone.", field="timezone") from exc
            payload.timezone = name
        return payload


class ReceiptPayload(ApiModel):
    url: str | None = None
    filename: str | None = None
    uploaded_at: datetime | None = None


class ReceiptResponse(ReceiptPayload):
    pass


class ExpensePayload(ApiModel):
    amount: Decimal | None = None
    currency: str | None = None
    category: str | None = None
    subcategory: str | None = None
    description: str | None = None
    date: dt.date | None = None
    payment_method: str | None = None
    location: str | None = None
    is_recurring: bool | None = None
    recurring_frequency: str | None = None
    tags: list[str] | None = None
    receipt: ReceiptPayload | None = None
    notes: str | None = None

    @classmethod
    def validate_payload(cls, payload: "ExpensePayload", partial: bool = False) -> dict:
        """Check the payload and return the column values it sets.

        With ``partial`` only the fields present in the request are returned.
        """
        provided = payload.model_fields_set
        errors: list[dict] = []
        values: dict = {}

        def check(field: str, column: str, func) -> None:
            if partial and field not in provided:
                return
            try:
                values[column] = func(getattr(payload, field))
            except ValidationError as exc:
                errors.extend(exc.errors)

        check("amount", "amount", _expense_amount)
        check("category", "category", lambda value: ExpenseCategory.validate(_required(value, "category")))
        check("currency", "currency", Currency.validate_optional)
        check("subcategory", "subcategory", lambda value: clean_text(value, "subcategory", SUBCATEGORY_MAX_LENGTH))
        check("description", "description", lambda value: clean_text(value, "description", DESCRIPTION_MAX_LENGTH))
        check("location", "location", lambda value: clean_text(value, "location", LOCATION_MAX_LENGTH))
        check("notes", "notes", lambda value: clean_text(value, "notes", NOTES_MAX_LENGTH))
        check(
            "payment_method",
            "payment_method",
            lambda value: PaymentMethod.validate(value or DEFAULT_PAYMENT_METHOD),
        )
        check(
            "recurring_frequency",
            "recurring_frequency",
            lambda value: RecurringFrequency.validate(value or DEFAULT_RECURRING_FREQUENCY),
        )
        check("is_recurring", "is_recurring", bool)
        check("tags", "tags", clean_tags)
        if not partial or "date" in provided:
            if payload.date is not None:
                values["date"] = payload.date
            elif partial:
                errors.append({"field": "date", "message": "Date cannot be empty."})
        if not partial or "receipt" in provided:
            receipt = payload.receipt
            values["receipt_url"] = receipt.url if receipt else None
            values["receipt_filename"] = receipt.filename if receipt else None
            values["receipt_uploaded_at"] = receipt.uploaded_at if receipt else None

        if partial and "currency" in provided and values.get("currency") is None:
            values.pop("currency", None)
        if errors:
            raise ValidationError("Validation failed", errors=errors)
        return values


class ExpenseResponse(ApiModel):
    id: int
    user_id: int
    amount: Decimal
    currency: str
    category: str
    subcategory: str | None = None
    description: str | None = None
    date: date
    payment_method: str
    location: str | None = None
    is_recurring: bool
    recurring_frequency: str
    tags: list[str]
    receipt: ReceiptResponse | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    formatted_amount: str

    @classmethod
    def from_row(cls, row: dict) -> "ExpenseResponse":
        receipt = None
        if row.get("receipt_url") or row.get("receipt_filename"):
            receipt = ReceiptResponse(
                url=row.get("receipt_url"),
                filename=row.get("receipt_filename"),
                uploaded_at=row.get("receipt_uploaded_at"),
            )
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            amount=row["amount"],
            currency=row["currency"],
            category=row["category"],
            subcategory=row.get("subcategory"),
            description=row.get("description"),
            date=row["date"],
            payment_method=row["payment_method"],
            location=row.get("location"),
            is_recurring=bool(row["is_recurring"]),
            recurring_frequency=row["recurring_frequency"],
            tags=list(row.get("tags") or []),
            receipt=receipt,
            notes=row.get("notes"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            formatted_amount=format_amount(row["amount"], row["currency"]),
        )


class PeriodPayload(ApiModel):
    start_date: date
    end_date: date


class GoalPayload(ApiModel):
    target_amount: Decimal | None = None
    target_date: date | None = None


class SavingsPayload(ApiModel):
    amount: Decimal | None = None
    currency: str | None = None
    type: str | None = None
    category: str | None = None
    description: str | None = None
    date: dt.date | None = None
    period: PeriodPayload | None = None
    goal: GoalPayload | None = None
    source: str | None = None
    is_recurring: bool | None = None
    recurring_amount: Decimal | None = None
    recurring_frequency: str | None = None
    tags: list[str] | None = None
    notes: str | None = None
    is_active: bool | None = None

    @classmethod
    def validate_payload(cls, payload: "SavingsPayload", partial: bool = False) -> dict:
        provided = payload.model_fields_set
        errors: list[dict] = []
        values: dict = {}

        def check(field: str, column: str, func) -> None:
            if partial and field not in provided:
                return
            try:
                values[column] = func(getattr(payload, field))
            except ValidationError as exc:
                errors.extend(exc.errors)

        check("amount", "amount", _savings_amount)
        check("type", "type", lambda value: SavingsType.validate(_required(value, "type")))
        check("category", "category", lambda value: SavingsCategory.validate(_required(value, "category")))
        check("currency", "currency", Currency.validate_optional)
        check("description", "description", lambda value: clean_text(value, "description", DESCRIPTION_MAX_LENGTH))
        check("notes", "notes", lambda value: clean_text(value, "notes", NOTES_MAX_LENGTH))
        check("source", "source", lambda value: SavingsSource.validate(value or DEFAULT_SAVINGS_SOURCE))
        check(
            "recurring_frequency",
            "recurring_frequency",
            lambda value: RecurringFrequency.validate(value or DEFAULT_RECURRING_FREQUENCY),
        )
        check("recurring_amount", "recurring_amount", lambda value: _non_negative(value, "recurringAmount"))
        check("is_recurring", "is_recurring", bool)
        check("is_active", "is_active", lambda value: True if value is None else bool(value))
        check("tags", "tags", clean_tags)
        if not partial or "date" in provided:
            if payload.date is not None:
                values["date"] = payload.date
            elif partial:
                errors.append({"field": "date", "message": "Date cannot be empty."})
        if not partial or "period" in provided:
            if payload.period is None:
                errors.append({"field": "period", "message": "Start date and end date are required."})
            else:
                values["period_start_date"] = payload.period.start_date
                values["period_end_date"] = payload.period.end_date
        if "goal" in provided and payload.goal is not None:
            goal_fields = payload.goal.model_fields_set
            if not partial or "target_amount" in goal_fields:
                try:
                    values["goal_target_amount"] = _non_negative(
                        payload.goal.target_amount, "goal.targetAmount"
                    )
                except ValidationError as exc:
                    errors.extend(exc.errors)
            if not partial or "target_date" in goal_fields:
                values["goal_target_date"] = payload.goal.target_date
        elif "goal" in provided:
            values["goal_target_amount"] = None
            values["goal_target_date"] = None

        if partial and "currency" in provided and values.get("currency") is None:
            values.pop("currency", None)
        if errors:
            raise ValidationError("Validation failed", errors=errors)
        return values


class PeriodResponse(ApiModel):
    start_date: date
    end_date: date


class GoalResponse(ApiModel):
    target_amount: Decimal | None = None
    target_date: date | None = None
    is_completed: bool
    progress: Decimal


class SavingsResponse(ApiModel):
    id: int
    user_id: int
    amount: Decimal
    currency: str
    type: str
    category: str
    description: str | None = None
    date: date
    period: PeriodResponse
    goal: GoalResponse
    source: str
    is_recurring: bool
    recurring_amount: Decimal | None = None
    recurring_frequency: str
    tags: list[str]
    notes: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    formatted_amount: str
    duration_days: int
    goal_progress_percentage: Decimal

    @classmethod
    def row_fields(cls, row: dict) -> dict:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "amount": row["amount"],
            "currency": row["currency"],
            "type": row["type"],
            "category": row["category"],
            "description": row.get("description"),
            "date": row["date"],
            "period": PeriodResponse(
                start_date=row["period_start_date"], end_date=row["period_end_date"]
            ),
            "goal": GoalResponse(
                target_amount=row.get("goal_target_amount"),
                target_date=row.get("goal_target_date"),
                is_completed=bool(row.get("goal_is_completed")),
                progress=row.get("goal_progress") or Decimal("0"),
            ),
            "source": row["source"],
            "is_recurring": bool(row["is_recurring"]),
            "recurring_amount": row.get("recurring_amount"),
            "recurring_frequency": row["recurring_frequency"],
            "tags": list(row.get("tags") or []),
            "notes": row.get("notes"),
            "is_active": bool(row["is_active"]),
            "created_at": row.get("created_at"),
            "updated_at": row.get("updated_at"),
            "formatted_amount": format_amount(row["amount"], row["currency"]),
            "duration_days": duration_days(row["period_start_date"], row["period_end_date"]),
            "goal_progress_percentage": goal_progress_percentage(
                row["amount"], row.get("goal_target_amount")
            ),
        }

    @classmethod
    def from_row(cls, row: dict) -> "SavingsResponse":
        return cls(**cls.row_fields(row))


class SavingsGoalResponse(SavingsResponse):
    progress_percentage: Decimal
    remaining_amount: Decimal
    is_on_track: bool


class PaginationResponse(ApiModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class ExpenseListResponse(ApiModel):
    success: bool = True
    data: list[ExpenseResponse]
    pagination: PaginationResponse


class ExpenseEnvelope(ApiModel):
    success: bool = True
    message: str | None = None
    data: ExpenseResponse


class SavingsListResponse(ApiModel):
    success: bool = True
    data: list[SavingsResponse]
    pagination: PaginationResponse


class SavingsCollectionResponse(ApiModel):
    success: bool = True
    data: list[SavingsResponse]


class SavingsGoalListResponse(ApiModel):
    success: bool = True
    data: list[SavingsGoalResponse]


class SavingsEnvelope(ApiModel):
    success: bool = True
    message: str | None = None
    data: SavingsResponse


class MessageResponse(ApiModel):
    success: bool = True
    message: str


class ExpenseBulkDeletePayload(ApiModel):
    expense_ids: list[int]


class SavingsBulkDeletePayload(ApiModel):
    savings_ids: list[int]


class DeletedCount(ApiModel):
    deleted_count: int


class BulkDeleteResponse(ApiModel):
    success: bool = True
    message: str
    data: DeletedCount


class CategoriesResponse(ApiModel):
    success: bool = True
    data: list[str]


class PeriodEcho(ApiModel):
    start_date: date | None = None
    end_date: date | None = None


class SummaryEntry(ApiModel):
    key: str | None = None
    total: Decimal
    count: int
    average: Decimal


class SummaryData(ApiModel):
    summary: list[SummaryEntry]
    total: Decimal
    count: int
    period: PeriodEcho


class SummaryResponse(ApiModel):
    success: bool = True
    data: SummaryData


class PieSlice(ApiModel):
    key: str
    amount: Decimal
    count: int
    average: Decimal
    percentage: Decimal
    color: str


class PieChartData(ApiModel):
    pie_chart_data: list[PieSlice]
    total_amount: Decimal
    total_count: int
    period: PeriodEcho


class PieChartResponse(ApiModel):
    success: bool = True
    data: PieChartData


class OverviewFigures(ApiModel):
    total_expenses: Decimal
    total_savings: Decimal
    net_worth: Decimal
    savings_rate: Decimal


class TopGroup(ApiModel):
    key: str
    total: Decimal


class OverviewData(ApiModel):
    overview: OverviewFigures
    top_expense_categories: list[TopGroup]
    top_savings_types: list[TopGroup]
    period: PeriodEcho


class OverviewResponse(ApiModel):
    success: bool = True
    data: OverviewData


class MonthEntry(ApiModel):
    month: int
    month_name: str
    expenses: Decimal
    savings: Decimal
    net_worth: Decimal


class MonthlyTrendsData(ApiModel):
    year: int
    monthly_data: list[MonthEntry]
    total_expenses: Decimal
    total_savings: Decimal
    average_monthly_expenses: Decimal
    average_monthly_savings: Decimal


class MonthlyTrendsResponse(ApiModel):
    success: bool = True
    data: MonthlyTrendsData


class CategoryTrendEntry(ApiModel):
    period: str
    category: str
    total: Decimal
    count: int


class CategoryTrendsData(ApiModel):
    category_trends: list[CategoryTrendEntry]
    group_by: str
    period: PeriodEcho


class CategoryTrendsResponse(ApiModel):
    success: bool = True
    data: CategoryTrendsData


def _required(value, field: str):
    if value is None:
        raise ValidationError(f"{field} is required.", field=field)
    return value


def _expense_amount(value: Decimal | None) -> Decimal:
    amount = _required(value, "amount")
    if amount < MIN_EXPENSE_AMOUNT:
        raise ValidationError("Amount must be a positive number.", field="amount")
    return amount


def _savings_amount(value: Decimal | None) -> Decimal:
    amount = _required(value, "amount")
    if amount < 0:
        raise ValidationError("Amount must be zero or greater.", field="amount")
    return amount


def _non_negative(value: Decimal | None, field: str) -> Decimal | None:
    if value is None:
        return None
    if value < 0:
        raise ValidationError(f"{field} must be zero or greater.", field=field)
    return value

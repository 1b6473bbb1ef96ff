"""Request and response schemas for the billing API."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from waterbill.models.bill import PaymentStatus, VerificationStatus
from waterbill.models.billing_period import PeriodStatus
from waterbill.models.meter_reading import ReadingStatus
from waterbill.models.payment import PaymentMethod


class BillResponse(BaseModel):
    """Bill as returned after finalization or payment."""

    id: int
    customer_id: int
    period_id: int
    usage: int
    unit_rate: int
    base_fee: int
    admin_fee: int
    total: int
    late_fee: int
    due_date: date | None
    setting_version: int | None
    payment_status: PaymentStatus
    verification_status: VerificationStatus

    model_config = ConfigDict(from_attributes=True)


class ReadingResponse(BaseModel):
    id: int
    period_id: int
    customer_id: int
    start_reading: int
    end_reading: int | None
    usage: int
    total: int
    note: str | None
    status: ReadingStatus
    is_locked: bool

    model_config = ConfigDict(from_attributes=True)


class PeriodResponse(BaseModel):
    id: int
    period_key: str
    unit_rate: int
    base_fee: int
    status: PeriodStatus
    total_count: int
    completed_count: int
    pending_count: int
    finalized_at: datetime | None
    finalized_by: str | None

    model_config = ConfigDict(from_attributes=True)


class ProgressResponse(BaseModel):
    """Period progress; ``selesai`` counts DONE rows."""

    total: int
    selesai: int
    pending: int
    percent: int


class PeriodStatusResponse(BaseModel):
    ok: bool = True
    period: PeriodResponse | None
    progress: ProgressResponse
    rows: list[ReadingResponse]


class StartPeriodResponse(BaseModel):
    ok: bool = True
    period: PeriodResponse
    created: int
    skipped: int
    progress: ProgressResponse


class FinalizePeriodRequest(BaseModel):
    period_key: str
    finalized_by: str | None = None


class FinalizePeriodResponse(BaseModel):
    ok: bool = True
    locked: bool
    already_locked: bool = False
    period: PeriodResponse
    progress: ProgressResponse


class RecordReadingRequest(BaseModel):
    end_reading: int = Field(ge=0)
    note: str | None = None


class FinalizeRowRequest(BaseModel):
    row_id: int
    notify: bool = False


class FinalizeRowResponse(BaseModel):
    ok: bool = True
    locked: bool
    already_locked: bool = False
    bill: BillResponse | None


class PaymentRequest(BaseModel):
    bill_id: int
    amount: int
    payment_date: date | None = None
    method: str | None = PaymentMethod.CASH.value
    proof_url: str | None = None
    note: str | None = None


class PaymentResponse(BaseModel):
    id: int
    bill_id: int
    amount: int
    payment_date: date
    method: PaymentMethod
    proof_url: str | None
    recorded_by: str | None
    note: str | None

    model_config = ConfigDict(from_attributes=True)


class PaymentSubmitResponse(BaseModel):
    ok: bool = True
    payment: PaymentResponse
    bill: BillResponse
    amount_paid: int
    amount_due: int


class BalanceResponse(BaseModel):
    ok: bool = True
    bill: BillResponse
    amount_paid: int
    amount_due: int
    outstanding: int


class SettingResponse(BaseModel):
    version: int
    unit_rate: int
    base_fee: int
    admin_fee: int
    due_day: int
    late_fee_tier1: int
    late_fee_tier2: int
    company_name: str | None
    phone: str | None
    email: str | None
    address: str | None

    model_config = ConfigDict(from_attributes=True)


class SettingUpdateRequest(BaseModel):
    """Fields left out are carried over from the previous version."""

    unit_rate: int | None = None
    base_fee: int | None = None
    admin_fee: int | None = None
    due_day: int | None = None
    late_fee_tier1: int | None = None
    late_fee_tier2: int | None = None
    company_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None

from datetime import date

from pydantic import BaseModel, Field

from printshop.schemas.common import Currency, InvoiceType, PaymentMethod


class InvoiceItemCreate(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)
    discount: float = Field(default=0, ge=0, le=100)
    tax: float = Field(default=0, ge=0)

    model_config = {"allow_inf_nan": False}


class InvoiceCreate(BaseModel):
    project_id: str
    client_id: str
    invoice_type: InvoiceType = "final"
    items: list[InvoiceItemCreate] = []
    currency: Currency = "AED"
    due_date: date
    payment_terms: str = Field(default="Net 30", max_length=100)
    notes: str | None = Field(default=None, max_length=1000)


class PaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    method: PaymentMethod
    paid_on: date
    recorded_by: str
    currency: str | None = None
    reference: str | None = None
    notes: str | None = None

    model_config = {"allow_inf_nan": False}


class GatewayPayment(BaseModel):
    """Confirmed payment event delivered by the payment-gateway collaborator."""

    amount: float = Field(gt=0)
    currency: str
    external_reference: str = Field(alias="externalReference")

    model_config = {"populate_by_name": True, "allow_inf_nan": False}


class InvoiceItemResponse(BaseModel):
    id: str
    description: str
    quantity: float
    unit_price: float
    discount: float
    tax: float
    total: float

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: str
    amount: float
    paid_on: str
    method: str
    reference: str | None
    recorded_by: str

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    status: str
    effective_status: str
    currency: str
    items: list[InvoiceItemResponse] = []
    payments: list[PaymentResponse] = []
    subtotal: float
    discount_amount: float
    tax_amount: float
    total: float
    paid_amount: float
    balance: float
    is_overdue: bool
    due_date: str
    sent_at: str | None
    viewed_at: str | None
    paid_at: str | None

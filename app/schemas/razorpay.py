from pydantic import BaseModel

SUCCESSFUL_PAYMENT_STATUSES = {"captured", "authorized"}


class PaymentOrder(BaseModel):
    order_id: str
    key_id: str
    amount: int  # minor units (paise)
    currency: str
    receipt: str | None = None
    status: str | None = None  # "created" | "attempted" | "paid"
    notes: dict[str, str] = {}


class PaymentRecord(BaseModel):
    id: str
    status: str  # "created" | "authorized" | "captured" | "refunded" | "failed"
    order_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    method: str | None = None
    error_description: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.status in SUCCESSFUL_PAYMENT_STATUSES

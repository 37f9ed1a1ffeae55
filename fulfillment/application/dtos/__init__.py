"""Application DTOs."""
from .coupon_dto import CouponDTO, CreateCouponRequest, UpdateCouponRequest
from .order_dto import (
    AddressDTO,
    CancelOrderRequest,
    CreateOrderRequest,
    OrderDTO,
    OrderItemDTO,
    OrderLineRequest,
    OrderListDTO,
    UpdateStatusRequest,
)
from .payment_dto import (
    ChargeRequest,
    ConfirmPaymentRequest,
    PaymentOutcomeDTO,
    RefundRecordDTO,
    RefundRequest,
    TransactionDTO,
)
from .return_dto import (
    CreateReturnRequest,
    ReturnDecisionRequest,
    ReturnDTO,
    ReturnItemDTO,
    ReturnLineRequest,
)
from .stock_dto import OperatorAlertDTO, RestockRequest, StockLevelDTO

__all__ = [
    "AddressDTO",
    "CancelOrderRequest",
    "ChargeRequest",
    "ConfirmPaymentRequest",
    "CouponDTO",
    "CreateCouponRequest",
    "CreateOrderRequest",
    "CreateReturnRequest",
    "OperatorAlertDTO",
    "OrderDTO",
    "OrderItemDTO",
    "OrderLineRequest",
    "OrderListDTO",
    "PaymentOutcomeDTO",
    "RefundRecordDTO",
    "RefundRequest",
    "RestockRequest",
    "ReturnDTO",
    "ReturnDecisionRequest",
    "ReturnItemDTO",
    "ReturnLineRequest",
    "StockLevelDTO",
    "TransactionDTO",
    "UpdateCouponRequest",
    "UpdateStatusRequest",
]

"""
Error catalogues for the money, order and payment domain.

Each catalogue groups the Errors one part of the domain can report. Errors
that need context (an id, the attempted operation) are built by static
methods; the rest are shared class attributes.
"""

from storefront.domain.results import Error


class MoneyErrors:
    NEGATIVE_AMOUNT = Error.validation(
        code="Money.NegativeAmount",
        message="Money amount cannot be negative.",
    )
    INVALID_CURRENCY = Error.validation(
        code="Money.InvalidCurrency",
        message="Currency code cannot be empty.",
    )
    CURRENCY_MISMATCH = Error.validation(
        code="Money.CurrencyMismatch",
        message="Operations can only be performed on money values with the "
        "same currency.",
    )


class ProductSnapshotErrors:
    NAME_REQUIRED = Error.validation(
        code="ProductSnapshot.NameRequired",
        message="Product name is required for the order snapshot.",
    )
    INVALID_DATA = Error.validation(
        code="ProductSnapshot.InvalidData",
        message="Product snapshot data is missing or malformed.",
    )


class OrderErrors:
    NEGATIVE_AMOUNT = Error.validation(
        code="Order.NegativeAmount",
        message="Order amount cannot be negative.",
    )
    INVALID_AMOUNT = Error.validation(
        code="Order.InvalidAmount",
        message="Invalid order amount.",
    )
    CURRENCY_MISMATCH = Error.validation(
        code="Order.CurrencyMismatch",
        message="All order amounts must share the same currency.",
    )
    ORDER_REQUIRED = Error.validation(
        code="Order.OrderRequired",
        message="An order item must belong to an order.",
    )
    PRODUCT_ID_REQUIRED = Error.validation(
        code="Order.ProductIdRequired",
        message="Product ID is required.",
    )
    PRODUCT_SNAPSHOT_REQUIRED = Error.validation(
        code="Order.ProductSnapshotRequired",
        message="A product snapshot is required for every order item.",
    )
    INVALID_QUANTITY = Error.validation(
        code="Order.InvalidQuantity",
        message="Order item quantity must be positive.",
    )
    SHIPPING_ADDRESS_REQUIRED = Error.validation(
        code="Order.ShippingAddressRequired",
        message="Shipping address is required.",
    )
    PAYMENT_REQUIRED = Error.validation(
        code="Order.PaymentRequired",
        message="Payment must succeed before the order can be fulfilled.",
    )
    INVALID_METADATA_KEY = Error.validation(
        code="Order.InvalidMetadataKey",
        message="Metadata key cannot be empty.",
    )
    PAYMENT_METHOD_REQUIRED = Error.validation(
        code="Order.PaymentMethodRequired",
        message="Payment method ID cannot be empty.",
    )
    CANCEL_DENIED = Error.forbidden(
        code="Order.CancelDenied",
        message="You are not authorized to cancel this order.",
    )
    ACCESS_DENIED = Error.forbidden(
        code="Order.AccessDenied",
        message="You are not authorized to access this order.",
    )

    @staticmethod
    def invalid_status(operation: str) -> Error:
        return Error.validation(
            code="Order.InvalidStatus",
            message=f"Cannot {operation} with the current order status.",
        )

    @staticmethod
    def not_found(order_id: str) -> Error:
        return Error.not_found(
            code="Order.NotFound",
            message=f"Order with ID {order_id} was not found.",
        )

    @staticmethod
    def item_not_found(item_id: str) -> Error:
        return Error.not_found(
            code="Order.ItemNotFound",
            message=f"Order item with ID {item_id} was not found.",
        )

    @staticmethod
    def concurrency_conflict(order_id: str) -> Error:
        return Error.conflict(
            code="Order.ConcurrencyConflict",
            message=f"Order {order_id} was modified by another request. "
            "Reload it and try again.",
        )


class PaymentErrors:
    NEGATIVE_AMOUNT = Error.validation(
        code="Payment.NegativeAmount",
        message="Payment amount must be greater than zero.",
    )
    TOKEN_REQUIRED = Error.validation(
        code="Payment.TokenRequired",
        message="Payment token cannot be empty.",
    )
    INVALID_ORDER_ID = Error.validation(
        code="Payment.InvalidOrderId",
        message="Payment must reference its order.",
    )
    INVALID_METADATA_KEY = Error.validation(
        code="Payment.InvalidMetadataKey",
        message="Metadata key cannot be empty.",
    )
    INVALID_PROVIDER = Error.validation(
        code="Payment.InvalidProvider",
        message="The specified payment provider is not supported.",
    )
    CURRENCY_MISMATCH = Error.validation(
        code="Payment.CurrencyMismatch",
        message="The payment currency does not match the order currency.",
    )
    AMOUNT_MISMATCH = Error.validation(
        code="Payment.AmountMismatch",
        message="The payment amount does not match the order total.",
    )
    UNAUTHORIZED_ACCESS = Error.unauthorized(
        code="Payment.UnauthorizedAccess",
        message="You are not authorized to pay for this order.",
    )

    @staticmethod
    def invalid_status(operation: str) -> Error:
        return Error.validation(
            code="Payment.InvalidStatus",
            message=f"Cannot {operation} with the current payment status.",
        )

    @staticmethod
    def not_found(reference: str) -> Error:
        return Error.not_found(
            code="Payment.NotFound",
            message=f"Payment {reference} was not found.",
        )

    @staticmethod
    def declined(reason: str) -> Error:
        return Error.validation(
            code="Payment.Declined",
            message=f"Payment was declined: {reason}",
        )

    @staticmethod
    def processing_failed(reason: str) -> Error:
        return Error.failure(
            code="Payment.ProcessingFailed",
            message=f"Payment processing failed: {reason}",
        )

    @staticmethod
    def concurrency_conflict(payment_id: str) -> Error:
        return Error.conflict(
            code="Payment.ConcurrencyConflict",
            message=f"Payment {payment_id} was modified by another request. "
            "Reload it and try again.",
        )

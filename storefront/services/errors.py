from fastapi import status


class PaymentError(Exception):
    """Base for failures raised by the checkout and IPN handlers.

    ``message`` is safe to show to the caller; provider bodies and database
    errors are logged where they happen and never attached here.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(PaymentError):
    status_code = status.HTTP_401_UNAUTHORIZED


class CheckoutValidationError(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class GatewayNotConfiguredError(PaymentError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvoiceCreationError(PaymentError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class OrderPersistenceError(PaymentError):
    """Invoice exists at the provider but the local orders could not be stored."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, payment_id: str | None = None):
        super().__init__(message)
        self.payment_id = payment_id


class InvalidSignatureError(PaymentError):
    status_code = status.HTTP_403_FORBIDDEN


class MalformedNotificationError(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class ReconciliationError(PaymentError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

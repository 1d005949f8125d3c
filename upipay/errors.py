class PaymentServiceError(Exception):
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(PaymentServiceError):
    http_status = 400


class InvalidSignature(PaymentServiceError):
    http_status = 400


class GatewayError(PaymentServiceError):
    """Upstream Razorpay failure: non-2xx response or network error.

    ``status_code`` is the upstream status when one was received, ``None`` for
    transport failures.
    """

    http_status = 500

    def __init__(self, message: str, status_code: int | None = None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConfigurationError(PaymentServiceError):
    http_status = 500

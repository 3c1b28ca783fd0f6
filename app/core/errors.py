"""
Error taxonomy for the billing backend.

Every error carries the HTTP status it should surface with; routes raise these
and the handler registered in app.main renders them as {"error": message}.
"""
from fastapi import status


class BillingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.headers = headers


class Unauthorized(BillingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class InvalidSignature(BillingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid webhook signature"


class MissingSignature(BillingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Missing webhook signature headers"


class MissingSecret(BillingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Webhook configuration error"


class InvalidInput(BillingError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class InvalidProduct(InvalidInput):
    message = "Invalid product ID"


class StaleRequest(InvalidInput):
    message = "Request expired"


class NotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class RateLimited(BillingError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later."


class ProviderError(BillingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Payment provider request failed"


class ProviderUnavailable(BillingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Payment service unavailable"


class StorageError(BillingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to save changes"


class PayloadTooLarge(BillingError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "Request body too large"

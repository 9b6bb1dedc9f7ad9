from typing import Optional

from utils.errors import ServiceError

HTTP_ERROR_MESSAGES = {
    400: "The request was invalid. Please check your input and try again.",
    401: "Your session has expired. Please log in again to continue.",
    403: "You don't have permission to perform this action. Please contact your administrator.",
    404: "The requested resource was not found. It may have been deleted or moved.",
    409: "This action conflicts with existing data. Please review and try again.",
    422: "The data provided is invalid. Please check all required fields.",
    429: "Too many requests. Please wait a moment and try again.",
    500: "A server error occurred. Please try again later or contact support.",
    502: "The server is temporarily unavailable. Please try again later.",
    503: "The service is temporarily unavailable. Please try again later.",
}
NETWORK_ERROR = "Unable to connect to the server. Please check your network connection."
TIMEOUT_ERROR = "The request timed out. Please try again."
MALFORMED_RESPONSE = "The server sent an unexpected response. Please try again."

# fallbacks shown when the backend gave no reason of its own
LOOKUP_FAILED = "Failed to lookup barcode"
SEARCH_FAILED = "Search error occurred"
RECOGNITION_FAILED = "Visual recognition failed. Try again or search by name."
CHECKOUT_FAILED = "Checkout failed"
EMPTY_CART = "Your cart is empty. Add items before completing the sale."
PRODUCT_NOT_FOUND = "No product found for this barcode."


def status_message(status: int) -> str:
    return HTTP_ERROR_MESSAGES.get(status, HTTP_ERROR_MESSAGES[500])


class ApiError(ServiceError):
    """
    Non-2xx response. `server_message` is the backend's own `message` field
    (None when it sent none); str(err) falls back to a per-status text.
    """

    def __init__(self, status: int, server_message: Optional[str] = None):
        self.status = status
        self.server_message = server_message
        super().__init__(server_message or status_message(status))


class UnauthorizedError(ApiError):
    def __init__(self, server_message: Optional[str] = None):
        super().__init__(401, server_message)


class NetworkError(ServiceError):
    def __init__(self, message: str = NETWORK_ERROR):
        super().__init__(message)


class MalformedResponseError(ServiceError):
    """A 2xx body we could not parse into our models."""

    def __init__(self, message: str = MALFORMED_RESPONSE):
        super().__init__(message)


def user_message(err: Exception, fallback: str) -> str:
    """The most specific text we can show for a failed backend call."""
    if isinstance(err, UnauthorizedError):
        return str(err)
    if isinstance(err, ApiError):
        return err.server_message or fallback
    if isinstance(err, ServiceError):
        return str(err) or fallback
    return fallback

# Custom exceptions to be used throughout the project.

class BackendError(Exception):
    """
    To be raised when a request against the hosted backend (REST or auth endpoints) fails.
    May be raised under the following circumstances:
        1. The backend could not be reached (connection error, timeout)
        2. The backend answered with a non-2xx status code
        3. The response body was not valid JSON
    """
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(BackendError):
    """
    Raised when credentials or tokens are rejected by the auth endpoints.
    """


class VisitValidationError(Exception):
    """
    To be raised when a visit proposal fails input validation, e.g. a start date in the past or an end date before the start date.
    """
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class StatusTransitionError(Exception):
    """
    Raised when a visit decision is attempted on a visit that is no longer pending.
    """
    def __init__(self, message):
        super().__init__(message)
        self.message = message

import enum


class CognicityError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(CognicityError):
    """A request parameter is missing or malformed. Never reaches the database."""

    status = 400

    def __init__(self, field, message=None):
        super().__init__(message or f"'{field}' parameter is not valid")
        self.field = field


class DatabaseErrorKind(enum.Enum):
    CONNECTION_FAILED = 'connection_failed'
    QUERY_FAILED = 'query_failed'
    TIMEOUT = 'timeout'


_DEFAULT_MESSAGES = {
    DatabaseErrorKind.CONNECTION_FAILED: 'Database connection error',
    DatabaseErrorKind.QUERY_FAILED: 'Database query error',
    DatabaseErrorKind.TIMEOUT: 'Database query timed out',
}


class DatabaseError(CognicityError):
    status = 500

    def __init__(self, kind, message=None):
        super().__init__(message or _DEFAULT_MESSAGES[kind])
        self.kind = kind

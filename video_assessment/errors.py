"""Error taxonomy for the video evaluation pipeline.

Every error carries ``retryable``: parser, model and transaction failures can
succeed on a later attempt because model output varies between calls and the
persistence writes are idempotent upserts. Lookup and state errors are caller
mistakes and are never retried.
"""


class EvaluationError(Exception):
    retryable = False


class NotFound(EvaluationError):
    pass


class RubricNotFound(NotFound):
    pass


class ResponseParseError(EvaluationError):
    retryable = True


class EmptyResponse(ResponseParseError):
    pass


class MalformedResponse(ResponseParseError):
    pass


class SchemaViolation(ResponseParseError):
    def __init__(self, field, message=None):
        self.field = field
        super().__init__(message or f"Missing or invalid {field} in response")


class ModelInvocationError(EvaluationError):
    retryable = True

    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class TransactionError(EvaluationError):
    retryable = True


class RetryExhausted(EvaluationError):
    pass


class InvalidState(EvaluationError):
    def __init__(self, status, message=None):
        self.status = status
        super().__init__(message or f"Cannot retry assessment with status {status}.")

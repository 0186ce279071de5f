"""Errors raised by the board client before or while talking to the API"""


class PipelineError(Exception):
    """Base class for board client failures"""


class ValidationFailed(PipelineError):
    """Input rejected before any request was sent"""


class BusinessRuleViolation(PipelineError):
    """Action blocked by a board rule, e.g. deleting a stage that still has cards"""


class InvalidMove(PipelineError):
    """Drop result that does not describe a valid position on the board"""


class PersistenceFailed(PipelineError):
    """Request failed in transport or came back with a non-2xx status"""

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

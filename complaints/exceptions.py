"""
Typed errors raised by the complaint lifecycle and surfaced by the API.

Every error carries a stable ``error_code`` (the class name) and the HTTP
status the service boundary answers with.
"""


class ComplaintDeskError(Exception):
    status_code = 400

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    default_message = "Request could not be processed"

    @property
    def error_code(self):
        return self.__class__.__name__

    def to_dict(self):
        payload = {'message': self.message, 'error': self.error_code}
        if self.details:
            payload['details'] = self.details
        return payload


class NotAuthenticated(ComplaintDeskError):
    status_code = 401
    default_message = "Authentication credentials were not provided or are invalid"


class Unauthorized(ComplaintDeskError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(ComplaintDeskError):
    status_code = 404
    default_message = "Not found"


class ValidationError(ComplaintDeskError):
    status_code = 400
    default_message = "Invalid request data"


class MissingReason(ValidationError):
    default_message = "A rejection reason is required"


class UnknownAssignee(ValidationError):
    default_message = "Complaints can only be assigned to an admin"


class InvalidTransition(ComplaintDeskError):
    status_code = 409
    default_message = "This status change is not permitted"


class Conflict(ComplaintDeskError):
    status_code = 409
    default_message = "The complaint was modified concurrently, reload and retry"


class AlreadyRated(ComplaintDeskError):
    status_code = 409
    default_message = "Feedback has already been submitted for this complaint"


class NotResolved(ComplaintDeskError):
    status_code = 409
    default_message = "Feedback can only be given on a resolved complaint"


class RequestAlreadyPending(ComplaintDeskError):
    status_code = 409
    default_message = "An information request is already awaiting a response"


class NoPendingRequest(ComplaintDeskError):
    status_code = 409
    default_message = "There is no pending information request"

"""
Domain errors raised by the service modules and rendered by the routes.
"""

from flask import jsonify


class ServiceError(Exception):
    """A failure the caller can act on.

    ``requires_action`` is a machine-readable tag for precondition failures;
    ``extra`` is merged into the JSON body.
    """

    status = 400

    def __init__(self, message, status=None, requires_action=None, **extra):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.requires_action = requires_action
        self.extra = extra

    def to_dict(self):
        body = {"error": self.message}
        if self.requires_action:
            body["requiresAction"] = self.requires_action
        body.update(self.extra)
        return body

    def to_response(self):
        return jsonify(self.to_dict()), self.status


class DriverDayError(ServiceError):
    pass


class TaskError(ServiceError):
    pass


class BookingError(ServiceError):
    pass


class CouponError(ServiceError):
    pass


class PartnerError(ServiceError):
    pass


class SubscriptionError(ServiceError):
    pass

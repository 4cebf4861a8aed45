class ServiceError(Exception):
    """Domain failure raised by the service layer.

    Carries an HTTP-like status so GraphQL payloads and plain JSON views
    can report the same failure consistently.
    """

    status = 400

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def __str__(self):
        return self.message


class NotFoundError(ServiceError):
    status = 404


class ForbiddenError(ServiceError):
    status = 403

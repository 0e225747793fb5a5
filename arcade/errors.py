"""Error taxonomy shared by services and routes.

Services raise these; ``create_app`` registers a handler that renders
``{'error': message}`` with the matching status code.
"""


class ArcadeError(Exception):
    status_code = 500
    default_message = 'Internal error'

    def __init__(self, message=None, **payload):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.payload = payload

    def to_dict(self):
        data = dict(self.payload)
        data['error'] = self.message
        return data


class InvalidInput(ArcadeError):
    status_code = 400
    default_message = 'Invalid input'


class Unauthenticated(ArcadeError):
    status_code = 401
    default_message = 'Login required'


class PaymentRequired(ArcadeError):
    status_code = 402
    default_message = 'Active subscription required to play tournament'


class Forbidden(ArcadeError):
    status_code = 403
    default_message = 'Forbidden'


class NotFound(ArcadeError):
    status_code = 404
    default_message = 'Not found'


class Conflict(ArcadeError):
    status_code = 409
    default_message = 'Conflict'


class AlreadyFinalized(Conflict):
    default_message = 'Already finalized. Use force=true to re-finalize.'

    def __init__(self, message=None, winners=None):
        super().__init__(message, winners=[w.to_dict() for w in (winners or [])])
        self.winners = list(winners or [])


class TooEarly(Conflict):
    default_message = 'Tournament has not ended yet. Use force=true to finalize early.'


class TooManyRequests(ArcadeError):
    status_code = 429
    default_message = 'Too many submissions. Please slow down.'

    def __init__(self, retry_after_seconds, message=None):
        super().__init__(message, retry_after_seconds=retry_after_seconds)
        self.retry_after_seconds = retry_after_seconds


class UpstreamFailure(ArcadeError):
    status_code = 502
    default_message = 'Backend request failed'

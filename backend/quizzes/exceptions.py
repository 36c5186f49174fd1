from rest_framework import status
from rest_framework.exceptions import APIException


class ConflictError(APIException):
    """Concurrent submissions raced for the same attempt number; the client may resubmit."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Another submission for this quiz is in progress. Please try again.'
    default_code = 'conflict'


class TransientError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Service temporarily unavailable, please retry.'
    default_code = 'transient'


class InvalidTransition(Exception):
    """A quiz runner event was fired in a state that does not accept it."""

    def __init__(self, state, event):
        self.state = state
        self.event = event
        super().__init__(f'Cannot {event} while {state}')

from rest_framework.views import exception_handler
from rest_framework.exceptions import APIException
from rest_framework import status


class SchedulingError(APIException):
    """Base class for errors raised by the scheduling engine."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Scheduling error.'
    default_code = 'scheduling_error'


class InvalidInput(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Conflict(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The slot is not available.'
    default_code = 'conflict'


class SlotAlreadyTaken(Conflict):
    default_detail = 'This slot was just taken, pick another one.'
    default_code = 'slot_already_taken'


class SlotBusy(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The slot is bound to an appointment.'
    default_code = 'slot_busy'


class InvalidTransition(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Status change is not allowed.'
    default_code = 'invalid_transition'


def custom_exception_handler(exc, context):
    """
    Custom exception handler for consistent error responses.
    """
    response = exception_handler(exc, context)

    if response is not None:
        custom_response = {
            'success': False,
            'error': {
                'status_code': response.status_code,
                'message': get_error_message(response),
                'code': getattr(exc, 'default_code', None),
                'details': response.data if isinstance(response.data, dict) else {'error': response.data}
            }
        }
        response.data = custom_response

    return response


def get_error_message(response):
    """Get a human-readable error message."""
    status_code = response.status_code

    messages = {
        400: 'Bad Request',
        401: 'Authentication Required',
        403: 'Permission Denied',
        404: 'Not Found',
        405: 'Method Not Allowed',
        409: 'Conflict',
        500: 'Internal Server Error',
    }

    return messages.get(status_code, 'An error occurred')

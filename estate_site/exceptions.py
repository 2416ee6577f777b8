"""
DRF exception handling for the estate site API.

Service layers raise django.core.exceptions.ValidationError; DRF only knows
its own ValidationError, so those are converted here before the default
handler builds the 400 response.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def as_drf_validation_error(exc: DjangoValidationError) -> serializers.ValidationError:
    if hasattr(exc, 'error_dict'):
        return serializers.ValidationError(exc.message_dict)
    return serializers.ValidationError({'detail': exc.messages})


def api_exception_handler(exc, context):
    if isinstance(exc, DjangoValidationError):
        exc = as_drf_validation_error(exc)
    return exception_handler(exc, context)

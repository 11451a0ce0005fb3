"""
Errors raised by the report engine.

Structural problems (a missing student or class, an unsupported mode
combination, a malformed raw record) are raised and propagate to the caller.
Data gaps such as a subject without marks or a class without attendance are
not errors; the aggregation layers absorb them with defaults.
"""
from django.core.exceptions import ObjectDoesNotExist, ValidationError


class ReportError(Exception):
    """Base class for report engine errors."""


class EntityNotFound(ReportError, ObjectDoesNotExist):
    """A referenced student or class is absent from the supplied metadata."""

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity.capitalize()} not found: {entity_id}')


class ReportValidationError(ReportError, ValidationError):
    """An invalid mode combination or raw record, rejected before computation."""

    def __init__(self, message, code='invalid', params=None):
        ValidationError.__init__(self, message, code=code, params=params)

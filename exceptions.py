from fastapi import status


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """A referenced department, course, student or enrollment does not exist"""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id=None):
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} not found with id: {entity_id}"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(ServiceError):
    """A uniqueness rule would be violated"""
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(ServiceError):
    """The entity is in a state that forbids the operation"""
    status_code = status.HTTP_409_CONFLICT


class CapacityExceededError(InvalidStateError):
    """A course offering already holds its maximum number of active enrollments"""


class ValidationFailedError(ServiceError):
    """Input rejected by a business rule"""
    status_code = status.HTTP_400_BAD_REQUEST


class OperationTimeoutError(ServiceError):
    """A bulk operation ran past its time budget and was rolled back"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

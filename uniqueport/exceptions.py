from fastapi import status


class UniquePortException(Exception):
    def __init__(self, message: str | None = None):
        self.message = message
        super().__init__(message)


class UniquePortHTTPException(UniquePortException):
    def __init__(self, message: str | None = None, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.status_code = status_code
        super().__init__(message)


# Distributed set errors


class LockTimeout(UniquePortHTTPException):
    def __init__(self, lock_name: str, wait_timeout: float):
        self.lock_name = lock_name
        self.wait_timeout = wait_timeout
        super().__init__(
            f"Timed out waiting for lock. lock_name={lock_name} wait_timeout={wait_timeout}s",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class StoreError(UniquePortException):
    def __init__(self, message: str | None = None, key: str | None = None):
        self.key = key
        super().__init__(message)


class StoreUnavailable(UniquePortHTTPException):
    def __init__(self, key: str, reason: str | None = None):
        self.key = key
        super().__init__(
            f"Set store unavailable. key={key} reason={reason}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class FormatError(UniquePortHTTPException):
    def __init__(self, message: str | None = None):
        super().__init__(
            f"Unreadable set members: {message}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class Exhausted(UniquePortHTTPException):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No ports remaining. key={key}", status_code=status.HTTP_409_CONFLICT)


class RangeError(UniquePortHTTPException):
    def __init__(self, element: int, lower: int, upper: int):
        self.element = element
        super().__init__(
            f"Port {element} is outside of the range [{lower}, {upper})",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


# Provisioning errors


class UnsupportedResourceType(UniquePortException):
    def __init__(self, resource_type: str | None = None):
        super().__init__(f"unsupported resource type: {resource_type}")


class UnsupportedRequestType(UniquePortException):
    def __init__(self, request_type: str | None = None):
        super().__init__(f"unknown RequestType: {request_type}")


class UpdateNotSupported(UniquePortException):
    def __init__(self) -> None:
        super().__init__("cannot update")


class MissingResourceProperty(UniquePortException):
    def __init__(self, property_name: str):
        self.property_name = property_name
        super().__init__(f"Must provide '{property_name}'")


class InvalidResponseURL(UniquePortException):
    def __init__(self, response_url: str):
        super().__init__(f"unexpected response url: {response_url}")


class CallbackFailed(UniquePortException):
    def __init__(self, response_host: str, reason: str | None = None):
        self.response_host = response_host
        super().__init__(f"Failed to send provisioning response. response_host={response_host} reason={reason}")

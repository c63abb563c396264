"""Application error types."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


def format_error(ex: BaseException) -> str:
    from traceback import TracebackException

    return "".join(TracebackException.from_exception(ex).format())


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502


class AppErrorCode(str, Enum):
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_UNAUTHORIZED = "E_UNAUTHORIZED"
    E_ACCESS_DENIED = "E_ACCESS_DENIED"
    E_INVALID_STATE = "E_INVALID_STATE"
    E_NOT_FOUND = "E_NOT_FOUND"
    E_BACKEND_ERROR = "E_BACKEND_ERROR"
    E_SEND_FAILED = "E_SEND_FAILED"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Error raised by domain and service code.

    Captures the raising call site so that logs point at the operation that
    failed rather than at the handler that caught it.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: int = HttpStatusCode.INTERNAL_SERVER_ERROR,
    ):
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = module.__name__ if module else caller_frame.filename
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

        super().__init__(f"{self.errcode}: {self.errmesg}")

from fastapi import HTTPException

class Unauthorized(HTTPException):
    def __init__(self, detail: str = "not authenticated") -> None:
        super().__init__(status_code=401, detail=detail)

class Forbidden(HTTPException):
    def __init__(self, detail: str = "forbidden") -> None:
        super().__init__(status_code=403, detail=detail)

class NotFound(HTTPException):
    def __init__(self, detail: str = "not found") -> None:
        super().__init__(status_code=404, detail=detail)

class Conflict(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=409, detail=detail)

class ValidationFailed(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=422, detail=detail)

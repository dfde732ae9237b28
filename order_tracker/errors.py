from typing import Dict, List, Optional

from fastapi import HTTPException, status

SERVER_ERROR_MESSAGE = "حدث خطأ في الخادم"
INVALID_DATA_MESSAGE = "بيانات غير صالحة"


class DuplicateIdentifier(Exception):
    """Raised by the storage layer when an order/account number is already taken."""

    def __init__(self, field: str, value: str):
        super().__init__(f"{field} '{value}' already exists")
        self.field = field
        self.value = value


class ValidationFailed(HTTPException):
    def __init__(self, message: str = INVALID_DATA_MESSAGE, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
        self.errors = errors


class Unauthorized(HTTPException):
    def __init__(self, message: str = "غير مصرح بالوصول", status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(
            status_code=status_code,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFound(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=message)


class Conflict(HTTPException):
    def __init__(self, message: str = "الرقم المُولَّد مستخدم بالفعل، يرجى المحاولة مرة أخرى"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)

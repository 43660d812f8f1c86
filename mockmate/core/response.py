"""
Unified response module

Standard API envelope shared by every route
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    """
    Unified response model

    Example:
        {
            "success": true,
            "code": 200,
            "message": "OK",
            "data": {...}
        }
    """
    success: bool = True
    code: int = 200
    message: str = "OK"
    data: Optional[T] = None


class PagedData(BaseModel, Generic[T]):
    """Paged data"""
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int  # total pages


class PagedResponseModel(ResponseModel[PagedData[T]], Generic[T]):
    """Paged response model"""
    pass


class ErrorResponseModel(BaseModel):
    """
    Error response model

    `code` carries the machine-readable error code, e.g. "USER_EXISTS"
    """
    success: bool = False
    code: str = "INTERNAL_ERROR"
    status: int = 500
    message: str = "Internal server error"
    data: Optional[Any] = None


MessageResponse = ResponseModel[None]
DictResponse = ResponseModel[Dict[str, Any]]


def success_response(
    data: Any = None,
    message: str = "OK",
    code: int = 200
) -> dict:
    """Success envelope"""
    return {
        "success": True,
        "code": code,
        "message": message,
        "data": data
    }


def error_response(
    message: str = "Request failed",
    code: str = "BAD_REQUEST",
    status: int = 400,
    data: Any = None
) -> dict:
    """Error envelope"""
    return {
        "success": False,
        "code": code,
        "status": status,
        "message": message,
        "data": data
    }


def paged_response(
    items: list,
    total: int,
    page: int,
    page_size: int,
    message: str = "OK",
    **extra: Any
) -> dict:
    """Paged envelope"""
    pages = (total + page_size - 1) // page_size if page_size > 0 else 0
    return success_response(
        data={
            "items": items,
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": pages,
            **extra,
        },
        message=message
    )

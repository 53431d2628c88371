"""
    Hosted-API response envelope helpers.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

class APIErrorItem(BaseModel):
    code: int
    message: str

class ResultInfo(BaseModel):
    page: int
    per_page: int
    count: int
    total_count: int
    total_pages: int = 0

def success_response(result: Any) -> Dict[str, Any]:
    """Wraps a result in a successful envelope."""
    return {
        "result": result,
        "success": True,
        "errors": [],
        "messages": [],
    }

def error_response(code: int, message: str) -> Dict[str, Any]:
    """Builds a failed envelope carrying a single error."""
    errors: List[Dict[str, Any]] = [APIErrorItem(code=code, message=message).model_dump()]
    return {
        "result": None,
        "success": False,
        "errors": errors,
        "messages": [],
    }

def paginated_response(result: Any, info: ResultInfo) -> Dict[str, Any]:
    """Successful envelope with result_info for offset-paginated lists."""
    body = success_response(result)
    # total_pages is omitted when zero
    body["result_info"] = info.model_dump(exclude_defaults=True)
    return body

def envelope_with_info(result: Any, info: Optional[ResultInfo] = None) -> Dict[str, Any]:
    """Successful envelope that always carries a result_info key."""
    body = success_response(result)
    body["result_info"] = info.model_dump() if info else None
    return body

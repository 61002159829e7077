"""
Rendering pipeline results as HTTP responses.

Route handlers dispatch a request and hand the StageResult to to_response():

    @router.get("/items/{item_id}")
    async def get_item(item_id: int):
        result = await dispatcher.execute(GetItem(id=item_id), get_item_handler)
        return to_response(result)

A ShortCircuit becomes its envelope with the matching status code; a
Continue becomes its value encoded like a cached payload (null members
omitted), so a cache miss and the following hit render the same bytes.
"""

from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse

from stagehand.cache.serialization import to_jsonable
from stagehand.pipeline.results import AbortResponse, Continue, ShortCircuit, StageResult


def abort_response(
    status_code: int,
    title: str,
    detail: str,
    errors: Optional[Dict[str, List[str]]] = None,
    exception_type: Optional[str] = None,
) -> JSONResponse:
    body = AbortResponse(
        title=title,
        status=status_code,
        detail=detail,
        errors=errors,
        exception_type=exception_type,
    )
    return JSONResponse(status_code=status_code, content=body.to_json())


def to_response(result: StageResult, status_code: int = 200) -> JSONResponse:
    if isinstance(result, ShortCircuit):
        return JSONResponse(status_code=result.status_code, content=result.body.to_json())
    value: Any = result.value if isinstance(result, Continue) else result
    return JSONResponse(status_code=status_code, content=to_jsonable(value))

import json
from typing import Any, Dict, Optional

from fastapi import Request

from ..core.errors import ValidationError

# GET query parameters that carry JSON documents
JSON_PARAMS = ("filter", "sort")


def request_headers(request: Request) -> Dict[str, Any]:
    return dict(request.headers)


def query_input(request: Request, **path_params: Any) -> Dict[str, Any]:
    """Raw operation input from query parameters plus path parameters"""
    data: Dict[str, Any] = dict(request.query_params)
    for name in JSON_PARAMS:
        if isinstance(data.get(name), str):
            try:
                data[name] = json.loads(data[name])
            except ValueError as e:
                raise ValidationError("Non conforming format", {
                    "code": "INVALID_FORMAT",
                    "errors": [{"field": name, "message": f"Invalid JSON: {e}", "type": "json_invalid"}],
                }) from e
    data.update({k: v for k, v in path_params.items() if v is not None})
    return data


async def body_input(request: Request, **path_params: Any) -> Optional[Dict[str, Any]]:
    """Raw operation input from a JSON body plus path parameters"""
    raw = await request.body()
    if not raw:
        data = {}
    else:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ValidationError("Request body is not valid JSON", {"code": "INVALID_JSON", "error": str(e)}) from e
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object", {"code": "INVALID_FORMAT"})

    data.update({k: v for k, v in path_params.items() if v is not None})
    return data

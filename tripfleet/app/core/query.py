"""
Query string validation.
"""

from typing import Type, TypeVar
from fastapi import Request
from pydantic import BaseModel, ValidationError
from tripfleet.app.core.exceptions import QueryValidationError

Q = TypeVar("Q", bound=BaseModel)


def parse_query(request: Request, model: Type[Q]) -> Q:
    """
    Validate the request's query string against ``model``.

    Raises:
        QueryValidationError: INVALID_QUERY with one ``{field, message}``
            entry per offending parameter
    """
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as exc:
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "query",
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        raise QueryValidationError(details) from exc

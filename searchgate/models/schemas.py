from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..config.search_config import SearchConfig
from ..core import constants
from ..core.errors import ValidationError


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")


class LangFilter(RequestModel):
    primary: str
    secondary: Optional[List[str]] = None


class RequestFilter(RequestModel):
    # filter keys other than lang are type specific and pass through unchecked
    model_config = ConfigDict(extra="allow")

    lang: Optional[LangFilter] = None


class SortSpec(RequestModel):
    field: str = constants.SCORE_SORT_FIELD
    order: Literal["ASC", "DESC"] = constants.DESC_SORT_ORDER


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    types_configured: List[str]
    indexes_available: List[str]
    cache_available: bool


def _type_field(valid_types: List[str], default: Optional[str], allow_wildcard: bool = True):
    valid = list(valid_types) + ([constants.WILDCARD_TYPE] if allow_wildcard else [])

    def check_type(value: Optional[str]) -> Optional[str]:
        if value is not None and value not in valid:
            raise ValueError(f"type must be one of {valid}")
        return value

    return Annotated[Optional[str], AfterValidator(check_type)], default


def _required_type_field(valid_types: List[str]):
    valid = list(valid_types)

    def check_type(value: str) -> str:
        if value not in valid:
            raise ValueError(f"type must be one of {valid}")
        return value

    return Annotated[str, AfterValidator(check_type)], ...


SortField = Optional[Union[SortSpec, List[Union[SortSpec, str]]]]


def _base_fields(count: int = 10) -> Dict[str, Any]:
    return {
        "request_time": (Optional[float], None),
        "count": (int, Field(count, ge=0)),
        "page": (int, Field(0, ge=0)),
        "format": (Literal["default", "custom"], constants.DEFAULT_FORMAT),
    }


def _text_field():
    return str, Field(..., min_length=1)


def _without(fields: Dict[str, Any], *names: str) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in names}


def build_schemas(search_config: SearchConfig) -> Dict[str, Type[RequestModel]]:
    """Per-endpoint request models; valid types and defaults come from the config"""
    search_types = list(search_config.search.types)
    autocomplete_types = list(search_config.autocomplete.types)
    view_types = list(search_config.views.types)

    search_type_field = _type_field(search_types, search_config.search.default_type)
    autocomplete_type_field = _type_field(autocomplete_types, search_config.autocomplete.default_type)

    search_fields = dict(
        _base_fields(),
        mode=(Optional[Literal["organic", "autocomplete", "search_result"]], constants.ORGANIC_MODE),
        lang=(Optional[str], None),
        text=_text_field(),
        fuzzy_search=(bool, True),
        type=search_type_field,
        sort=(SortField, None),
        filter=(Optional[RequestFilter], None),
        unicode_text=(Optional[str], None),
        original_input=(Optional[str], Field(None, min_length=1)),
    )

    form_search_fields = dict(
        _base_fields(),
        type=search_type_field,
        sort=(SortField, None),
        filter=(Optional[RequestFilter], None),
    )

    browse_all_fields = dict(
        _base_fields(),
        type=search_type_field,
        sort=(SortField, None),
    )

    autocomplete_fields = dict(
        _base_fields(count=5),
        text=_text_field(),
        fuzzy_search=(bool, True),
        type=autocomplete_type_field,
        filter=(Optional[RequestFilter], None),
    )

    term_vectors_fields = dict(
        request_time=(Optional[float], None),
        type=_required_type_field(list(search_config.types)),
        id=(str, ...),
    )

    did_you_mean_fields = dict(
        request_time=(Optional[float], None),
        type=autocomplete_type_field,
        text=_text_field(),
    )

    view_fields = dict(
        request_time=(Optional[float], None),
        type=_type_field(view_types, search_config.views.default_type, allow_wildcard=False),
        filter=(Optional[RequestFilter], None),
        sort=(SortField, None),
    )

    explain_search_fields = dict(_without(search_fields, "page", "count"), id=(str, ...))
    explain_autocomplete_fields = dict(_without(autocomplete_fields, "page", "count"), id=(str, ...))

    def model(name: str, fields: Dict[str, Any]) -> Type[RequestModel]:
        return create_model(name, __base__=RequestModel, **fields)

    return {
        "search": model("SearchRequest", search_fields),
        "autocomplete": model("AutocompleteRequest", autocomplete_fields),
        "formSearch": model("FormSearchRequest", form_search_fields),
        "browseAll": model("BrowseAllRequest", browse_all_fields),
        "explainSearch": model("ExplainSearchRequest", explain_search_fields),
        "explainAutocomplete": model("ExplainAutocompleteRequest", explain_autocomplete_fields),
        "termVectors": model("TermVectorsRequest", term_vectors_fields),
        "didYouMean": model("DidYouMeanRequest", did_you_mean_fields),
        "view": model("ViewRequest", view_fields),
    }


def validate(data: Optional[Dict[str, Any]], schema: Type[RequestModel]) -> Dict[str, Any]:
    """Validate raw input against a request schema and return the API-shaped dict"""
    if not data:
        raise ValidationError("No input provided", {"code": "NO_INPUT"})

    try:
        value = schema.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"], "type": error["type"]}
            for error in e.errors()
        ]
        raise ValidationError("Non conforming format", {"code": "INVALID_FORMAT", "errors": errors}) from e

    return value.model_dump(by_alias=True)

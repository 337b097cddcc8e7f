"""
Wire models for the text completion endpoint

The service answers with one of two untagged shapes:

    {"choices": [{"text": "..."}, ...]}
    {"error": {"message": "..."}}

``parse_completion_response`` turns that into an explicit variant, trying
the success shape first and falling back to the error shape.
"""
from typing import Any, List, Union

from pydantic import BaseModel, ConfigDict, ValidationError


class CompletionRequest(BaseModel):
    model: str
    prompt: str
    max_tokens: int
    temperature: float = 0.0


class Choice(BaseModel):
    model_config = ConfigDict(extra='ignore')

    text: str


class CompletionChoices(BaseModel):
    """Success payload: ordered candidate completions."""
    model_config = ConfigDict(extra='ignore')

    choices: List[Choice]


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra='ignore')

    message: str


class CompletionErrorPayload(BaseModel):
    """Error payload reported by the service."""
    model_config = ConfigDict(extra='ignore')

    error: ErrorBody


CompletionResponse = Union[CompletionChoices, CompletionErrorPayload]


def parse_completion_response(data: Any) -> CompletionResponse:
    """Parse a decoded JSON body.

    Raises:
        ValidationError: if the body matches neither shape
    """
    try:
        return CompletionChoices.model_validate(data)
    except ValidationError:
        return CompletionErrorPayload.model_validate(data)

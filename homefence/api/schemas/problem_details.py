"""RFC 7807 Problem Details schema for HTTP API errors.

Plain HTTP exceptions (unknown routes, wrong methods and the like) are
returned in this format with media type ``application/problem+json``.
Application errors use the ``{"error": {...}}`` envelope instead.

References:
    - RFC 7807: https://tools.ietf.org/html/rfc7807
"""

from http import HTTPStatus

from pydantic import BaseModel, Field


def get_status_phrase(status_code: int) -> str:
    """Get the standard HTTP status phrase for a given status code.

    Examples:
        >>> get_status_phrase(404)
        'Not Found'
        >>> get_status_phrase(999)
        'Unknown Error'
    """
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown Error"


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details object for API error responses.

    Attributes:
        type: URI reference identifying the problem type ("about:blank" when
            the problem has no semantics beyond the HTTP status code).
        title: Short summary of the problem type, the HTTP status phrase.
        status: The HTTP status code.
        detail: Explanation specific to this occurrence.
        instance: The request path of this occurrence.
    """

    type: str = Field(
        default="about:blank",
        description="A URI reference that identifies the problem type.",
        examples=["about:blank"],
    )
    title: str = Field(
        ...,
        description="A short, human-readable summary of the problem type.",
        examples=["Not Found", "Method Not Allowed"],
    )
    status: int = Field(
        ...,
        ge=100,
        le=599,
        description="The HTTP status code generated by the origin server.",
        examples=[404, 405],
    )
    detail: str = Field(
        ...,
        description="A human-readable explanation specific to this occurrence of the problem.",
        examples=["Not Found"],
    )
    instance: str | None = Field(
        default=None,
        description="The request path of this occurrence.",
        examples=["/api/unknown"],
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "about:blank",
                "title": "Not Found",
                "status": 404,
                "detail": "Not Found",
                "instance": "/api/unknown",
            }
        }
    }

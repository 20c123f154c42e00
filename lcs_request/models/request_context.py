# lcs_request/models/request_context.py

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from fastapi import Request
from starlette.datastructures import UploadFile

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


class RequestContext(BaseModel):
    """
    Snapshot of an inbound request.

    Everything the request layer reads about a request comes from here, so
    components can be exercised with a hand-built context instead of a live
    server.
    """
    method: str = "GET"
    uri: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    form: Dict[str, Any] = Field(default_factory=dict)
    body: bytes = b""
    client_host: Optional[str] = None
    https: bool = False

    model_config = {"frozen": True}

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name.lower(): header for name, header in value.items()}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        return (self.header("content-type") or "").strip()

    @property
    def host(self) -> Optional[str]:
        return self.header("host")

    @classmethod
    async def from_request(cls, request: Request) -> "RequestContext":
        """Build a context from a Starlette/FastAPI request, reading the body once"""
        content_type = request.headers.get("content-type", "").lower()
        body = await request.body()

        form: Dict[str, Any] = {}
        if content_type.startswith(FORM_CONTENT_TYPES):
            data = await request.form()
            # Uploaded files are not materialised, only plain fields
            form = {
                key: value for key, value in data.multi_items()
                if not isinstance(value, UploadFile)
            }

        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"

        return cls(
            method=request.method,
            uri=uri,
            headers=dict(request.headers),
            query=dict(request.query_params),
            form=form,
            body=body,
            client_host=request.client.host if request.client else None,
            https=request.url.scheme == "https",
        )

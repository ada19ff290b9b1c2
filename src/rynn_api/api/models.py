"""Pydantic models for module metadata and the API catalog."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import FailureKind

API_PREFIX = "/api"

SUPPORTED_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")


def split_route_template(template: str) -> Tuple[str, Optional[str]]:
    """Split a route template on its first ``?``.

    Returns:
        Tuple of (base path, query template or None)
    """
    base_path, sep, query = template.partition("?")
    return base_path, (query if sep else None)


class ModuleDescriptor(BaseModel):
    """Metadata a plugin module declares about itself."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., description="Display label")
    path: str = Field(..., description="Route template, optionally with a ?query suffix")
    method: str = Field("get", description="HTTP method (case-insensitive)")
    description: Optional[str] = Field(None, description="Module description")
    category: Optional[str] = Field(None, description="Catalog grouping key")
    author: Optional[str] = Field(None, description="Module author")

    @field_validator("method", mode="before")
    @classmethod
    def default_method(cls, v):
        """Treat a missing or empty method as GET."""
        if v is None or v == "":
            return "get"
        return v

    @field_validator("method")
    @classmethod
    def check_method(cls, v: str) -> str:
        """Reject methods the router cannot bind."""
        if v.lower() not in SUPPORTED_METHODS:
            raise ValueError(f"unsupported HTTP method '{v}'")
        return v

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        """The path portion must be non-empty and absolute."""
        base_path, _ = split_route_template(v)
        if not base_path.startswith("/"):
            raise ValueError("path must start with '/'")
        return v

    @property
    def base_path(self) -> str:
        return split_route_template(self.path)[0]

    @property
    def query_template(self) -> Optional[str]:
        return split_route_template(self.path)[1]

    @property
    def resolved_method(self) -> str:
        return self.method.lower()

    @property
    def resolved_path(self) -> str:
        return API_PREFIX + self.base_path


class CatalogEntry(BaseModel):
    """A bound module as it appears in the catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    method: str
    path: str = Field(..., description="Resolved path with the query suffix reattached")
    source: Optional[str] = Field(None, description="File the module was loaded from")

    @classmethod
    def from_descriptor(
        cls, descriptor: ModuleDescriptor, source: Optional[str] = None
    ) -> "CatalogEntry":
        """Project a descriptor onto its resolved, displayable route."""
        path = descriptor.resolved_path
        if descriptor.query_template is not None:
            path = f"{path}?{descriptor.query_template}"
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            category=descriptor.category,
            author=descriptor.author,
            method=descriptor.method,
            path=path,
            source=source,
        )


class CatalogItem(BaseModel):
    """Catalog item as served by ``GET /api/info``."""

    name: str
    desc: Optional[str] = None
    path: str
    author: Optional[str] = None
    method: str


class CatalogCategory(BaseModel):
    """Catalog items sharing one category."""

    name: str
    items: List[CatalogItem] = Field(default_factory=list)


class InfoResponse(BaseModel):
    """Response body of ``GET /api/info`` before the envelope is applied."""

    categories: List[CatalogCategory] = Field(default_factory=list)


class ModuleFailure(BaseModel):
    """A module that was skipped during startup."""

    source: str = Field(..., description="File the module was loaded from")
    kind: FailureKind
    message: str

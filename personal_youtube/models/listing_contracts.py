from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ListingRecord(BaseModel):
    """One video as the host's file picker renders it.

    `title` carries a `.mp4` suffix so the host's extension-based file type
    filtering accepts the entry.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    shorttitle: str
    thumbnail_title: str
    title: str
    thumbnail: str
    thumbnail_width: int
    thumbnail_height: int
    size: str = ""
    date: str = ""
    source: str


class BreadcrumbEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    path: str


def _default_entries() -> list[ListingRecord]:
    return []


def _default_path() -> list[BreadcrumbEntry]:
    return []


class PageResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page: int = Field(ge=1)
    entries: list[ListingRecord] = Field(default_factory=_default_entries)
    total: int | None = None
    has_more: bool
    pages: int
    manage: str
    path: list[BreadcrumbEntry] = Field(default_factory=_default_path)
    dynload: bool = True
    is_search_result: bool = False


class LoginOption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["popup"] = "popup"
    url: str


class RepositoryError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    message: str


def _default_login() -> list[LoginOption]:
    return []


class RepositoryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool
    result: PageResult | None = None
    login: list[LoginOption] = Field(default_factory=_default_login)
    error: RepositoryError | None = None


class LogoutResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool
    login: list[LoginOption] = Field(default_factory=_default_login)


class RepositoryCapabilities(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    supported_filetypes: list[str]
    supported_returntypes: Literal["external"]
    contains_private_data: bool
    global_search: bool


CAPABILITIES = RepositoryCapabilities(
    supported_filetypes=["video"],
    supported_returntypes="external",
    contains_private_data=True,
    global_search=False,
)

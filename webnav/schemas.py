from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field


class NavigatorCreateRequest(BaseModel):
    base_url: str
    login_path: str = ""
    login_payload: Optional[Union[Dict[str, str], str]] = None
    logout_indicator: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    persist_cookies: bool = False
    account: Optional[str] = None
    refetch_on_login: bool = False
    debug: bool = False


class NavigatorCreateResponse(BaseModel):
    navigator_id: str
    host: str
    base_url: str


class FetchRequest(BaseModel):
    path: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"] = "GET"
    payload: Optional[Union[Dict[str, str], str]] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class FetchResponse(BaseModel):
    body: str
    cookies: str
    referer: Optional[str] = None


class CookieStateResponse(BaseModel):
    cookies: str
    paths: Dict[str, str] = Field(default_factory=dict)


class ExtractRequest(BaseModel):
    body: str
    key: str = "value"
    locator: str
    reverse: bool = False


class ExtractResponse(BaseModel):
    value: str

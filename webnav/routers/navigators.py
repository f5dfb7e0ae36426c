import httpx
from fastapi import APIRouter, HTTPException

from webnav.schemas import (
    CookieStateResponse,
    ExtractRequest,
    ExtractResponse,
    FetchRequest,
    FetchResponse,
    NavigatorCreateRequest,
    NavigatorCreateResponse,
)
from webnav.services.extract import MissingFieldError, extract, extract_reverse
from webnav.services.navigator import InvalidBaseUrlError
from webnav.services.registry import NavigatorEntry, navigator_registry
from webnav.services.transport import RequestOptions

router = APIRouter(tags=["navigators"])


def _get_entry(navigator_id: str) -> NavigatorEntry:
    try:
        return navigator_registry.get(navigator_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown navigator: {navigator_id}") from None


@router.post("/navigators", response_model=NavigatorCreateResponse)
def create_navigator(request: NavigatorCreateRequest) -> NavigatorCreateResponse:
    try:
        navigator_id = navigator_registry.create(**request.model_dump())
    except InvalidBaseUrlError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    navigator = navigator_registry.get(navigator_id).navigator
    return NavigatorCreateResponse(navigator_id=navigator_id, host=navigator.host, base_url=navigator.base_url)


@router.post("/navigators/{navigator_id}/fetch", response_model=FetchResponse)
def fetch(navigator_id: str, request: FetchRequest) -> FetchResponse:
    entry = _get_entry(navigator_id)
    options = RequestOptions(method=request.method, headers=dict(request.headers), payload=request.payload)
    with entry.lock:
        navigator = entry.navigator
        try:
            body = navigator.request(request.path, options)
        except httpx.HTTPStatusError as exc:
            raise HTTPException(
                status_code=502,
                detail=f"Upstream returned {exc.response.status_code} for {exc.request.url}",
            ) from exc
        except httpx.HTTPError as exc:
            raise HTTPException(status_code=502, detail=f"Upstream request failed: {exc}") from exc
        return FetchResponse(body=body, cookies=navigator.cookies, referer=navigator.referer)


@router.get("/navigators/{navigator_id}/cookies", response_model=CookieStateResponse)
def get_cookies(navigator_id: str) -> CookieStateResponse:
    jar = _get_entry(navigator_id).navigator.jar
    return CookieStateResponse(cookies=jar.cookie, paths=dict(jar.paths))


@router.delete("/navigators/{navigator_id}")
def delete_navigator(navigator_id: str) -> dict:
    try:
        navigator_registry.remove(navigator_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown navigator: {navigator_id}") from None
    return {"status": "deleted"}


@router.post("/extract", response_model=ExtractResponse)
def extract_value(request: ExtractRequest) -> ExtractResponse:
    finder = extract_reverse if request.reverse else extract
    try:
        return ExtractResponse(value=finder(request.body, request.key, request.locator))
    except MissingFieldError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

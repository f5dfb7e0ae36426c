import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

import httpx

from webnav.config import get_settings

logger = logging.getLogger(__name__)

Payload = Union[str, bytes, Mapping[str, str], None]


@dataclass
class RequestOptions:
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    payload: Payload = None
    # Redirects are always resolved by the navigator, hop by hop.
    follow_redirects: bool = False

    def copy(self) -> "RequestOptions":
        return RequestOptions(
            method=self.method,
            headers=dict(self.headers),
            payload=self.payload,
            follow_redirects=self.follow_redirects,
        )


@dataclass
class TransportResponse:
    status_code: int
    headers: List[Tuple[str, str]]
    text: str

    def header(self, name: str) -> Optional[str]:
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> List[str]:
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def header_map(self) -> Dict[str, Union[str, List[str]]]:
        """Headers keyed by name; repeated headers collapse into a list."""
        merged: Dict[str, Union[str, List[str]]] = {}
        for key, value in self.headers:
            existing = merged.get(key)
            if existing is None:
                merged[key] = value
            elif isinstance(existing, list):
                existing.append(value)
            else:
                merged[key] = [existing, value]
        return merged


class Transport(ABC):
    @abstractmethod
    def fetch(self, url: str, options: RequestOptions) -> TransportResponse:
        raise NotImplementedError


class HttpxTransport(Transport):
    def __init__(self, client: Optional[httpx.Client] = None):
        self.settings = get_settings()
        self.client = client or httpx.Client(
            timeout=self.settings.request_timeout,
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=False,
        )

    def fetch(self, url: str, options: RequestOptions) -> TransportResponse:
        kwargs = {"headers": options.headers, "follow_redirects": False}
        if isinstance(options.payload, (str, bytes)):
            kwargs["content"] = options.payload
        elif options.payload is not None:
            kwargs["data"] = dict(options.payload)

        response = self.client.request(options.method, url, **kwargs)
        if response.status_code >= 400:
            logger.warning("%s %s failed with status %d", options.method, url, response.status_code)
            response.raise_for_status()

        return TransportResponse(
            status_code=response.status_code,
            headers=[(key.decode("latin-1"), value.decode("latin-1")) for key, value in response.headers.raw],
            text=response.text,
        )

    def close(self) -> None:
        self.client.close()

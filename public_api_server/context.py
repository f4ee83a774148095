"""
Framework-independent request, response and per-request context.

The FastAPI layer converts Starlette objects into these so the gateway can
be exercised without an HTTP server.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from public_api_server.config import Settings
from public_api_server.errors import BadRequest
from public_api_server.models import ApiKeyRecord
from public_api_server.smm_provider import SMMProviderClient
from public_api_server.store import RecordStore

ProviderFactory = Callable[[str, str], SMMProviderClient]


@dataclass
class GatewayRequest:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def json(self) -> Any:
        """Parse the body as JSON; malformed or empty bodies are a 400."""
        if not self.body:
            raise BadRequest("Request body must be a JSON object")
        try:
            return json.loads(self.body)
        except ValueError:
            raise BadRequest("Invalid JSON body")


@dataclass
class GatewayResponse:
    status_code: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class RequestContext:
    """Everything a resource handler may use for one request."""
    request: GatewayRequest
    key: ApiKeyRecord
    store: RecordStore
    settings: Settings
    now: datetime
    provider_factory: ProviderFactory
    param: Optional[str] = None

    @property
    def query(self) -> Dict[str, str]:
        return self.request.query

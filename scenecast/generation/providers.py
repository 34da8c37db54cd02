"""
Generation providers

A provider exposes two capabilities: submit a request and check its status.
Which provider serves a given model is decided by the registry, so the
pipeline never needs to know which vendor is behind a model id.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import aiohttp

from .generation_models import GenerationKind, ProviderState, ProviderStatus
from ..utils.config import Config, ModelSpec, ProviderEndpointConfig
from ..utils.errors import ProviderError, UnknownModelError


class GenerationProvider(ABC):
    """Black-box long-running generation capability"""

    name: str = "provider"

    @abstractmethod
    async def submit(self, model: ModelSpec, payload: Dict[str, Any]) -> str:
        """Submit a generation request and return the provider request id"""

    @abstractmethod
    async def check_status(self, model: ModelSpec, request_id: str) -> ProviderStatus:
        """Query the state of a request; result_url is set once completed"""


def extract_field(data: Dict[str, Any], dotted_path: str) -> Optional[Any]:
    """Read `a.b.c` out of nested dicts, returning None when any hop is missing"""
    current: Any = data
    for part in dotted_path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


_STATE_ALIASES = {
    "IN_QUEUE": ProviderState.IN_QUEUE,
    "QUEUED": ProviderState.IN_QUEUE,
    "IN_PROGRESS": ProviderState.IN_PROGRESS,
    "PROCESSING": ProviderState.IN_PROGRESS,
    "COMPLETED": ProviderState.COMPLETED,
    "SUCCEEDED": ProviderState.COMPLETED,
    "FAILED": ProviderState.FAILED,
    "ERROR": ProviderState.FAILED,
    "CANCELLED": ProviderState.FAILED,
}


class QueueApiProvider(GenerationProvider):
    """
    Client for queue-style REST generation APIs.

    POST {base}/{endpoint}                      -> {"request_id": ...}
    GET  {base}/{endpoint}/requests/{id}/status -> {"status": ...}
    GET  {base}/{endpoint}/requests/{id}        -> result document
    """

    def __init__(self, name: str, endpoint: ProviderEndpointConfig, session: aiohttp.ClientSession):
        self.name = name
        self.endpoint = endpoint
        self.session = session
        self.logger = logging.getLogger(f'scenecast.provider.{name}')

    def _headers(self) -> Dict[str, str]:
        api_key = self.endpoint.api_key()
        if not api_key:
            raise ProviderError(
                f"{self.endpoint.api_key_env} environment variable is required for provider '{self.name}'"
            )
        return {
            "Authorization": f"{self.endpoint.auth_scheme} {api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, model: ModelSpec, suffix: str = "") -> str:
        base = self.endpoint.base_url.rstrip('/')
        return f"{base}/{model.endpoint.strip('/')}{suffix}"

    async def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.endpoint.timeout_seconds)
        try:
            async with self.session.request(method, url, headers=self._headers(),
                                            timeout=timeout, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise ProviderError(
                        f"{self.name} returned HTTP {response.status}: {body[:300]}",
                        reason=body[:300],
                    )
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ProviderError(f"{self.name} request failed: {e}", reason=str(e)) from e

    async def submit(self, model: ModelSpec, payload: Dict[str, Any]) -> str:
        data = await self._request_json("POST", self._url(model), json=payload)
        request_id = data.get("request_id")
        if not request_id:
            raise ProviderError(f"No request ID returned by {self.name} for {model.name}")
        self.logger.info(f"✅ Received request ID: {request_id}")
        return request_id

    async def check_status(self, model: ModelSpec, request_id: str) -> ProviderStatus:
        status_data = await self._request_json("GET", self._url(model, f"/requests/{request_id}/status"))
        raw_state = str(status_data.get("status", "")).upper()
        state = _STATE_ALIASES.get(raw_state)
        if state is None:
            return ProviderStatus(state=ProviderState.FAILED,
                                  error=f"Unknown provider status '{raw_state}'")
        if state == ProviderState.FAILED:
            return ProviderStatus(state=state,
                                  error=status_data.get("error") or f"Provider reported {raw_state}")
        if state != ProviderState.COMPLETED:
            return ProviderStatus(state=state)

        result = await self._request_json("GET", self._url(model, f"/requests/{request_id}"))
        result_url = extract_field(result, model.result_field)
        if not result_url:
            return ProviderStatus(state=ProviderState.FAILED,
                                  error=f"No result URL at '{model.result_field}' in result")
        return ProviderStatus(state=ProviderState.COMPLETED, result_url=result_url)


class ProviderRegistry:
    """Maps model ids to their catalog entry and serving provider"""

    def __init__(self,
                 providers: Dict[str, GenerationProvider],
                 video_models: Dict[str, ModelSpec],
                 music_models: Dict[str, ModelSpec]):
        self.providers = providers
        self.models = {
            GenerationKind.VIDEO: dict(video_models),
            GenerationKind.MUSIC: dict(music_models),
        }

    @classmethod
    def from_config(cls, config: Config, session: aiohttp.ClientSession) -> "ProviderRegistry":
        providers = {
            name: QueueApiProvider(name, endpoint, session)
            for name, endpoint in config.providers.items()
        }
        return cls(providers, config.video_models, config.music_models)

    def resolve(self, model_id: str, kind: GenerationKind = GenerationKind.VIDEO) -> Tuple[ModelSpec, GenerationProvider]:
        spec = self.models[kind].get(model_id)
        if spec is None:
            raise UnknownModelError(model_id, kind.value)
        provider = self.providers.get(spec.provider)
        if provider is None:
            raise UnknownModelError(model_id, f"{kind.value} (provider '{spec.provider}' not configured)")
        return spec, provider

    def available_models(self, kind: GenerationKind = GenerationKind.VIDEO):
        return sorted(self.models[kind].keys())

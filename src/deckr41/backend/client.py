"""Backend client: active backend/model selection and request dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from deckr41.backend.events import Started, StreamCallbacks
from deckr41.backend.job import DEFAULT_TIMEOUT, Job
from deckr41.backend.profiles import BackendProfile, autodetect_order, build_profiles
from deckr41.backend.wire import build_request
from deckr41.errors import BackendConfigError
from deckr41.logging import get_logger

log = get_logger("backend")


@dataclass
class AskOptions:
    """One request to the active backend."""

    messages: list[dict[str, str]]
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    callbacks: StreamCallbacks = field(default_factory=StreamCallbacks)

    @classmethod
    def for_prompt(cls, prompt: str, **kwargs: Any) -> AskOptions:
        return cls(messages=[{"role": "user", "content": prompt}], **kwargs)


class BackendClient:
    """Holds backend profiles and the active backend/model.

    Usage:
        client = BackendClient()
        client.setup(active_backend="anthropic")
        job = client.ask(AskOptions.for_prompt("Hello"))
        async for event in job:
            ...

    Args:
        profiles: Profiles by id; defaults to the built-in ones.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        timeout: httpx timeout for each request.
    """

    def __init__(
        self,
        profiles: dict[str, BackendProfile] | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._profiles = profiles if profiles is not None else build_profiles()
        self._transport = transport
        self._timeout = timeout
        self._active_backend: str | None = None
        self._active_model: str | None = None

    def setup(
        self,
        backends: dict[str, dict[str, Any]] | None = None,
        *,
        active_backend: str | None = None,
        active_model: str | None = None,
    ) -> None:
        """Merge overrides, then pick and validate the active backend/model.

        Without an explicit active backend, the first overridden backend
        is used, else the first backend (in autodetect order) whose
        credential is available.

        Raises:
            BackendConfigError: Unknown backend or model, or no credential.
        """
        if backends:
            self._profiles = build_profiles(backends)

        backend_id = active_backend or next(iter(backends or {}), None)
        if backend_id is None:
            backend_id = next(
                (b for b in autodetect_order() if b in self._profiles and self._profiles[b].credential),
                None,
            )
        if backend_id is None:
            raise BackendConfigError(
                "Backend not set. Configure a backend or provide API keys for "
                "OpenAI or Anthropic."
            )

        profile = self._get_profile(backend_id)
        if not profile.credential:
            raise BackendConfigError(
                f"API key not set for backend {backend_id!r}. Set it in the settings "
                f"or in the {profile.credential_env} environment variable."
            )

        model = active_model or profile.default_model
        profile.max_output_tokens(model)

        self._active_backend = backend_id
        self._active_model = model
        log.debug("Backend initialized: %s / %s", backend_id, model)

    def _get_profile(self, backend_id: str) -> BackendProfile:
        try:
            return self._profiles[backend_id]
        except KeyError:
            raise BackendConfigError(
                f"Invalid backend {backend_id!r}, accepted values are {self.backend_names()}"
            ) from None

    @property
    def active_backend(self) -> str | None:
        return self._active_backend

    @property
    def active_model(self) -> str | None:
        return self._active_model

    @property
    def profiles(self) -> dict[str, BackendProfile]:
        return dict(self._profiles)

    def backend_names(self) -> list[str]:
        return sorted(self._profiles)

    def available_models(self) -> list[str]:
        if self._active_backend is None:
            return []
        return sorted(self._profiles[self._active_backend].available_models)

    def set_active_backend(self, backend_id: str) -> None:
        """Switch backend; the model resets to the backend's default."""
        profile = self._get_profile(backend_id)
        self._active_backend = backend_id
        self._active_model = profile.default_model

    def set_active_model(self, model: str) -> None:
        profile = self._require_active()
        profile.max_output_tokens(model)
        self._active_model = model

    def _require_active(self) -> BackendProfile:
        if self._active_backend is None:
            raise BackendConfigError("No active backend; call setup() first")
        return self._profiles[self._active_backend]

    def ask(self, opts: AskOptions) -> Job:
        """Start a streaming request on the running event loop.

        Raises:
            BackendConfigError: No usable active backend.
        """
        profile = self._require_active()
        model = self._active_model or profile.default_model

        request = build_request(
            profile,
            model,
            messages=opts.messages,
            system_prompt=opts.system_prompt,
            temperature=opts.temperature,
            max_tokens=opts.max_tokens,
        )
        started = Started(
            backend=profile.id, model=model, temperature=request.body["temperature"]
        )
        log.info(
            "Asking %s/%s (temperature=%s, max_tokens=%s)",
            profile.id,
            model,
            started.temperature,
            request.body["max_tokens"],
        )
        return Job(
            request,
            family=profile.family,
            started=started,
            callbacks=opts.callbacks,
            transport=self._transport,
            timeout=self._timeout,
        )

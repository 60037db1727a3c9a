"""Language-model access for the summarization stages.

``LanguageModel`` is the seam the stages depend on; ``AnthropicLanguageModel``
implements it with the anthropic SDK. SDK-level retries are disabled so the
shared ``ProviderCallPolicy`` owns timeout and backoff.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from anthropic import Anthropic

from .. import config
from ..exceptions import ProviderError
from ..utils.provider_call import ProviderCallPolicy
from ..utils.retryable_errors import extract_status_code

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Anthropic"


@runtime_checkable
class LanguageModel(Protocol):
    """Text-in, text-out model call used by every stage."""

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        model: Optional[str] = None,
        operation_name: str = "llm call",
    ) -> str:
        """Return the model's text response.

        Raises:
            ProviderError: If the call fails after retries
        """
        ...


class AnthropicLanguageModel:
    """Claude via ``client.messages.create``."""

    def __init__(
        self,
        cfg: config.Config,
        client: Optional[Any] = None,
        policy: Optional[ProviderCallPolicy] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.default_model = cfg.agent_model
        self.temperature = cfg.agent_temperature
        self.policy = policy or ProviderCallPolicy.from_config(cfg)
        self.log = log or logger
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self.cfg.require("anthropic_api_key", PROVIDER_NAME)
            self._client = Anthropic(
                api_key=api_key,
                timeout=float(self.cfg.provider_timeout_seconds),
                max_retries=0,
            )
        return self._client

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        model: Optional[str] = None,
        operation_name: str = "llm call",
    ) -> str:
        model_name = model or self.default_model
        return self.policy.call(
            lambda: self._request(system, prompt, max_tokens, model_name),
            operation_name=operation_name,
            log=self.log,
        )

    def _request(self, system: str, prompt: str, max_tokens: int, model: str) -> str:
        try:
            response = self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(
                message=f"Anthropic API call failed: {exc}",
                provider=PROVIDER_NAME,
                status_code=extract_status_code(exc),
            ) from exc

        blocks = getattr(response, "content", None) or []
        texts = [getattr(block, "text", None) for block in blocks]
        text = "".join(t for t in texts if isinstance(t, str))
        if not text:
            raise ProviderError(
                message="Anthropic response contained no text content",
                provider=PROVIDER_NAME,
                status_code=502,
            )
        usage = getattr(response, "usage", None)
        if usage is not None:
            self.log.debug(
                "Anthropic usage: %s input / %s output tokens",
                getattr(usage, "input_tokens", "?"),
                getattr(usage, "output_tokens", "?"),
            )
        return text

"""Chat completion for the answer flow, through LiteLLM.

Only ``deepdocs ask`` talks to an LLM; search and embeddings stay local.
Models are LiteLLM strings such as ``openai/gpt-4o-mini`` or ``ollama/llama3``.
A bare model name is treated as OpenAI, like LiteLLM does.
"""

from __future__ import annotations

import logging
import os

import litellm

from deepdocs.errors import GenerationFailure

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

DEFAULT_PROVIDER = "openai"

# Providers that run locally or authenticate without a *_API_KEY variable.
_KEYLESS_PROVIDERS = frozenset(
    {"ollama", "ollama_chat", "lm_studio", "llamafile", "vllm", "bedrock", "vertex_ai"}
)


def provider_of(model: str) -> str:
    if "/" not in model:
        return DEFAULT_PROVIDER
    return model.split("/", 1)[0].lower()


def api_key_env(model: str) -> str | None:
    """Name of the environment variable LiteLLM reads the key for *model* from.

    None for providers that need no key. Everything else follows LiteLLM's
    ``<PROVIDER>_API_KEY`` convention (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...).
    """
    provider = provider_of(model)
    if provider in _KEYLESS_PROVIDERS:
        return None
    return f"{provider.upper()}_API_KEY"


def validate_api_key(model: str) -> None:
    """Fail fast, before retrieval, when the key for *model* is not set.

    Raises:
        EnvironmentError: If the provider needs a key and it is missing.
    """
    env_var = api_key_env(model)
    if env_var and not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider_of(model)}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.0,
    num_retries: int = 2,
) -> str:
    """Send *messages* to *model* and return the first choice's text.

    Transient errors are retried by LiteLLM (*num_retries*, exponential
    backoff). Whatever is still failing afterwards is raised as
    GenerationFailure.
    """
    logger.debug("Completion request: model=%s, %d messages", model, len(messages))
    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
    except Exception as exc:  # LiteLLM maps provider errors onto many types
        raise GenerationFailure(f"{model}: {exc}") from exc
    return response.choices[0].message.content or ""

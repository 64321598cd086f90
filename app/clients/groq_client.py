import json
import logging

from groq import AsyncGroq

from app.config import settings
from app.errors import ConfigurationError, LLMResponseError

logger = logging.getLogger(__name__)


class GroqClient:
    """Async wrapper around the official Groq SDK for structured course output.

    Usage::

        groq = GroqClient()                               # key + model from settings
        data = await groq.chat_json(messages, MY_SCHEMA)  # parsed dict

    The client is built once at startup; a missing API key is a
    :class:`ConfigurationError` so the process fails before serving requests.
    """

    def __init__(self, model: str | None = None, api_key: str | None = None) -> None:
        key = api_key or settings.groq_api_key
        if not key:
            raise ConfigurationError("GROQ_API_KEY is not configured.")
        self._model = model or settings.default_model
        self._client = AsyncGroq(api_key=key)

    @property
    def default_model(self) -> str:
        return self._model

    async def chat_json(
        self,
        messages: list[dict],
        response_schema: dict,
        *,
        schema_name: str = "response",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        """Structured-output completion using Groq's strict JSON Schema mode.

        *response_schema* must be a valid JSON Schema dict with
        ``"additionalProperties": false`` on every object and every property
        listed in ``"required"``.

        Returns the parsed JSON. Raises :class:`LLMResponseError` when the
        model answers with nothing or with text that is not JSON.
        """
        kwargs: dict = {
            "model": model or self._model,
            "messages": messages,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "strict": True,
                    "schema": response_schema,
                },
            },
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.info("Requesting %s from %s", schema_name, kwargs["model"])
        resp = await self._client.chat.completions.create(**kwargs)
        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise LLMResponseError(f"Model returned no content for {schema_name}.")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Model returned invalid JSON for {schema_name}: {e}") from e

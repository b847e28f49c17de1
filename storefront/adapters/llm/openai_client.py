"""OpenAI LLM client adapter."""

import json
from typing import Any, AsyncIterator

from openai import AsyncOpenAI

from storefront.adapters.llm.base import AbstractLLMClient

_PASSTHROUGH_PARAMS = {
    "max_tokens",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
    "seed",
}


class OpenAIClient(AbstractLLMClient):
    """Client for OpenAI chat completions (plain, streamed and JSON).

    Uses the official OpenAI Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: OpenAI API key for authentication.
            model: Model name (e.g., "gpt-4o-mini").
            base_url: Optional custom base URL for OpenAI API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model

    def _request_params(
        self,
        messages: list[dict[str, str]],
        kwargs: dict[str, Any],
        *,
        default_temperature: float,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.pop("temperature", default_temperature),
        }
        for param in _PASSTHROUGH_PARAMS:
            if param in kwargs:
                params[param] = kwargs[param]
        return params

    async def generate_text(self, prompt: str, **kwargs: Any) -> str:
        params = self._request_params(
            [{"role": "user", "content": prompt}],
            kwargs,
            default_temperature=0.7,
        )
        try:
            response = await self.client.chat.completions.create(**params)
            content = response.choices[0].message.content
        except Exception as exc:
            raise RuntimeError(f"OpenAI API error: {str(exc)}") from exc

        if not content:
            raise RuntimeError("LLM returned empty response")
        return content

    async def stream_text(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
        """Yield content deltas as they arrive.

        Raises:
            RuntimeError: If the request fails or the stream breaks.
        """
        params = self._request_params(
            [{"role": "user", "content": prompt}],
            kwargs,
            default_temperature=0.7,
        )
        try:
            stream = await self.client.chat.completions.create(**params, stream=True)
        except Exception as exc:
            raise RuntimeError(f"OpenAI API error: {str(exc)}") from exc

        try:
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as exc:
            raise RuntimeError(f"OpenAI stream error: {str(exc)}") from exc
        finally:
            # Releases the HTTP connection when the consumer stops early
            await stream.close()

    async def generate_json(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Generate structured JSON using OpenAI chat completions.

        Args:
            prompt: User prompt to send to the model.
            schema: Optional JSON schema; switches on json_object mode and is
                appended to the system message.
            **kwargs: Provider options (temperature, max_tokens, top_p, etc.).

        Returns:
            dict[str, Any]: Parsed JSON object from the LLM response.

        Raises:
            RuntimeError: If the API call fails or the response is not valid JSON.
        """
        system = "Output JSON only. No extra text or markdown formatting."
        if schema is not None:
            system += f"\nThe JSON must match this schema:\n{json.dumps(schema)}"

        params = self._request_params(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            kwargs,
            default_temperature=0.2,
        )
        if schema is not None:
            params["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**params)
            content = response.choices[0].message.content
        except Exception as exc:
            raise RuntimeError(f"OpenAI API error: {str(exc)}") from exc

        if content is None:
            raise RuntimeError("LLM returned empty response")

        try:
            return json.loads(content.strip())
        except json.JSONDecodeError as exc:
            raise RuntimeError(
                f"LLM returned invalid JSON: {str(exc)}; "
                "consider using stricter prompts or schema enforcement"
            ) from exc

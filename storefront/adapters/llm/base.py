from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class AbstractLLMClient(ABC):
	"""Interface for LLM clients producing text, streamed text, or JSON."""

	@abstractmethod
	async def generate_text(self, prompt: str, **kwargs: Any) -> str:
		"""Generate a complete text response.

		Args:
			prompt: User prompt to send to the model.
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			str: The model's reply.

		Raises:
			RuntimeError: If the provider call fails or returns nothing.
		"""
		...

	@abstractmethod
	def stream_text(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
		"""Stream the model's reply as text chunks.

		The iterator is one-shot; closing it early releases the upstream
		connection.

		Raises:
			RuntimeError: If the provider call fails before or during streaming.
		"""
		...

	@abstractmethod
	async def generate_json(
		self,
		prompt: str,
		*,
		schema: dict[str, Any] | None = None,
		**kwargs: Any,
	) -> dict[str, Any]:
		"""Generate a structured JSON response from the model.

		Args:
			prompt: User or system prompt to send to the model.
			schema: Optional JSON schema to validate/enforce on the response.
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			dict[str, Any]: Parsed JSON object returned by the model.

		Raises:
			RuntimeError: If the provider call fails or the response cannot be parsed/validated.
		"""
		...

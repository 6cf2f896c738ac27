import logging
from typing import Dict, List, Sequence
from urllib.parse import urlparse

from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from app.config import Settings
from app.errors import GenerationError
from db.models import Message, Role

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are RuleBot, a helpful assistant. "
    "Use the earlier turns of the conversation as context "
    "and answer the user's latest message clearly and concisely."
)


def normalize_azure_endpoint(endpoint: str, api_version: str):
    """
    The OpenAI SDK requires the classic Azure OpenAI endpoint (openai.azure.com).
    A Foundry URL (services.ai.azure.com) is converted to the classic one and
    pinned to an API version the classic endpoint supports.
    """
    if endpoint and "services.ai.azure.com" in endpoint:
        parsed = urlparse(endpoint)
        resource_name = parsed.netloc.split(".")[0]
        endpoint = f"https://{resource_name}.openai.azure.com"
        if api_version and api_version >= "2025-01-01":
            api_version = "2024-08-01-preview"
    return endpoint, api_version


def build_openai_client(settings: Settings):
    if settings.azure_openai_endpoint:
        endpoint, api_version = normalize_azure_endpoint(
            settings.azure_openai_endpoint, settings.azure_openai_api_version
        )
        return AsyncAzureOpenAI(
            api_key=settings.generation_api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
            max_retries=0,
        )
    return AsyncOpenAI(
        api_key=settings.generation_api_key,
        base_url=settings.generation_base_url,
        max_retries=0,
    )


def build_messages(history: Sequence[Message], new_message: str) -> List[Dict[str, str]]:
    """Turn stored history plus the new user message into a chat-completions payload."""
    turns = list(history)
    # The new user message is normally already the last stored row
    if turns and turns[-1].role == Role.USER.value and turns[-1].content == new_message:
        turns = turns[:-1]

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for m in turns:
        messages.append({"role": Role(m.role).value, "content": m.content})
    messages.append({"role": Role.USER.value, "content": new_message})
    return messages


class GenerationClient:
    """Single-shot calls to an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, settings: Settings, client=None):
        self.model = settings.generation_model
        self.temperature = settings.generation_temperature
        self.max_tokens = settings.generation_max_tokens
        self.client = client if client is not None else build_openai_client(settings)

    async def generate(self, history: Sequence[Message], new_message: str) -> str:
        messages = build_messages(history, new_message)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise GenerationError(f"Chat completion failed (404=wrong endpoint/model name): {e}") from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise GenerationError("Chat completion returned no choices")
        answer = getattr(choices[0].message, "content", None)
        if not answer:
            raise GenerationError("Chat completion returned an empty message")

        logger.info("Generated reply: %d chars from %d history turns", len(answer), len(messages) - 2)
        return answer

    async def close(self) -> None:
        await self.client.close()

import json
import logging
import os
import re
from typing import Any, Protocol

import openai

from domain.errors import GenerationParseError, UpstreamUnavailable


logger = logging.getLogger(__name__)


MAX_TOKENS = 3000
TIMEOUT = 60 * 2
DEFAULT_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

FENCE = re.compile(r"```(?:json)?\n?")


class Oracle(Protocol):
    """Opaque text completion. JSON replies are a prompting convention only."""

    async def complete(self, prompt: str) -> str:
        ...


async def quick_chat(
    msg: str,
    *,
    openai_client: openai.AsyncClient,
    model: str | None = None,
    max_tokens: int = MAX_TOKENS,
) -> str:
    model = DEFAULT_MODEL if model is None else model
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": msg}],
        max_tokens=max_tokens,
    )
    ans = resp.choices[0].message.content or ""
    return ans.strip()


class OpenAIOracle:
    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        *,
        model: str | None = None,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        # One attempt per call; retries belong to the caller.
        self.openai_client = (
            openai.AsyncClient(max_retries=0, timeout=TIMEOUT)
            if openai_client is None
            else openai_client
        )
        self.model = DEFAULT_MODEL if model is None else model
        self.max_tokens = max_tokens

    async def complete(self, prompt: str) -> str:
        try:
            return await quick_chat(
                prompt,
                openai_client=self.openai_client,
                model=self.model,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error("Oracle call failed: %r", e)
            raise UpstreamUnavailable(
                "Recipe generation is unavailable. Please try again."
            ) from e


def strip_fences(text: str) -> str:
    return FENCE.sub("", text).strip()


def parse_json_reply(text: str, *, error: str) -> Any:
    """Parse a possibly fenced JSON reply, raising `GenerationParseError(error)`."""
    try:
        return json.loads(strip_fences(text))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse oracle reply: %s", text)
        raise GenerationParseError(error) from e

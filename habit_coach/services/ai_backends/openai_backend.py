import time
import logging
import httpx

from habit_coach.config import settings
from habit_coach.services.ai_backends.base import AIGatewayError, BaseAIBackend

logger = logging.getLogger(__name__)


class OpenAIBackend(BaseAIBackend):
    """Any OpenAI-compatible ``/chat/completions`` endpoint in JSON mode."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        root = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.url = f"{root}/chat/completions"
        self.model = model or settings.OPENAI_MODEL
        self.client = client or httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, system_instruction: str, user_prompt: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": 0.7,
            "response_format": {"type": "json_object"},
        }

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        max_tokens: int = 300,
    ) -> str:
        start_time = time.monotonic()

        try:
            response = await self.client.post(
                self.url,
                headers=self._headers(),
                json=self._payload(system_instruction, user_prompt, max_tokens),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error("%s API timeout", self.name)
            raise AIGatewayError(f"{self.name} timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error("%s API error: %s", self.name, e.response.status_code)
            raise AIGatewayError(
                f"{self.name} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("%s transport error: %s", self.name, e)
            raise AIGatewayError(f"{self.name} transport error") from e
        except ValueError as e:
            raise AIGatewayError(f"{self.name} returned a non-JSON body") from e

        elapsed = int((time.monotonic() - start_time) * 1000)
        logger.info("%s response in %dms", self.name, elapsed)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIGatewayError(f"{self.name} response has no choices") from e
        if not content:
            raise AIGatewayError(f"{self.name} returned empty content")
        return content.strip()

    async def aclose(self) -> None:
        await self.client.aclose()

import httpx

from habit_coach.config import settings
from habit_coach.services.ai_backends.openai_backend import OpenAIBackend


class OpenRouterBackend(OpenAIBackend):
    name = "openrouter"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            api_key=settings.OPENROUTER_API_KEY if api_key is None else api_key,
            base_url="https://openrouter.ai/api/v1",
            model=model or settings.OPENROUTER_MODEL,
            client=client,
        )

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["HTTP-Referer"] = "https://github.com/habit-coach"
        return headers

from abc import ABC, abstractmethod


class AIGatewayError(Exception):
    """The completion endpoint could not produce text (network, status, shape)."""


class BaseAIBackend(ABC):
    name: str = "base"

    @abstractmethod
    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        max_tokens: int = 300,
    ) -> str:
        pass

    async def aclose(self) -> None:
        pass

"""LanguageModel adapters."""

import logging

from lingoflow.domain.ports import LanguageModel

REWRITE_SYSTEM_PROMPT = (
    "You write short, natural example sentences for language learners. "
    "Reply with exactly one sentence and nothing else."
)
VERIFY_SYSTEM_PROMPT = (
    "You check flashcard glosses. Reply with a concise English gloss for the "
    "given term, correcting the candidate if it is wrong. Reply with the gloss only."
)


class EchoLanguageModel(LanguageModel):
    """Offline model: returns the prompt and accepts every candidate gloss."""

    async def rewrite(self, prompt: str) -> str:
        return prompt

    async def verify(self, candidate_gloss: str, term: str) -> str:
        return candidate_gloss


class OpenAILanguageModel(LanguageModel):
    """Chat-completions backed model (requires an OpenAI API key)."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 30.0):
        from openai import AsyncOpenAI

        self.logger = logging.getLogger(__name__)
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete(self, system: str, user: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0.3,
        )
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ValueError(f"Empty completion from {self.model}")
        return content

    async def rewrite(self, prompt: str) -> str:
        return await self._complete(REWRITE_SYSTEM_PROMPT, prompt)

    async def verify(self, candidate_gloss: str, term: str) -> str:
        self.logger.debug(f"Verifying gloss for '{term}'")
        return await self._complete(
            VERIFY_SYSTEM_PROMPT, f"Term: {term}\nCandidate gloss: {candidate_gloss}"
        )

    async def close(self) -> None:
        await self._client.close()

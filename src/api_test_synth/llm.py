"""LLM client wrapper around litellm, used by the AI scenario generator."""

import os

from litellm import completion

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MODEL_ENV_VAR = "API_TEST_SYNTH_MODEL"


class LlmClient:
    """Wrapper for LLM API calls via litellm."""

    def __init__(self, model: str | None = None, temperature: float = 0.2):
        self.model = model or os.getenv(MODEL_ENV_VAR) or DEFAULT_MODEL
        self.temperature = temperature

    def call(self, system: str, user: str) -> str:
        """Send a system+user message to the LLM and return the response text."""
        response = completion(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return response.choices[0].message.content or ""

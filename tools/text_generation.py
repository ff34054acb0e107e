"""Text-generation service adapter.

The pipeline talks to the language model through one narrow call,
``complete(system_prompt, user_prompt, temperature, max_tokens) -> str``.
``GeminiTextGenerator`` implements it with the google-genai async client;
tests substitute any object with the same coroutine.
"""

import asyncio
import os
from typing import Optional, Protocol

from google import genai
from google.genai import types
from loguru import logger

from contractgen.error_handling import ConfigurationError, ReviewServiceError


class TextGenerator(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        ...


class GeminiTextGenerator:
    """Gemini-backed text generation with a bounded request time."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-2.5-flash-lite",
        timeout_seconds: float = 30.0,
        json_output: bool = True
    ):
        """Initialize the Gemini client.

        Args:
            api_key: Google API key (defaults to GOOGLE_API_KEY env var)
            model_name: Gemini model to use
            timeout_seconds: Upper bound for a single request
            json_output: Ask the model for an application/json response

        Raises:
            ConfigurationError: If no API key is available
        """
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ConfigurationError("No API key provided for the text-generation service")

        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.json_output = json_output
        self.client = genai.Client(api_key=self.api_key)

        logger.info("Gemini text generator initialized", model=model_name, timeout_seconds=timeout_seconds)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 2000
    ) -> str:
        """Run one completion.

        Raises:
            ReviewServiceError: On timeout, API failure or an empty response
        """
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if self.json_output else None,
        )
        contents = [types.Content(role="user", parts=[types.Part(text=user_prompt)])]

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=contents,
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ReviewServiceError(
                f"Text generation timed out after {self.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise ReviewServiceError(f"Text generation failed: {e}") from e

        text = response.text if response is not None else None
        if not text or not text.strip():
            raise ReviewServiceError("Text generation returned an empty response")
        return text

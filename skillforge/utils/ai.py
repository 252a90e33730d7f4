# skillforge/utils/ai.py
"""
AI utility for connecting with an OpenAI-compatible chat completions API
Used by the tutor, resume analysis, summary and quiz features
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from skillforge.core.config import Settings, settings
from skillforge.core.exceptions import AIServiceUnavailable

logger = logging.getLogger(__name__)


class Completion(BaseModel):
    text: str
    total_tokens: int = 0


def extract_json_from_response(text: str) -> Optional[Any]:
    """
    Extract and parse JSON from an AI response that may contain markdown formatting

    Args:
        text: Raw text response that may contain ```json``` markers

    Returns:
        Parsed JSON object (dict or list), or None when the text is not JSON
    """
    # Pattern matches ```json\n{...}\n``` or ```\n{...}\n```
    json_pattern = r"```(?:json)?\s*\n?([\s\S]*?)\n?```"
    match = re.search(json_pattern, text)
    json_text = match.group(1).strip() if match else text.strip()

    try:
        return json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.debug(f"AI response is not JSON ({e}); {len(text)} characters")
        return None


class AIService:
    """Service to interact with the language model API"""

    def __init__(self, config: Settings = settings):
        self.api_key = config.ai_api_key
        self.api_endpoint = config.ai_api_endpoint
        self.model = config.ai_model

        # No automatic retries: a failed call surfaces as 502 to the client
        self.client = AsyncOpenAI(
            api_key=self.api_key or "not-configured",
            base_url=(
                self.api_endpoint.replace("/chat/completions", "")
                if self.api_endpoint
                else None
            ),
            timeout=config.ai_timeout,
            max_retries=0,
        )

        if not self.api_key:
            logger.warning("AI_API_KEY not configured. AI features will be disabled.")

    async def close(self):
        """Close the OpenAI client and release resources"""
        await self.client.close()

    def is_configured(self) -> bool:
        """Check if AI service is properly configured"""
        return bool(self.api_key and self.model)

    async def _make_request(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """
        Make a single chat completion request

        Raises:
            AIServiceUnavailable: not configured, timed out, or the API failed
        """
        if not self.is_configured():
            raise AIServiceUnavailable("AI service is not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError:
            logger.error("AI API request timed out")
            raise AIServiceUnavailable("AI service request timed out")
        except openai.APIError as e:
            logger.error(f"AI API request error: {e}")
            raise AIServiceUnavailable()

        if not response.choices or response.choices[0].message.content is None:
            logger.error(f"Empty AI response. Model: {self.model}")
            raise AIServiceUnavailable("AI service returned an empty response")

        usage = response.usage.total_tokens if response.usage else 0
        return Completion(
            text=response.choices[0].message.content.strip(), total_tokens=usage
        )

    async def generate_completion(
        self,
        prompt: str,
        system_message: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """
        Generate a text completion

        Args:
            prompt: The user prompt/question
            system_message: Optional system message to set context
            temperature: Controls randomness (0.0 to 2.0)
            max_tokens: Maximum tokens in response
        """
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        return await self._make_request(
            messages=messages, temperature=temperature, max_tokens=max_tokens
        )

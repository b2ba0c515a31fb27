# src/agents/llm_agent.py
from openai import OpenAI, RateLimitError
from typing import Any, List, Optional
from src.config.settings import Settings
from src.models.schemas import Classification, UNCATEGORIZED
import json
import math
import re
import time
import logging

logger = logging.getLogger(__name__)

# Widest match from the first "{" to the last "}"
JSON_OBJECT_PATTERN = re.compile(r'\{.*\}', re.DOTALL)


class ChatAgent:
    """OpenAI Chatbot client."""

    def __init__(self, config: Settings):
        self.config = config
        self.client = OpenAI(
            api_key=config.openai_api_key,
            timeout=config.openai_timeout_seconds
        )
        self.model = config.openai_llm_model
        self.max_retries = max(1, config.openai_max_retries)

    def chat(self, messages: List[dict], max_tokens: Optional[int] = None) -> str:
        """
        Send a list of messages to the OpenAI chat model and get the response.
        Uses exponential backoff retry logic for rate limit errors.

        Args:
            messages: List of message dicts (e.g., [{"role": "user", "content": "Hello"}])
            max_tokens: Optional upper bound on generated tokens

        Returns:
            The assistant's reply as a string (empty if the model returned no content).
        """
        base_delay = 1.0

        request = {"model": self.model, "messages": messages}
        if max_tokens is not None:
            request["max_completion_tokens"] = max_tokens

        for attempt in range(self.max_retries):
            try:
                response = self.client.chat.completions.create(**request)
                return response.choices[0].message.content or ""
            except RateLimitError:
                if attempt == self.max_retries - 1:
                    raise

                delay = base_delay * (2 ** attempt)
                logger.warning(f"Rate limit hit on chat completion. Retrying in {delay}s... (attempt {attempt + 1}/{self.max_retries})")
                time.sleep(delay)

    def run(self, prompt: str, max_tokens: int) -> str:
        """
        Send a single prompt to the OpenAI chat model and get the response.

        Args:
            prompt: The prompt as a string.
            max_tokens: Upper bound on generated tokens.

        Returns:
            The assistant's reply as a string.
        """
        messages = [{"role": "user", "content": prompt}]
        return self.chat(messages, max_tokens=max_tokens)


class FeedbackClassifier:
    """Classify feedback text into a short category and a sentiment score.

    ``classify`` always returns a valid Classification. Any failure of the
    completion call or any unusable model output resolves to
    ``Classification.fallback()``.
    """

    def __init__(self, config: Settings, agent: Optional[ChatAgent] = None):
        """
        Initialize the feedback classifier.

        Args:
            config: Settings object with OpenAI and classification configuration
            agent: Completion client (a ChatAgent is created from config if None)
        """
        self.agent = agent if agent is not None else ChatAgent(config)
        self.max_tokens = config.classification_max_tokens
        self.max_feedback_chars = config.max_feedback_chars

    def build_prompt(self, feedback_text: str) -> str:
        """Build the classification prompt, bounding the embedded feedback length."""
        if len(feedback_text) > self.max_feedback_chars:
            feedback_text = feedback_text[:self.max_feedback_chars]

        return f"""Analyze this customer feedback and respond with ONLY a JSON object (no markdown, no code blocks, just raw JSON):
{{
  "category": "A 1-3 word category describing the main pain point or topic",
  "sentiment": A number between -1.0 (very negative) and 1.0 (very positive)
}}

Feedback: "{feedback_text}\""""

    def classify(self, feedback_text: str) -> Classification:
        """
        Classify one piece of feedback.

        Args:
            feedback_text: Raw customer feedback

        Returns:
            Classification with a category and a sentiment in [-1, 1]
        """
        prompt = self.build_prompt(feedback_text)

        try:
            response = self.agent.run(prompt, self.max_tokens)
        except Exception as e:
            logger.warning(f"Classification call failed, using fallback: {e}")
            return Classification.fallback()

        return self.parse_response(response)

    def parse_response(self, response: Optional[str]) -> Classification:
        """Turn raw model output into a Classification, falling back on anything unusable."""
        response = response or ""

        match = JSON_OBJECT_PATTERN.search(response)
        if not match:
            logger.warning(f"No JSON object in classification response: {response[:200]!r}")
            return Classification.fallback()

        try:
            parsed = json.loads(match.group(0))
        except (ValueError, RecursionError) as e:
            logger.warning(f"Failed to parse classification response: {e}; response: {response[:200]!r}")
            return Classification.fallback()

        if not isinstance(parsed, dict):
            logger.warning(f"Classification response is not a JSON object: {response[:200]!r}")
            return Classification.fallback()

        category = self._usable_category(parsed.get("category"))
        sentiment = self._usable_sentiment(parsed.get("sentiment"))
        if category is None and sentiment is None:
            logger.warning(f"Classification response has no usable fields: {response[:200]!r}")
            return Classification.fallback()

        return Classification(
            category=category if category is not None else UNCATEGORIZED,
            sentiment=sentiment if sentiment is not None else 0.0
        )

    @staticmethod
    def _usable_category(value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _usable_sentiment(value: Any) -> Optional[float]:
        # bool is an int subclass but not a score
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        return float(max(-1.0, min(1.0, value)))

# insight.py

import logging

import openai
from openai import OpenAI

from errors import UpstreamAPIError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_MAX_TOKENS = 150

PROMPT_TEMPLATE = (
    "Provide medical advice for a patient named {name}, aged {age}, "
    "with the following medical history: {medical_history}."
)


def build_prompt(record):
    """record is the registry's (name, age, medicalHistory) tuple."""
    name, age, medical_history = record[0], record[1], record[2]
    return PROMPT_TEMPLATE.format(name=name, age=age, medical_history=medical_history)


def _error_message(exc):
    # Prefer the API's own message over the SDK's "Error code: ... - {body}" text
    if isinstance(exc, openai.APIStatusError) and isinstance(exc.body, dict):
        body = exc.body.get('error', exc.body)
        if isinstance(body, dict) and body.get('message'):
            return body['message']
    return getattr(exc, 'message', None) or str(exc)


class InsightGenerator:
    """Sends the prompt for a record to the text-generation API and hands back its answer as-is."""

    def __init__(self, client, model=DEFAULT_MODEL, max_tokens=DEFAULT_MAX_TOKENS):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config):
        return cls(OpenAI(api_key=config.OPENAI_API), model=config.OPENAI_MODEL, max_tokens=config.INSIGHT_MAX_TOKENS)

    def generate(self, record):
        prompt = build_prompt(record)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            logger.error("Error generating insight: %s", _error_message(e))
            return None, UpstreamAPIError(_error_message(e))
        return content.strip(), None

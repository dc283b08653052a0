"""
AI provider integration: Claude (primary) with OpenAI fallback.
"""
import json
import logging
import os
import re

logger = logging.getLogger(__name__)

ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-sonnet-4-5')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o')
TEMPERATURE = 0.3
MAX_TOKENS = 8192
# Seconds; the engine's seam timeout still applies on top of this
REQUEST_TIMEOUT = float(os.getenv('AI_TIMEOUT', '170'))


def _clean_json(text: str) -> dict:
    """Strip markdown fences and surrounding prose, then parse JSON."""
    cleaned = re.sub(r'```(?:json)?\s*', '', text).strip()
    cleaned = cleaned.rstrip('`').strip()
    match = re.search(r'\{[\s\S]*\}', cleaned)
    if match:
        cleaned = match.group(0)
    return json.loads(cleaned)


def is_configured() -> bool:
    return bool(os.getenv('ANTHROPIC_API_KEY') or os.getenv('OPENAI_API_KEY'))


def call_ai(system_prompt: str, user_message: str, max_tokens: int = MAX_TOKENS):
    """
    Call the first configured AI provider.
    Claude is tried first; OpenAI is used when Claude is not configured or fails.
    Returns tuple: (parsed_response_dict, provider_name, model_name)

    Raises:
        RuntimeError: no provider configured.
        json.JSONDecodeError: the provider answered with something that is not JSON.
    """
    anthropic_key = os.getenv('ANTHROPIC_API_KEY')
    openai_key = os.getenv('OPENAI_API_KEY')

    if anthropic_key:
        try:
            return _call_claude(anthropic_key, system_prompt, user_message, max_tokens)
        except json.JSONDecodeError:
            raise
        except Exception as e:
            if not openai_key:
                logger.error(f"Claude call failed: {e}")
                raise
            logger.warning(f"Claude call failed, falling back to OpenAI: {e}")

    if openai_key:
        try:
            return _call_openai(openai_key, system_prompt, user_message, max_tokens)
        except Exception as e:
            logger.error(f"OpenAI call failed: {e}")
            raise

    raise RuntimeError("No AI provider configured. Set ANTHROPIC_API_KEY or OPENAI_API_KEY.")


def _call_claude(api_key: str, system_prompt: str, user_message: str, max_tokens: int):
    import anthropic
    client = anthropic.Anthropic(api_key=api_key, timeout=REQUEST_TIMEOUT)
    message = client.messages.create(
        model=ANTHROPIC_MODEL,
        max_tokens=max_tokens,
        temperature=TEMPERATURE,
        system=system_prompt,
        messages=[{"role": "user", "content": user_message}],
    )
    text = "".join(
        block.text for block in message.content if block.type == "text"
    )
    parsed = _clean_json(text)
    return (parsed, "claude", ANTHROPIC_MODEL)


def _call_openai(api_key: str, system_prompt: str, user_message: str, max_tokens: int):
    import openai
    client = openai.OpenAI(api_key=api_key, timeout=REQUEST_TIMEOUT)
    response = client.chat.completions.create(
        model=OPENAI_MODEL,
        temperature=TEMPERATURE,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
    )
    text = response.choices[0].message.content
    parsed = _clean_json(text)
    return (parsed, "openai", OPENAI_MODEL)

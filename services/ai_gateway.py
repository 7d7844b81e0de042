"""AI gateway: web search and the generative model.

``search_online`` absorbs every failure into a fallback string.
``call_generative_model`` propagates failures as ``UpstreamError``.
``process_user_prompt`` is the chat entry point and never raises: any failure
becomes an apologetic text answer.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from langchain_core.messages import AIMessage, HumanMessage

from shared.config import Configuration
from shared.context import RequestContext
from shared.errors import NotFoundError, UpstreamError
from shared.utils import get_text_llm

from .activity import CHAT_MESSAGE, ONLINE_SEARCH, log_activity, log_error
from .prompts import CHAT_PROMPT, SEARCH_CONTEXT_BLOCK
from .secrets import SecretStore

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
SEARCH_RESULT_COUNT = 3
NO_RESULTS_TEXT = "No relevant information found online."
SEARCH_FAILED_TEXT = "Could not perform an online search at this time."


@dataclass
class Generation:
    text: str
    total_tokens: int = 0


def _coerce_text(message: AIMessage) -> str:
    """Extract plain text from an AIMessage-like object."""
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text" and part.get("text"):
                parts.append(part["text"])
        return "\n".join(parts).strip()
    return ""


def search_online(query: str, config: Configuration, secrets: SecretStore) -> str:
    """Search the web with the Custom Search JSON API.

    Returns:
        The top results formatted for a prompt, or a fallback sentence when
        nothing was found or the search failed
    """
    try:
        api_key = secrets.get("GOOGLE_SEARCH_API_KEY") or config.google_search_api_key
        if not api_key:
            raise NotFoundError('API Key "GOOGLE_SEARCH_API_KEY" not found in the secret store.')
        if not config.google_search_engine_id:
            raise NotFoundError("GOOGLE_SEARCH_ENGINE_ID is not configured.")

        response = httpx.get(
            SEARCH_URL,
            params={
                "key": api_key,
                "cx": config.google_search_engine_id,
                "q": query,
                "num": SEARCH_RESULT_COUNT,
            },
            timeout=config.search_timeout,
        )
        response.raise_for_status()
        items = response.json().get("items") or []

        if not items:
            return NO_RESULTS_TEXT

        formatted = "Here is the latest information from the web:\n\n"
        for index, item in enumerate(items[:SEARCH_RESULT_COUNT], start=1):
            formatted += (
                f"{index}. {item.get('title', '')}\n"
                f"Source: {item.get('link', '')}\n"
                f"Snippet: {item.get('snippet', '')}\n\n"
            )
        return formatted
    except Exception as e:
        logger.error("Google Search API Error: %s", e)
        return SEARCH_FAILED_TEXT


def generate(
    prompt: str,
    config: Configuration,
    secrets: SecretStore,
    options: Optional[Dict[str, Any]] = None,
) -> Generation:
    """Send a single-turn prompt and return the text plus token usage.

    Raises:
        NotFoundError: no API key is configured
        UpstreamError: the call failed or returned no text
    """
    api_key = secrets.require("GEMINI_API_KEY")
    options = options or {}

    llm = get_text_llm(config, api_key=api_key, temperature=options.get("temperature", 1.0))
    logger.info("Sending to AI: %s...", prompt[:100])
    try:
        message = llm.invoke([HumanMessage(content=prompt)])
    except Exception as e:
        raise UpstreamError(f"Generative model call failed: {e}") from e

    text = _coerce_text(message)
    if not text:
        raise UpstreamError("Generative model returned no candidate text.")
    usage = getattr(message, "usage_metadata", None) or {}
    return Generation(text=text, total_tokens=int(usage.get("total_tokens", 0) or 0))


def call_generative_model(
    prompt: str,
    config: Configuration,
    secrets: SecretStore,
    options: Optional[Dict[str, Any]] = None,
) -> str:
    """Text of the model's first candidate for ``prompt``.

    Args:
        prompt: The complete prompt
        config: Model settings
        secrets: Where the API key is read from
        options: Optional overrides, currently ``temperature``
    """
    return generate(prompt, config, secrets, options).text


def process_user_prompt(ctx: RequestContext, user_prompt: str, with_search: bool = False) -> str:
    """Answer one chat message, optionally grounded in web search results.

    Calls the model exactly once per invocation, even for an empty message.
    Never raises.
    """
    user_prompt = user_prompt or ""
    try:
        context = ""
        if with_search:
            logger.info('Performing online search for: "%s"', user_prompt)
            search_results = search_online(user_prompt, ctx.config, ctx.secrets)
            context += SEARCH_CONTEXT_BLOCK.format(search_results=search_results)
            log_activity(ctx, ONLINE_SEARCH, user_prompt[:200])

        final_prompt = CHAT_PROMPT.format(context=context, user_prompt=user_prompt)
        result = generate(final_prompt, ctx.config, ctx.secrets)

        log_activity(
            ctx,
            CHAT_MESSAGE,
            user_prompt[:200],
            api_call_count=1,
            api_token_count=result.total_tokens,
        )
        return result.text
    except Exception as e:
        logger.error("Error in process_user_prompt: %s", e)
        log_error(ctx.store, "process_user_prompt", str(e), ctx.user_email)
        return f"I'm sorry, an error occurred while processing your request: {e}"

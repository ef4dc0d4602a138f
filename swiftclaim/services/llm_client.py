from typing import Callable, Optional

from langchain_google_genai import ChatGoogleGenerativeAI

from swiftclaim.config import Settings
from swiftclaim.utils.logger import logger

LLMBackend = Callable[[str], str]


def _content_text(content) -> str:
    # Newer Gemini responses may arrive as a list of content parts.
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("text"):
                parts.append(part["text"])
        return "".join(parts)
    return str(content or "")


def build_llm_backend(settings: Settings) -> Optional[LLMBackend]:
    """
    Build the Gemini-backed completion function, or None when no API key is configured.
    A None backend makes the risk client answer with its fallback verdict.
    """
    if not settings.google_api_key:
        logger.warning("[LLM] GOOGLE_API_KEY not set. AI fraud scoring disabled, fallback verdicts will be used.")
        return None

    llm = ChatGoogleGenerativeAI(
        model=settings.llm_model,
        google_api_key=settings.google_api_key,
        temperature=0.3,
        timeout=settings.llm_timeout_seconds,
        max_retries=1,
    )

    def llm_response(prompt: str) -> str:
        response = llm.invoke(prompt)
        return _content_text(response.content)

    logger.info(f"[LLM] Gemini backend ready: {settings.llm_model}")
    return llm_response

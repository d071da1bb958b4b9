"""Repair model construction.

Provider integrations are imported lazily so only the configured one needs
to be installed. API keys come from the environment (``.env`` is loaded).
"""

import logging
import os

from dotenv import load_dotenv

from ..config import PipelineSettings
from ..gateway import LLMGateway

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini", "ollama")


def create_repair_llm(settings: PipelineSettings) -> LLMGateway:
    """Create the configured provider's LLM wrapped in ``LLMGateway``.

    Raises:
        ValueError: for an unknown provider
    """
    provider = (settings.repair_provider or "").lower()
    model = settings.repair_model
    temperature = settings.repair_temperature

    if provider == "openai":
        from llama_index.llms.openai import OpenAI

        raw_llm = OpenAI(
            model=model,
            temperature=temperature,
            api_key=os.getenv("OPENAI_API_KEY"),
            timeout=settings.repair_timeout_seconds,
        )
    elif provider == "anthropic":
        from llama_index.llms.anthropic import Anthropic

        raw_llm = Anthropic(
            model=model,
            temperature=temperature,
            api_key=os.getenv("ANTHROPIC_API_KEY"),
        )
    elif provider == "gemini":
        from llama_index.llms.gemini import Gemini

        # Gemini API requires model names to be prefixed with "models/"
        gemini_model = model if model.startswith("models/") else f"models/{model}"
        raw_llm = Gemini(
            model=gemini_model,
            temperature=temperature,
            api_key=os.getenv("GOOGLE_API_KEY"),
        )
    elif provider == "ollama":
        from llama_index.llms.ollama import Ollama

        raw_llm = Ollama(
            model=model,
            temperature=temperature,
            request_timeout=settings.repair_timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown repair provider '{settings.repair_provider}', expected one of {SUPPORTED_PROVIDERS}")

    logger.info(f"Repair LLM: {provider}/{model}")
    return LLMGateway(raw_llm)

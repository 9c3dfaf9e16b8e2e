from __future__ import annotations

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq

from settings import Settings


def build_chat_model(settings: Settings) -> BaseChatModel:
    """Chat model for SQL generation; provider and model id come from settings."""
    if settings.llm_provider == "groq":
        return ChatGroq(model=settings.llm_model, temperature=0, api_key=settings.groq_api_key)
    if settings.llm_provider == "google":
        return ChatGoogleGenerativeAI(model=settings.llm_model, temperature=0, google_api_key=settings.google_api_key)
    raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")

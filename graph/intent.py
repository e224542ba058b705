"""
Intent extraction: structured tool-call completion over the chat model.
The model is forced (tool_choice) to call extract_weather_intent; free text is never accepted.
Extraction is skippable: callers that already hold an Intent (disambiguation resubmission) never reach here.
"""
import datetime
from enum import Enum
from typing import Optional

import httpx
import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from app.config import Settings
from app.errors import ErrorCode, WeatherLookupError


class IntentType(str, Enum):
    CURRENT = "CURRENT"
    DAY = "DAY"
    HOURLY_WINDOW = "HOURLY_WINDOW"
    DATE_RANGE = "DATE_RANGE"


class Intent(BaseModel):
    """What a weather question asks for. camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    intent_type: IntentType
    location_provided: bool
    location: Optional[str] = None
    date: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_hour: Optional[int] = Field(default=None, ge=0, le=23)
    end_hour: Optional[int] = Field(default=None, ge=0, le=23)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


INTENT_TOOL_NAME = "extract_weather_intent"

INTENT_TOOL = {
    "type": "function",
    "function": {
        "name": INTENT_TOOL_NAME,
        "description": "Extract structured weather query intent from natural language",
        "parameters": {
            "type": "object",
            "properties": {
                "intentType": {
                    "type": "string",
                    "enum": [t.value for t in IntentType],
                    "description": "The type of weather query",
                },
                "locationProvided": {
                    "type": "boolean",
                    "description": "True if the user explicitly named a location in their query; otherwise false",
                },
                "location": {
                    "type": "string",
                    "description": "The location name (city, coordinates, etc.). Omit or leave empty if the user did not specify a location.",
                },
                "date": {"type": "string", "description": "Specific date in YYYY-MM-DD format (for DAY or DATE_RANGE)"},
                "startDate": {"type": "string", "description": "Start date for DATE_RANGE in YYYY-MM-DD format"},
                "endDate": {"type": "string", "description": "End date for DATE_RANGE in YYYY-MM-DD format"},
                "startHour": {"type": "number", "description": "Start hour for HOURLY_WINDOW (0-23)"},
                "endHour": {"type": "number", "description": "End hour for HOURLY_WINDOW (0-23)"},
            },
            "required": ["intentType", "locationProvided"],
        },
    },
}


def _system_prompt(reference_date: datetime.date) -> str:
    return (
        f"You are a weather query intent extraction assistant. Today is {reference_date.isoformat()}. "
        "Extract structured intent from natural language weather queries. Use today's date to resolve "
        'relative references like "tomorrow", "this weekend", "next week", etc. IMPORTANT: If the user '
        "does not explicitly specify a location, set locationProvided=false and omit location "
        "(or set it to an empty string)."
    )


def get_llm(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> BaseChatModel:
    """Chat model from settings (OpenAI or Azure). SDK retries are off; the shared client retries."""
    if settings.azure_openai_api_key:
        from langchain_openai import AzureChatOpenAI
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_openai_endpoint or "",
            api_key=settings.azure_openai_api_key,
            azure_deployment=settings.azure_openai_deployment or "gpt-4o",
            api_version="2024-02-15-preview",
            temperature=0,
            max_retries=0,
            timeout=settings.http_timeout_sec * 3,
            http_async_client=http_client,
        )
    return ChatOpenAI(
        model=settings.openai_chat_model,
        api_key=settings.openai_api_key,
        temperature=0,
        max_retries=0,
        timeout=settings.http_timeout_sec * 3,
        http_async_client=http_client,
    )


def map_provider_error(exc: openai.APIError) -> WeatherLookupError:
    """Translate an extraction-provider failure into the lookup taxonomy by status code."""
    status = getattr(exc, "status_code", None)
    if status == 429:
        return WeatherLookupError(
            ErrorCode.AI_RATE_LIMITED, "AI service is temporarily busy. Please try again in a moment."
        )
    if status in (401, 403):
        return WeatherLookupError(
            ErrorCode.AI_AUTH_ERROR, "AI service authentication failed. Please contact support."
        )
    return WeatherLookupError(ErrorCode.AI_SERVICE_ERROR, "AI service encountered an error. Please try again.")


class IntentExtractor:
    def __init__(self, llm: BaseChatModel):
        self._llm = llm.bind_tools([INTENT_TOOL], tool_choice=INTENT_TOOL_NAME)

    async def extract(self, query: str, reference_date: datetime.date) -> Intent:
        messages = [SystemMessage(content=_system_prompt(reference_date)), HumanMessage(content=query)]
        try:
            out = await self._llm.ainvoke(messages)
        except openai.APIError as exc:
            raise map_provider_error(exc) from exc

        tool_calls = getattr(out, "tool_calls", None) or []
        if not tool_calls:
            raise WeatherLookupError(ErrorCode.INTENT_EXTRACTION_FAILED, "Could not understand the weather query")
        try:
            return Intent.model_validate(tool_calls[0]["args"])
        except ValidationError as exc:
            raise WeatherLookupError(
                ErrorCode.INTENT_EXTRACTION_FAILED, "Could not understand the weather query"
            ) from exc

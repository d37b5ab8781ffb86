# /ledgerbot/services/ai_service.py

import json
import base64
import logging
import asyncio
from datetime import date
from google import genai
from google.genai import types
from google.genai.types import GenerateContentConfig
from openai import AsyncOpenAI
from typing import Optional, Dict, List, Any, Sequence

from ledgerbot.config.settings import settings
from ledgerbot.config.prompts import INTENT_PROMPT_TEMPLATE, EXTRACTION_PROMPT_TEMPLATE, IMAGE_EXTRACTION_PROMPT
from ledgerbot.models.domain import Category, ExtractedTransaction
from ledgerbot.models.events import AttachmentKinds
from ledgerbot.utils.circuit_breaker import CircuitBreaker
from ledgerbot.utils.metrics import ai_requests_counter


# This service encapsulates all interactions with external AI models:
# intent classification for free text and transaction extraction from
# statements and receipts. Gemini is tried first, OpenAI is the fallback.

logger = logging.getLogger(__name__)

MAX_PROMPT_CATEGORIES = 20


class IntentLabels:
    """Labels the classifier may return."""
    ADD_EXPENSE = "add_expense"
    VIEW_TRANSACTIONS = "view_transactions"
    VIEW_BALANCE = "view_balance"
    CATEGORIZE_TRANSACTIONS = "categorize_transactions"
    HELP = "help"
    UNKNOWN = "unknown"

    ALL = (ADD_EXPENSE, VIEW_TRANSACTIONS, VIEW_BALANCE, CATEGORIZE_TRANSACTIONS, HELP, UNKNOWN)


class AIServiceError(Exception):
    """No configured model produced a usable response."""


class DocumentExtractionError(Exception):
    """Transactions could not be extracted from a document."""


class AIService:
    def __init__(
        self,
        gemini_api_key: Optional[str] = settings.gemini_api_key,
        openai_api_key: Optional[str] = settings.openai_api_key,
        gemini_model: str = settings.gemini_model,
        openai_model: str = settings.openai_model,
    ):
        if gemini_api_key:
            self.gemini_client = genai.Client(api_key=gemini_api_key)
            self.model_name = gemini_model
            logger.info(f"Using Gemini model: {self.model_name}")
        else:
            self.gemini_client = None
            self.model_name = None

        if openai_api_key:
            self.openai_client = AsyncOpenAI(api_key=openai_api_key)
        else:
            self.openai_client = None
        self.openai_model = openai_model

        self.circuit_breaker = CircuitBreaker(name="gemini")
        self.openai_breaker = CircuitBreaker(name="openai")

    @property
    def is_configured(self) -> bool:
        return self.gemini_client is not None or self.openai_client is not None

    # --- JSON generation ---

    async def _generate_gemini_json_response(self, prompt: str) -> Dict:
        response = await asyncio.to_thread(
            self.gemini_client.models.generate_content,
            model=self.model_name,
            contents=f"{prompt}\n\nPlease respond with valid JSON only.",
            config=GenerateContentConfig(
                temperature=0.1,
                response_mime_type="application/json"
            )
        )
        return json.loads(response.text)

    async def _generate_openai_json_response(self, prompt: str) -> Dict:
        """Generates a JSON response from OpenAI using its JSON mode."""
        response = await self.openai_client.chat.completions.create(
            model=self.openai_model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": "You are a helpful assistant designed to output JSON."},
                {"role": "user", "content": prompt}
            ]
        )
        return json.loads(response.choices[0].message.content)

    async def get_ai_json_response(self, prompt: str) -> Any:
        """
        Generates a JSON response, trying Gemini first and falling back to OpenAI.
        Raises AIServiceError when neither model produced valid JSON.
        """
        if self.gemini_client:
            try:
                result = await self.circuit_breaker.call(self._generate_gemini_json_response, prompt)
                ai_requests_counter.labels(model="gemini-json", status="success").inc()
                return result
            except Exception as e:
                logger.error(f"Gemini JSON response generation failed: {e}. Trying OpenAI fallback.")
                ai_requests_counter.labels(model="gemini-json", status="error").inc()

        if self.openai_client:
            try:
                result = await self.openai_breaker.call(self._generate_openai_json_response, prompt)
                ai_requests_counter.labels(model="openai-json", status="success").inc()
                return result
            except Exception as e:
                logger.error(f"OpenAI JSON fallback also failed: {e}")
                ai_requests_counter.labels(model="openai-json", status="error").inc()

        raise AIServiceError("No AI model produced a JSON response.")

    # --- Intent classification ---

    async def classify_intent(self, text: str) -> str:
        """Returns one of IntentLabels.ALL. Never raises; any failure is 'unknown'."""
        if not self.is_configured or not text.strip():
            return IntentLabels.UNKNOWN

        try:
            result = await self.get_ai_json_response(INTENT_PROMPT_TEMPLATE.format(message=text.strip()))
        except Exception as e:
            logger.warning(f"Intent classification failed: {e}")
            return IntentLabels.UNKNOWN

        label = ""
        if isinstance(result, dict):
            label = str(result.get("intent") or "").strip().lower()
        if label not in IntentLabels.ALL:
            logger.info(f"Classifier returned unmapped label {label!r}")
            return IntentLabels.UNKNOWN

        logger.info(f"AI classified intent as '{label}'")
        return label

    # --- Document extraction ---

    async def extract_transactions(
        self,
        kind: str,
        payload: str,
        mime_type: Optional[str] = None,
        categories: Optional[Sequence[Category]] = None,
    ) -> List[ExtractedTransaction]:
        """
        Extracts transactions from a document. `payload` is the document text,
        or base64 image data when kind is 'image'. Invalid records are dropped.
        """
        if not payload:
            raise DocumentExtractionError("The document is empty")

        try:
            if kind == AttachmentKinds.IMAGE:
                raw = await self._extract_from_image(payload, mime_type or "image/jpeg", categories)
            else:
                raw = await self.get_ai_json_response(self._build_extraction_prompt(payload, categories))
        except AIServiceError as e:
            raise DocumentExtractionError(str(e)) from e

        records = raw.get("transactions") if isinstance(raw, dict) else raw
        try:
            return ExtractedTransaction.validate_records(records)
        except ValueError as e:
            raise DocumentExtractionError(str(e)) from e

    @staticmethod
    def _categories_block(categories: Optional[Sequence[Category]]) -> str:
        if not categories:
            return ""
        names = "\n".join(f"- {c.name}" for c in list(categories)[:MAX_PROMPT_CATEGORIES])
        return f"\nAVAILABLE CATEGORIES:\n{names}\n"

    def _build_extraction_prompt(self, document: str, categories: Optional[Sequence[Category]]) -> str:
        return EXTRACTION_PROMPT_TEMPLATE.format(
            year=date.today().year, categories_block=self._categories_block(categories), document=document
        )

    async def _extract_from_image(
        self, image_b64: str, mime_type: str, categories: Optional[Sequence[Category]] = None
    ) -> Any:
        prompt = IMAGE_EXTRACTION_PROMPT.format(year=date.today().year, categories_block=self._categories_block(categories))

        if self.openai_client:
            try:
                response = await self.openai_breaker.call(
                    self.openai_client.chat.completions.create,
                    model=self.openai_model,
                    response_format={"type": "json_object"},
                    messages=[{
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
                        ],
                    }],
                )
                ai_requests_counter.labels(model="openai-vision", status="success").inc()
                return json.loads(response.choices[0].message.content)
            except Exception as e:
                logger.error(f"OpenAI vision extraction failed: {e}")
                ai_requests_counter.labels(model="openai-vision", status="error").inc()

        if self.gemini_client:
            try:
                image_part = types.Part.from_bytes(data=base64.b64decode(image_b64), mime_type=mime_type)
                response = await asyncio.to_thread(
                    self.gemini_client.models.generate_content,
                    model=self.model_name,
                    contents=[prompt, image_part],
                    config=GenerateContentConfig(temperature=0.1, response_mime_type="application/json"),
                )
                ai_requests_counter.labels(model="gemini-vision", status="success").inc()
                return json.loads(response.text)
            except Exception as e:
                logger.error(f"Gemini vision extraction failed: {e}")
                ai_requests_counter.labels(model="gemini-vision", status="error").inc()

        raise AIServiceError("No AI model could read the image.")

import re
import json
import asyncio
import logging
from typing import Any, Dict, Optional

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.prompt_values import PromptValue

from contract_intake.agents.base import FieldExtractor
from contract_intake.agents.date_normalizer import normalize_date
from contract_intake.core.config import settings
from contract_intake.core.errors import ExtractionError
from contract_intake.core.llm import CompletionService
from contract_intake.schemas.analysis import (
    BUNDLE_FIELDS,
    ExtractionStrategy,
    FieldBundle,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "... [content truncated for length]"
MISSING_CONFIDENCE = 0.1

# Also accept the camelCase keys some models answer with
FIELD_ALIASES = {
    "contractTitle": "contract_title",
    "docType": "doc_type",
    "effectiveDate": "effective_date",
    "terminationDate": "termination_date",
}
REQUIRED_KEYS = BUNDLE_FIELDS + ("confidence",)
DATE_FIELDS = ("effective_date", "termination_date")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

SYSTEM_PROMPT = (
    "You are an expert contract analyst. Extract the following information from the contract:\n"
    "1. vendor: the vendor or counterparty company name\n"
    "2. contract_title: the contract title or subject\n"
    "3. doc_type: the document type, for example SERVICE_AGREEMENT, NDA, EMPLOYMENT, LEASE, "
    "PURCHASE_ORDER, STATEMENT_OF_WORK, LICENSE, SUBSCRIPTION_AGREEMENT or MSA\n"
    "4. effective_date: the effective date in YYYY-MM-DD format\n"
    "5. termination_date: the termination or expiry date in YYYY-MM-DD format\n\n"
    "For each field, provide a confidence score between 0 and 1.\n"
    "Return a single JSON object and nothing else, with this structure:\n"
    "{{\n"
    '  "vendor": "string or null",\n'
    '  "contract_title": "string or null",\n'
    '  "doc_type": "string or null",\n'
    '  "effective_date": "YYYY-MM-DD or null",\n'
    '  "termination_date": "YYYY-MM-DD or null",\n'
    '  "confidence": {{\n'
    '    "vendor": 0.9,\n'
    '    "contract_title": 0.9,\n'
    '    "doc_type": 0.8,\n'
    '    "effective_date": 0.7,\n'
    '    "termination_date": 0.6\n'
    "  }}\n"
    "}}\n\n"
    "If a field is unknown or uncertain, set it to null and give it a confidence of 0.1 or lower. "
    "Never guess a value."
)


class AIExtractor(FieldExtractor):
    """Extractor that asks an LLM completion service for the contract fields."""

    strategy = ExtractionStrategy.AI

    def __init__(
        self,
        completion_service: Optional[CompletionService],
        enabled: Optional[bool] = None,
        max_text_chars: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """Initialize the AI extractor.

        Args:
            completion_service: Client for the completion service, None when not configured
            enabled: Feature switch, defaults to settings.AI_ENABLED
            max_text_chars: Maximum number of characters sent to the model
            timeout_seconds: Upper bound on one completion call
        """
        self.completion_service = completion_service
        self.enabled = settings.AI_ENABLED if enabled is None else enabled
        self.max_text_chars = max_text_chars or settings.AI_MAX_TEXT_CHARS
        self.timeout_seconds = timeout_seconds or settings.LLM_TIMEOUT_SECONDS

        self.prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_PROMPT),
            ("user", "Document title: {title}\n\nDocument content:\n{content}"),
        ])

    def is_available(self) -> bool:
        return self.enabled and self.completion_service is not None

    def truncate(self, text: str) -> str:
        if len(text) <= self.max_text_chars:
            return text
        return text[:self.max_text_chars] + TRUNCATION_MARKER

    def build_prompt(self, text: str, title: Optional[str]) -> PromptValue:
        return self.prompt.format_prompt(title=title or "", content=self.truncate(text or ""))

    async def extract(self, text: str, title: Optional[str] = None) -> FieldBundle:
        """Extract contract fields with the completion service.

        Args:
            text: Plain document text
            title: Document title

        Returns:
            Validated field bundle

        Raises:
            ExtractionError: on unavailability, timeout, service failure or an invalid response
        """
        if not self.is_available():
            raise ExtractionError(self.strategy.value, "AI extraction is not available")

        prompt = self.build_prompt(text, title)
        try:
            content = await asyncio.wait_for(
                asyncio.to_thread(self.completion_service.complete, prompt),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ExtractionError(
                self.strategy.value,
                f"Completion service timed out after {self.timeout_seconds}s",
            )
        except Exception as e:
            raise ExtractionError(self.strategy.value, f"Completion service failed: {str(e)}") from e

        return self.parse_response(content)

    def parse_response(self, content: Optional[str]) -> FieldBundle:
        """Validate a completion response and turn it into a field bundle.

        Raises:
            ExtractionError: when the response is empty, not JSON or misses required keys
        """
        if not content or not content.strip():
            raise ExtractionError(self.strategy.value, "Empty response from completion service")

        body = content.strip()
        fenced = _CODE_FENCE.match(body)
        if fenced:
            body = fenced.group(1)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ExtractionError(self.strategy.value, "Could not parse completion response as JSON",
                                  {"error": str(e)})

        if not isinstance(data, dict):
            raise ExtractionError(self.strategy.value, "Completion response is not a JSON object")

        data = {FIELD_ALIASES.get(key, key): value for key, value in data.items()}
        missing = [key for key in REQUIRED_KEYS if key not in data]
        if missing:
            raise ExtractionError(self.strategy.value, "Completion response is missing required keys",
                                  {"missing": missing})

        raw_confidence = data["confidence"]
        if not isinstance(raw_confidence, dict):
            raise ExtractionError(self.strategy.value, "Completion response confidence is not an object")
        raw_confidence = {FIELD_ALIASES.get(key, key): value for key, value in raw_confidence.items()}

        fields: Dict[str, Optional[str]] = {}
        confidence: Dict[str, float] = {}
        for name in BUNDLE_FIELDS:
            fields[name] = self._clean_value(name, data[name])
            confidence[name] = clamp_confidence(raw_confidence.get(name), default=MISSING_CONFIDENCE)

        if fields["doc_type"]:
            fields["doc_type"] = re.sub(r"[\s\-/]+", "_", fields["doc_type"]).upper()

        for name in DATE_FIELDS:
            value = fields[name]
            if value is None:
                continue
            normalized = normalize_date(value) if _ISO_DATE.match(value) else None
            if normalized is None:
                logger.info(f"Dropping unparseable {name} from completion response: {value!r}")
                fields[name] = None
                confidence[name] = 0.0
            else:
                fields[name] = normalized

        return FieldBundle(**fields, confidence=confidence, strategy=self.strategy, raw={"response": data})

    def _clean_value(self, name: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ExtractionError(self.strategy.value, f"Field {name} has an unexpected type",
                                  {"type": type(value).__name__})
        value = value.strip()
        if not value or value.lower() in ("null", "none", "unknown", "n/a"):
            return None
        return value

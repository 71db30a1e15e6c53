import re
import logging
import spacy
from typing import Dict, List, Optional, Pattern, Tuple

from contract_intake.agents.base import FieldExtractor
from contract_intake.agents.date_normalizer import (
    DATE_TOKEN,
    add_duration,
    normalize_date_phrase,
)
from contract_intake.core.config import settings
from contract_intake.schemas.analysis import (
    BASELINE_CONFIDENCE,
    BUNDLE_FIELDS,
    ContractDocType,
    ExtractionStrategy,
    FieldBundle,
)

logger = logging.getLogger(__name__)

TITLE_CONFIDENCE = 0.6
SCANNED_TITLE_CONFIDENCE = 0.5
DOC_TYPE_CONFIDENCE = 0.7
VENDOR_CONFIDENCE = 0.6
NER_VENDOR_CONFIDENCE = 0.4
DURATION_CONFIDENCE = 0.6

TITLE_SCAN_LINES = 10

_PAGE_ARTIFACT = re.compile(r"^-*\s*(?:page\s+\d+(?:\s+of\s+\d+)?|\d+|\d+\s*/\s*\d+)\s*-*$", re.IGNORECASE)
_COPYRIGHT = re.compile(r"©|\(c\)\s*\d{4}|\bcopyright\b|all\s+rights\s+reserved", re.IGNORECASE)

# Ordered: the first rule that matches decides the type
DOC_TYPE_RULES: List[Tuple[Pattern, ContractDocType, float]] = [
    (re.compile(r"(?i:\bservice\s+agreement\b)"), ContractDocType.SERVICE_AGREEMENT, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bnon[\s-]?disclosure\s+agreement\b|\bconfidentiality\s+agreement\b)|\bNDA\b"),
     ContractDocType.NDA, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bemployment\s+(?:agreement|contract)\b)"), ContractDocType.EMPLOYMENT, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\blease\s+agreement\b)"), ContractDocType.LEASE, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bpurchase\s+order\b)|\bPO\s*(?:#|No\.?)?\s*\d+"),
     ContractDocType.PURCHASE_ORDER, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bstatement\s+of\s+work\b)|\bSOW\b"), ContractDocType.STATEMENT_OF_WORK, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\blicen[cs]e\s+agreement\b)"), ContractDocType.LICENSE, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bsubscription\s+agreement\b)"), ContractDocType.SUBSCRIPTION_AGREEMENT, DOC_TYPE_CONFIDENCE),
    (re.compile(r"(?i:\bmaster\s+services?\s+agreement\b)|\bMSA\b"), ContractDocType.MSA, DOC_TYPE_CONFIDENCE),
]

_ENTITY_SUFFIX = (
    r"(?:Inc|LLC|L\.L\.C|Ltd|Limited|Corp|Corporation|Company|Co|LLP|LP|PLC|plc|GmbH|AG|Pty\s+Ltd)"
)
# A capitalized name on one line that ends in a legal-entity suffix
_ENTITY = (
    r"[A-Z][A-Za-z0-9&'.\-]*"
    r"(?:,?[ \t]+(?:[A-Z0-9&][A-Za-z0-9&'.\-]*|of|the)){0,6}?"
    rf",?[ \t]+{_ENTITY_SUFFIX}\b\.?"
)
_PARTY_ROLE = (
    r"vendor|supplier|service\s+provider|provider|contractor|consultant|licensor|seller|company"
)

VENDOR_RULES: List[Tuple[str, Pattern]] = [
    ("between", re.compile(rf"(?i:\bbetween\s+(?:the\s+)?)(?P<name>{_ENTITY})")),
    ("party_role", re.compile(
        rf"(?P<name>{_ENTITY})\s*,?\s*\((?i:(?:hereinafter\s+(?:referred\s+to\s+as\s+)?)?(?:the\s+)?)"
        rf"[\"“'‘]?(?i:{_PARTY_ROLE})[\"”'’]?\)"
    )),
    ("incorporation", re.compile(
        rf"(?P<name>{_ENTITY}),?\s+(?i:an?\s+(?:[a-z]+\s+){{0,2}}"
        r"(?:corporation|company|limited\s+liability\s+company|partnership))"
    )),
    ("label", re.compile(rf"(?i:\b(?:{_PARTY_ROLE})\s*:)[ \t]*(?P<name>{_ENTITY})")),
]

_GAP = r"[^\n.;]{0,60}?"
_DATE = rf"(?P<date>{DATE_TOKEN})"

EFFECTIVE_DATE_RULES: List[Tuple[str, Pattern, float]] = [
    ("defined_effective_date", re.compile(
        rf"{_DATE}\s*,?\s*\((?:the\s+)?[\"“]?(?:effective|commencement)\s+date[\"”]?\)", re.IGNORECASE), 0.7),
    ("effective_date_label", re.compile(rf"\beffective\s+date\b{_GAP}{_DATE}", re.IGNORECASE), 0.7),
    ("commencement_date_label", re.compile(rf"\b(?:commencement|start)\s+date\b{_GAP}{_DATE}", re.IGNORECASE), 0.7),
    ("effective_as_of", re.compile(
        rf"\b(?:effective|commenc\w*|begin\w*)\s+(?:as\s+of|on|from)\s+{_DATE}", re.IGNORECASE), 0.6),
    ("entered_into", re.compile(
        rf"\b(?:made|entered\s+into)(?:\s+and\s+entered\s+into)?\s+(?:on|as\s+of|this)\s+{_DATE}",
        re.IGNORECASE), 0.6),
    ("executed_on", re.compile(rf"\bexecuted\s+(?:on|as\s+of)\s+{_DATE}", re.IGNORECASE), 0.6),
    ("dated", re.compile(rf"\bdated\s+(?:as\s+of\s+)?{_DATE}", re.IGNORECASE), 0.6),
]

TERMINATION_DATE_RULES: List[Tuple[str, Pattern, float]] = [
    ("defined_termination_date", re.compile(
        rf"{_DATE}\s*,?\s*\((?:the\s+)?[\"“]?(?:termination|expiration|expiry)\s+date[\"”]?\)",
        re.IGNORECASE), 0.7),
    ("termination_date_label", re.compile(
        rf"\b(?:termination|expiration|expiry|end)\s+date\b{_GAP}{_DATE}", re.IGNORECASE), 0.7),
    ("terminates_on", re.compile(
        rf"\b(?:shall|will)\s+(?:automatically\s+)?(?:terminate|expire|end)\s+(?:on|as\s+of)\s+{_DATE}",
        re.IGNORECASE), 0.6),
    ("continues_until", re.compile(
        rf"\b(?:continue|remain\s+in\s+(?:full\s+)?(?:force|effect))[^\n.;]{{0,40}}?\s(?:until|through)\s+{_DATE}",
        re.IGNORECASE), 0.6),
    ("in_effect_until", re.compile(rf"\bin\s+effect\s+(?:until|through)\s+{_DATE}", re.IGNORECASE), 0.6),
]

WORD_NUMBERS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13,
    "fourteen": 14, "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20, "thirty": 30, "sixty": 60, "ninety": 90,
}
_AMOUNT = rf"(?P<amount>\d{{1,3}}|{'|'.join(WORD_NUMBERS)})(?:\s*\(\d{{1,3}}\))?"
_UNIT = r"(?P<unit>day|week|month|year)s?\b"

DURATION_RULES: List[Tuple[str, Pattern]] = [
    ("term_is", re.compile(
        rf"\b(?:initial\s+)?(?:term|duration)\b{_GAP}\b(?:is|be)\s+(?:for\s+)?(?:a\s+period\s+of\s+)?{_AMOUNT}[\s-]+{_UNIT}",
        re.IGNORECASE)),
    ("continues_for", re.compile(
        rf"\b(?:continue|remain\s+in\s+(?:full\s+)?(?:force|effect)(?:\s+and\s+effect)?)\s+for\s+"
        rf"(?:a\s+(?:period|term)\s+of\s+)?{_AMOUNT}[\s-]+{_UNIT}",
        re.IGNORECASE)),
    ("expires_after", re.compile(
        rf"\b(?:terminate|expire|end)s?\s+{_AMOUNT}[\s-]+{_UNIT}\s+(?:after|from|following)", re.IGNORECASE)),
]


class RuleBasedExtractor(FieldExtractor):
    """Deterministic pattern-matching extractor.

    Always returns a bundle; fields nothing matched keep the baseline
    confidence of 0.3.
    """

    strategy = ExtractionStrategy.RULE_BASED

    def __init__(self, enable_ner: Optional[bool] = None, spacy_model: Optional[str] = None):
        """Initialize the rule-based extractor.

        Args:
            enable_ner: Use spaCy ORG entities when no vendor rule matches
            spacy_model: Name of the spaCy model to load
        """
        self.nlp = None
        if enable_ner is None:
            enable_ner = settings.ENABLE_SPACY_NER
        if enable_ner:
            self._load_spacy(spacy_model or settings.SPACY_MODEL)

    def _load_spacy(self, model_name: str) -> None:
        try:
            self.nlp = spacy.load(model_name)
            logger.info(f"Loaded spaCy model {model_name} for vendor detection")
        except Exception as e:
            logger.warning(f"Could not load spaCy model: {str(e)}. Using regex-only vendor detection.")
            self.nlp = None

    async def extract(self, text: str, title: Optional[str] = None) -> FieldBundle:
        return self.extract_fields(text, title)

    def extract_fields(self, text: str, title: Optional[str] = None) -> FieldBundle:
        """Extract contract fields from text.

        Args:
            text: Plain document text
            title: Optional document title

        Returns:
            Field bundle with per-field confidence
        """
        text = text or ""
        fields: Dict[str, Optional[str]] = {name: None for name in BUNDLE_FIELDS}
        confidence: Dict[str, float] = {name: BASELINE_CONFIDENCE for name in BUNDLE_FIELDS}
        rules: Dict[str, str] = {}

        # 1. Title
        if title and title.strip():
            fields["contract_title"] = title.strip()
            confidence["contract_title"] = TITLE_CONFIDENCE
            rules["contract_title"] = "document_title"
        else:
            scanned = self._scan_title(text)
            if scanned:
                fields["contract_title"] = scanned
                confidence["contract_title"] = SCANNED_TITLE_CONFIDENCE
                rules["contract_title"] = "leading_line"

        # 2. Document type
        doc_type = self._detect_doc_type(text, title)
        if doc_type:
            fields["doc_type"] = doc_type[0].value
            confidence["doc_type"] = doc_type[1]
            rules["doc_type"] = doc_type[0].value.lower()

        # 3. Vendor
        vendor = self._extract_vendor(text)
        if vendor:
            fields["vendor"], confidence["vendor"], rules["vendor"] = vendor

        # 4. and 5. Dates
        effective = self._match_date(text, EFFECTIVE_DATE_RULES)
        if effective:
            fields["effective_date"], confidence["effective_date"], rules["effective_date"] = effective

        termination = self._match_date(text, TERMINATION_DATE_RULES)
        if termination:
            fields["termination_date"], confidence["termination_date"], rules["termination_date"] = termination

        # 6. Term length when only the start date is stated
        if fields["effective_date"] and not fields["termination_date"]:
            derived = self._termination_from_duration(text, fields["effective_date"])
            if derived:
                fields["termination_date"], rules["termination_date"] = derived
                confidence["termination_date"] = DURATION_CONFIDENCE

        logger.debug(f"Rule-based extraction matched rules: {rules}")
        return FieldBundle(
            **fields,
            confidence=confidence,
            strategy=self.strategy,
            raw={"rules": rules, "fields": dict(fields), "confidence": dict(confidence)},
        )

    @staticmethod
    def _scan_title(text: str) -> Optional[str]:
        for line in text.splitlines()[:TITLE_SCAN_LINES]:
            candidate = line.strip()
            if not (5 < len(candidate) < 100):
                continue
            if _PAGE_ARTIFACT.match(candidate) or _COPYRIGHT.search(candidate):
                continue
            return candidate
        return None

    @staticmethod
    def _detect_doc_type(text: str, title: Optional[str]) -> Optional[Tuple[ContractDocType, float]]:
        for pattern, doc_type, score in DOC_TYPE_RULES:
            if pattern.search(text) or (title and pattern.search(title)):
                return doc_type, score
        return None

    def _extract_vendor(self, text: str) -> Optional[Tuple[str, float, str]]:
        for rule_name, pattern in VENDOR_RULES:
            # Only the first match of each rule is considered
            match = pattern.search(text)
            if not match:
                continue
            candidate = " ".join(match.group("name").split()).strip(" ,")
            if self._plausible_vendor(candidate):
                return candidate, VENDOR_CONFIDENCE, rule_name

        if self.nlp is not None:
            return self._vendor_from_entities(text)
        return None

    def _vendor_from_entities(self, text: str) -> Optional[Tuple[str, float, str]]:
        try:
            doc = self.nlp(text[:100000])
        except Exception as e:
            logger.warning(f"spaCy vendor detection failed: {str(e)}")
            return None

        for ent in doc.ents:
            if ent.label_ != "ORG":
                continue
            candidate = " ".join(ent.text.split())
            if self._plausible_vendor(candidate):
                return candidate, NER_VENDOR_CONFIDENCE, "spacy_org"
        return None

    @staticmethod
    def _plausible_vendor(candidate: str) -> bool:
        # All-caps candidates are usually headers, not party names
        return 2 < len(candidate) < 50 and candidate != candidate.upper()

    @staticmethod
    def _match_date(text: str, rules: List[Tuple[str, Pattern, float]]) -> Optional[Tuple[str, float, str]]:
        for rule_name, pattern, score in rules:
            match = pattern.search(text)
            if not match:
                continue
            normalized = normalize_date_phrase(match.group("date"))
            if normalized:
                return normalized, score, rule_name
        return None

    @staticmethod
    def _termination_from_duration(text: str, effective_date: str) -> Optional[Tuple[str, str]]:
        for rule_name, pattern in DURATION_RULES:
            match = pattern.search(text)
            if not match:
                continue
            raw_amount = match.group("amount").lower()
            amount = int(raw_amount) if raw_amount.isdigit() else WORD_NUMBERS[raw_amount]
            derived = add_duration(effective_date, amount, match.group("unit"))
            if derived:
                return derived, f"duration:{rule_name}"
        return None

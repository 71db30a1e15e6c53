import pytest

from contract_intake.core.config import settings
from contract_intake.database.contract_registry import ContractRegistry
from contract_intake.database.document_store import LocalDocumentStore
from contract_intake.database.record_store import InMemoryAnalysisRecordStore

SERVICE_AGREEMENT_TEXT = """SERVICE AGREEMENT

This Service Agreement is made between Acme Corp ("Vendor") and Beta Industries LLC ("Client").

Effective Date: 2024-01-01

The term of this Agreement shall be 12 months.
"""

MADE_ON_TEXT = (
    "SERVICE AGREEMENT\n\n"
    "This agreement is made on January 1, 2025 between Acme Corp (\"Vendor\") and BlueSky Inc (\"Client\")."
)


@pytest.fixture
def intake_settings(tmp_path):
    """Settings pointing every store at a temporary directory, AI disabled."""
    return settings.model_copy(update={
        "GROQ_API_KEY": "",
        "AI_ENABLED": False,
        "ENABLE_SPACY_NER": False,
        "RECORD_STORE": "memory",
        "ANALYSIS_WORKERS": 1,
        "CONTRACTS_DIR": tmp_path / "contracts",
        "ANALYSES_DIR": tmp_path / "analyses",
        "CONTRACT_REGISTRY_PATH": None,
    })


@pytest.fixture
def record_store():
    return InMemoryAnalysisRecordStore()


@pytest.fixture
def document_store(tmp_path):
    return LocalDocumentStore(tmp_path / "contracts")


@pytest.fixture
def contract_registry():
    return ContractRegistry()


@pytest.fixture
def service_agreement_text():
    return SERVICE_AGREEMENT_TEXT


@pytest.fixture
def made_on_text():
    return MADE_ON_TEXT

import os
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging

# Load environment variables from .env file
load_dotenv()

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Data directories
CONTRACTS_DIR = BASE_DIR / "data" / "contracts"
ANALYSES_DIR = BASE_DIR / "data" / "analyses"


class Settings(BaseSettings):
    """Application settings."""

    # App settings
    APP_NAME: str = "ContractIQ Intake"
    API_VERSION: str = "1.0.0"

    # Groq settings
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")

    # LLM settings
    LLM_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TEMPERATURE: float = 0.0
    LLM_MAX_TOKENS: int = 1024
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Extraction settings
    AI_ENABLED: bool = True
    AI_MAX_TEXT_CHARS: int = 15000
    ENABLE_SPACY_NER: bool = False
    SPACY_MODEL: str = "en_core_web_lg"

    # Analysis pipeline
    ANALYSIS_WORKERS: int = 2
    RECORD_STORE: str = "json"

    # Paths
    CONTRACTS_DIR: Path = CONTRACTS_DIR
    ANALYSES_DIR: Path = ANALYSES_DIR
    CONTRACT_REGISTRY_PATH: Optional[Path] = None

    # Request context defaults
    DEFAULT_USER_ID: str = "system"
    DEFAULT_TENANT_ID: str = "default"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


# Create settings instance
settings = Settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

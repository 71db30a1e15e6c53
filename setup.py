#!/usr/bin/env python3
from setuptools import setup, find_namespace_packages

setup(
    name="contract-intake",
    version="1.0.0",
    description="Contract intake service with AI and rule-based metadata extraction",
    packages=find_namespace_packages(include=["contract_intake", "contract_intake.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "python-multipart",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "langchain-core",
        "groq",
        "spacy",
        "pymupdf",
        "pypdf",
        "python-dateutil",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)

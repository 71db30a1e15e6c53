"""
ContractIQ Intake - contract upload and metadata extraction service

Accepts uploaded contract documents and extracts vendor, title, document
type and effective/termination dates in the background, using an LLM when
one is configured and deterministic rules otherwise.
"""

__version__ = "1.0.0"

from .gemini_client import GeminiAnalyzerClient, ANALYSIS_SCHEMA
from .webhook_client import WebhookClient


__all__ = [
    'GeminiAnalyzerClient',
    'ANALYSIS_SCHEMA',
    'WebhookClient',
]

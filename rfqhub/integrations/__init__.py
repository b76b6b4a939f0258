"""RFQHub integration clients.

All clients implement ``BaseIntegration`` and fall back to log-only mock
behaviour when no real credentials are configured.
"""

from rfqhub.integrations.ai_client import AIClient
from rfqhub.integrations.automation import AutomationClient
from rfqhub.integrations.base import BaseIntegration
from rfqhub.integrations.sendgrid import EmailClient

__all__ = [
    "AIClient",
    "AutomationClient",
    "BaseIntegration",
    "EmailClient",
]

"""
Newsletter Module
=================

Campaign dispatch (batched, partial-failure tolerant) and the automation
gate that sends one newsletter per newly published article.
"""

from .dispatcher import CampaignDispatcher, CAMPAIGN_TYPES
from .automation import NewsletterAutomation

__all__ = ['CampaignDispatcher', 'CAMPAIGN_TYPES', 'NewsletterAutomation']

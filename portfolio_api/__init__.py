"""
Portfolio API Package.

HTTP surface of the trading journal:
- /portfolio: summary, asset detail and journal writes
- /exit-strategies: percentage scale-out strategies

The calling account is identified by the X-Account-Id header.
"""

from portfolio_api.config import ApiSettings
from portfolio_api.main import create_app


__all__ = ["ApiSettings", "create_app"]

from portfolio_api.routers import exit_strategies, portfolio

__all__ = ["exit_strategies", "portfolio"]

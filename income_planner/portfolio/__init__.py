"""Portfolio income planning domain package."""

from income_planner.portfolio.models import Holding, Transaction
from income_planner.portfolio.portfolio_service import PortfolioService

__all__ = ["Holding", "PortfolioService", "Transaction"]

from cardtrends.services.market_trends import MarketTrendsService
from cardtrends.services.trend_cache import TrendCache
from cardtrends.services.trend_store import TrendStore

__all__ = ["MarketTrendsService", "TrendCache", "TrendStore"]

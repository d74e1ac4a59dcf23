from cardtrends.engine.aggregator import TrendAggregator, empty_summary
from cardtrends.engine.movers import compute_movers, median_price
from cardtrends.engine.sentiment import classify_sentiment
from cardtrends.engine.series import build_synthetic_series
from cardtrends.engine.stats import mean_price, percentage_change

__all__ = [
    "TrendAggregator",
    "build_synthetic_series",
    "classify_sentiment",
    "compute_movers",
    "empty_summary",
    "mean_price",
    "median_price",
    "percentage_change",
]

from .events import MetricEvent
from .week_key import WeekKeyCalculator
from .aggregator import Aggregator
from .pr_detector import PRDetector
from .trend_analyzer import TrendAnalyzer

__all__ = ["MetricEvent", "WeekKeyCalculator", "Aggregator", "PRDetector", "TrendAnalyzer"]

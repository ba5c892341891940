"""
tuning_advisor.advisory

Configuration validation and tuning advice for Spring Boot services on PostgreSQL.

Responsibilities:
- Parse configuration sources, evaluate rules, and recommend tuned values.
"""

from tuning_advisor.advisory.engine import evaluate, evaluate_config, waive
from tuning_advisor.advisory.findings import AdvisoryReport, Finding, Severity, Verdict
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.recommend import Recommendations, recommend
from tuning_advisor.advisory.sources import (
    ConfigFormat,
    ConfigParseError,
    ConfigSet,
    ConfigSource,
    load_sources,
)
from tuning_advisor.advisory.units import UnitParseError

__all__ = [
    "AdvisoryReport",
    "ConfigFormat",
    "ConfigParseError",
    "ConfigSet",
    "ConfigSource",
    "Finding",
    "HardwareProfile",
    "Recommendations",
    "Severity",
    "UnitParseError",
    "Verdict",
    "evaluate",
    "evaluate_config",
    "load_sources",
    "recommend",
    "waive",
]

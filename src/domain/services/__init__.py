"""Domain services package."""

from .business_days import BusinessDayCalendar, DayCheck, brazil_holidays
from .dependency_graph import DependencyGraph, find_cycle
from .planning import StepPlanner
from .valuation import Valuation, valuate

__all__ = [
    "BusinessDayCalendar",
    "DayCheck",
    "DependencyGraph",
    "StepPlanner",
    "Valuation",
    "brazil_holidays",
    "find_cycle",
    "valuate",
]

"""
PlanHaus: wedding planning API, dashboard metrics pipeline and autosave forms.
"""

__version__ = "0.1.0"

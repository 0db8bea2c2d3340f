"""
sessionbooker - book 45-minute sessions against a fixed weekly schedule.
"""

__version__ = "0.1.0"

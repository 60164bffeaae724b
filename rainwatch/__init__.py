"""
Rainwatch

Personal weather-watch agent: polls an hourly forecast, decides whether
rain is imminent and raises a local alert.
"""

__version__ = "0.3.0"

"""
tuning_advisor.services

Application services (transaction owners) used by the API layer.

Responsibilities:
- Coordinate repositories and the assessment pipeline.
"""

# Package marker.

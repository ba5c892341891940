"""
tuning_advisor.api

HTTP surface of the tuning advisor (FastAPI).

Responsibilities:
- App factory, dependency wiring, and routers.
"""

# Package marker.

"""
tuning_advisor.auth

Authentication and authorization helpers.

Responsibilities:
- JWT issuing/validation and FastAPI role dependencies.
"""

# Package marker.

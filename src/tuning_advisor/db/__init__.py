"""
tuning_advisor.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for assessments.
"""

# Package marker.

"""
tuning_advisor.api.routers

Route modules grouped by resource.
"""

# Package marker.

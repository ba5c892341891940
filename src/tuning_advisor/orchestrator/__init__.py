"""
tuning_advisor.orchestrator

Assessment pipeline package (LangGraph state machine).

Responsibilities:
- Typed state schema, nodes, routing, and graph compilation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Call sites should go through `services.assessment_service`, not the graph directly.

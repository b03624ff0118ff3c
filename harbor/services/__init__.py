"""Harbor services.

- event_bus: priority-ordered publish/subscribe with retries and timeouts
- safety_service: crisis scoring, moderation, escalation queue
- model_service: provider variants behind one execution interface
- orchestrator: routing, fallback execution, post-processing
"""

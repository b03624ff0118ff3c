"""Harbor: request-orchestration core.

Three cooperating components sit between the gateway and the model
providers:

- Event Bus: priority-ordered publish/subscribe with retries and timeouts
- Safety Gate: crisis scoring and content moderation for queries and responses
- Orchestrator: rule-based routing, fallback execution, post-processing

Components are constructed explicitly by ``harbor.app.build_core`` and
shared by injection; nothing is a process-wide singleton.
"""

__version__ = "1.0.0"

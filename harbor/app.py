"""Harbor composition root.

Wires the event bus, safety gate, model executor and orchestrator from
environment variables. Components receive their collaborators explicitly;
nothing here is a module-level singleton.

Environment:
    PII_HASH_SALT: Salt for user-id hashing (min 32 chars)
    HARBOR_HISTORY_SIZE, HARBOR_SHUTDOWN_GRACE_SECONDS: Event bus
    HARBOR_CACHE_THRESHOLD, HARBOR_FALLBACK_DISCOUNT,
    HARBOR_QUERY_DEADLINE_SECONDS: Orchestrator
    HARBOR_CRISIS_THRESHOLDS ("6,10,15"), HARBOR_RISK_MULTIPLIER: Safety gate
    KINESIS_STREAM_NAME, EVENT_STREAM_ENABLED, AWS_REGION: Event stream
    OPENAI_API_KEY, GROQ_API_KEY, CUSTOM_MODEL_ENDPOINT,
    CUSTOM_MODEL_API_KEY: Providers (unset ones are skipped)
"""
import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from harbor.shared.models import AuthContext, ConsentFlags, QueryPreferences
from harbor.shared.utils import configure_pii_salt
from harbor.services.event_bus import (
    EventBus,
    EventBusConfig,
    KinesisEventStream,
    ObservabilityEvents,
)
from harbor.services.model_service import (
    ModelExecutor,
    ModelProvider,
    ProviderConfig,
    ProviderKind,
    create_provider,
)
from harbor.services.orchestrator import (
    InMemoryFeatureStore,
    InMemorySemanticCache,
    Orchestrator,
    OrchestratorConfig,
    ResponseEnvelope,
)
from harbor.services.safety_service import CrisisThresholds, SafetyConfig, SafetyGate

logger = logging.getLogger(__name__)

DEV_PII_SALT = "harbor_dev_salt_change_in_production_32chars"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class HarborSettings:
    """Process-level settings read once at startup."""
    pii_salt: str = DEV_PII_SALT
    history_size: int = 1000
    shutdown_grace_seconds: float = 1.0
    cache_threshold: float = 0.95
    fallback_discount: float = 0.8
    query_deadline_seconds: float = 60.0
    crisis_thresholds: str = "6,10,15"
    risk_multiplier: float = 1.5
    stream_name: str = "harbor-events"
    stream_enabled: bool = False
    aws_region: str = "us-east-1"
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    custom_endpoint: Optional[str] = None
    custom_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "HarborSettings":
        """Create settings from environment variables."""
        return cls(
            pii_salt=os.getenv("PII_HASH_SALT", DEV_PII_SALT),
            history_size=int(os.getenv("HARBOR_HISTORY_SIZE", "1000")),
            shutdown_grace_seconds=float(os.getenv("HARBOR_SHUTDOWN_GRACE_SECONDS", "1.0")),
            cache_threshold=float(os.getenv("HARBOR_CACHE_THRESHOLD", "0.95")),
            fallback_discount=float(os.getenv("HARBOR_FALLBACK_DISCOUNT", "0.8")),
            query_deadline_seconds=float(os.getenv("HARBOR_QUERY_DEADLINE_SECONDS", "60")),
            crisis_thresholds=os.getenv("HARBOR_CRISIS_THRESHOLDS", "6,10,15"),
            risk_multiplier=float(os.getenv("HARBOR_RISK_MULTIPLIER", "1.5")),
            stream_name=os.getenv("KINESIS_STREAM_NAME", "harbor-events"),
            stream_enabled=_env_flag("EVENT_STREAM_ENABLED"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            groq_api_key=os.getenv("GROQ_API_KEY"),
            custom_endpoint=os.getenv("CUSTOM_MODEL_ENDPOINT"),
            custom_api_key=os.getenv("CUSTOM_MODEL_API_KEY"),
        )

    def provider_configs(self) -> Dict[ProviderKind, ProviderConfig]:
        """Provider configs for every provider with credentials present."""
        configs: Dict[ProviderKind, ProviderConfig] = {}
        if self.openai_api_key:
            configs[ProviderKind.OPENAI] = ProviderConfig(
                kind=ProviderKind.OPENAI, api_key=self.openai_api_key
            )
        if self.groq_api_key:
            configs[ProviderKind.GROQ] = ProviderConfig(
                kind=ProviderKind.GROQ, api_key=self.groq_api_key
            )
        if self.custom_endpoint:
            configs[ProviderKind.CUSTOM] = ProviderConfig(
                kind=ProviderKind.CUSTOM,
                api_key=self.custom_api_key,
                base_url=self.custom_endpoint,
            )
        return configs


class HarborCore:
    """The assembled request-orchestration core."""

    def __init__(
        self,
        settings: HarborSettings,
        bus: EventBus,
        gate: SafetyGate,
        executor: ModelExecutor,
        orchestrator: Orchestrator,
    ):
        self.settings = settings
        self.bus = bus
        self.gate = gate
        self.executor = executor
        self.orchestrator = orchestrator

    async def process_query(
        self,
        text: str,
        auth_context: AuthContext,
        context: Optional[Dict[str, Any]] = None,
        preferences: Optional[QueryPreferences] = None,
        consent_to_train: bool = False,
        request_id: Optional[str] = None,
    ) -> ResponseEnvelope:
        return await self.orchestrator.process_query(
            text,
            context,
            auth_context,
            preferences=preferences,
            consent_to_train=consent_to_train,
            request_id=request_id,
        )

    async def shutdown(self) -> None:
        await self.bus.shutdown(self.settings.shutdown_grace_seconds)
        logger.info("HARBOR_CORE_SHUTDOWN")


def build_core(
    settings: Optional[HarborSettings] = None,
    providers: Optional[Mapping[ProviderKind, ModelProvider]] = None,
) -> HarborCore:
    """Assemble the core.

    Args:
        settings: Process settings (read from the environment if omitted)
        providers: Pre-built providers; built from settings if omitted

    Returns:
        HarborCore ready to process queries
    """
    settings = settings or HarborSettings.from_env()
    configure_pii_salt(settings.pii_salt)

    stream = None
    if settings.stream_enabled:
        stream = KinesisEventStream(
            stream_name=settings.stream_name,
            enabled=True,
            region=settings.aws_region,
        )
    bus = EventBus(
        config=EventBusConfig(
            max_history_size=settings.history_size,
            shutdown_grace_seconds=settings.shutdown_grace_seconds,
        ),
        stream=stream,
    )
    events = ObservabilityEvents(bus)

    gate = SafetyGate(
        config=SafetyConfig(
            thresholds=CrisisThresholds.from_string(settings.crisis_thresholds),
            high_risk_multiplier=settings.risk_multiplier,
        ),
        events=events,
    )

    if providers is None:
        providers = {
            kind: create_provider(config)
            for kind, config in settings.provider_configs().items()
        }
    if not providers:
        logger.warning(
            "NO_MODEL_PROVIDERS_CONFIGURED",
            extra={"hint": "set OPENAI_API_KEY, GROQ_API_KEY or CUSTOM_MODEL_ENDPOINT"}
        )
    executor = ModelExecutor(providers)

    orchestrator = Orchestrator(
        gate=gate,
        executor=executor,
        events=events,
        cache=InMemorySemanticCache(),
        features=InMemoryFeatureStore(),
        config=OrchestratorConfig(
            cache_threshold=settings.cache_threshold,
            fallback_discount=settings.fallback_discount,
            query_deadline_seconds=settings.query_deadline_seconds,
        ),
    )

    logger.info(
        "HARBOR_CORE_READY",
        extra={
            "providers": sorted(kind.value for kind in providers),
            "stream_enabled": stream is not None,
        }
    )
    return HarborCore(settings, bus, gate, executor, orchestrator)


async def _demo() -> None:
    core = build_core()
    auth = AuthContext(
        user_id="demo_student",
        session_id="demo_session",
        consent_flags=ConsentFlags(data_collection=True),
    )
    queries = [
        "Can you help me understand photosynthesis for my biology homework?",
        "I want to end my life",
        "What is the capital of France?",
    ]
    try:
        for query in queries:
            envelope = await core.process_query(query, auth, consent_to_train=True)
            print(json.dumps(envelope.to_dict(), indent=2))
    finally:
        await core.shutdown()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_demo())

"""Core data models for cover generation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

from covergen.errors import InvalidRequest

PROMPT_MODES = ("raw", "minimal", "augmented")
MAX_PROMPT_ATTEMPTS = 3

# Request ids name a directory under the media root
REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,128}")


def validate_request_id(request_id: str) -> str:
    if not isinstance(request_id, str) or not REQUEST_ID_PATTERN.fullmatch(request_id):
        raise InvalidRequest(f"Invalid request id: {request_id!r}")
    return request_id


@dataclass(frozen=True)
class SourceRef:
    """A source article the cover may be taken from."""

    url: str
    outlet: str = ""
    image_url: str | None = None


@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed to produce one article cover. Immutable."""

    request_id: str
    title: str
    summary: str = ""
    content: str = ""
    tags: tuple[str, ...] = ()
    category: str = ""
    sources: tuple[SourceRef, ...] = ()
    locale: str = "es-CU"
    mode: str | None = None  # raw, minimal, augmented; None = configured default
    force_provider: str | None = None
    force_theme: str | None = None
    custom_prompt: str | None = None

    def __post_init__(self):
        validate_request_id(self.request_id)
        # Frozen dataclass: normalise list inputs to tuples in place
        object.__setattr__(self, "tags", tuple(t for t in self.tags if t))
        object.__setattr__(self, "sources", tuple(self.sources))
        if self.mode is not None and self.mode not in PROMPT_MODES:
            raise ValueError(f"Unknown prompt mode: {self.mode}")

    @property
    def source_urls(self) -> list[str]:
        return [s.url for s in self.sources if s.url]


@dataclass(frozen=True)
class CountryDetection:
    code: str | None = None
    name: str = "global"
    confidence: float = 0.0
    tier: str = "none"  # none, low, medium, high
    economic_level: str = "neutral"
    matched_alias: str | None = None


@dataclass(frozen=True)
class EntityDetection:
    """Public-figure or natural-event detection for one article."""

    is_person: bool = False
    primary_person: str | None = None
    mentions: int = 0
    in_tags: bool = False
    confidence: float = 0.0
    event_type: str | None = None  # storm, earthquake, fire, blackout, flood, protest
    event_name: str | None = None

    def __post_init__(self):
        if self.is_person and self.event_type:
            raise ValueError("An entity detection cannot be both a person and an event")


@dataclass(frozen=True)
class ClassificationResult:
    theme: str
    confidence: float
    reasons: tuple[str, ...] = ()
    is_disaster: bool = False
    keywords: tuple[str, ...] = ()
    scene_subtype: str = "generic_scene"
    military_tension: bool = False


@dataclass(frozen=True)
class ContextSelection:
    context_id: str
    score: int
    keywords: tuple[str, ...] = ()


@dataclass
class PromptAttempt:
    prompt: str
    negative: str
    level: str  # contextual, neutral, generic-fallback, custom
    index: int = 0


@dataclass
class PromptPlan:
    """Ordered prompt ladder for one request."""

    attempts: list[PromptAttempt]
    mode: str = "augmented"
    theme: str | None = None
    context_id: str | None = None
    country_code: str | None = None
    person: str | None = None

    def __post_init__(self):
        if not self.attempts:
            raise ValueError("A prompt plan needs at least one attempt")
        if len(self.attempts) > MAX_PROMPT_ATTEMPTS:
            raise ValueError(
                f"A prompt plan holds at most {MAX_PROMPT_ATTEMPTS} attempts"
            )
        for i, attempt in enumerate(self.attempts):
            attempt.index = i


@dataclass
class PersistedAsset:
    """Durable record of the encoded cover files for one request."""

    request_id: str
    primary_path: str
    fallback_path: str
    content_hash: str
    provider: str
    kind: str = "ai"  # processed, ai, placeholder
    formats: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ProviderResult:
    """Uniform result returned by every provider and by the orchestrator."""

    ok: bool
    provider: str
    kind: str  # processed, ai, placeholder
    image_bytes: bytes | None = None
    image_url: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    metadata: dict = field(default_factory=dict)
    cost_usd: float = 0.0
    asset: PersistedAsset | None = None


@dataclass
class BatchItem:
    """Outcome of one request inside a batch."""

    request_id: str
    result: ProviderResult | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.ok


@dataclass
class BatchReport:
    tenant: str
    items: list[BatchItem] = field(default_factory=list)
    cost_usd: float = 0.0
    run_id: int | None = None

    @property
    def succeeded(self) -> int:
        return sum(
            1 for i in self.items
            if i.ok and i.result.kind != "placeholder"
        )

    @property
    def placeholders(self) -> int:
        return sum(
            1 for i in self.items
            if i.result is not None and i.result.kind == "placeholder"
        )

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.result is None)


@dataclass
class GenerationRun:
    """Metadata for a single batch generation run."""

    tenant: str = "default"
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    status: str = "running"
    requested: int = 0
    succeeded: int = 0
    placeholders: int = 0
    failed: int = 0
    cost_usd: float = 0.0
    id: int | None = None

"""Orchestrator: classify, plan, call a provider and persist the cover."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime

import httpx

from covergen.classify import analyze_request
from covergen.config import get_image_settings
from covergen.db import finish_run, insert_run, upsert_asset
from covergen.errors import (
    ConcurrencyRejected,
    FilesystemError,
    GenerationError,
    LadderExhausted,
)
from covergen.media import MediaStore
from covergen.models import (
    BatchItem,
    BatchReport,
    GenerationRequest,
    GenerationRun,
    PromptPlan,
    ProviderResult,
)
from covergen.prompts import build_prompt_plan, is_raw_request
from covergen.providers import get_provider
from covergen.providers.base import BaseImageProvider

logger = logging.getLogger(__name__)


class CostTracker:
    """Accumulate provider spend across a batch."""

    def __init__(self):
        self.images = 0
        self.total_cost_usd = 0.0
        self.by_provider: dict[str, float] = {}

    def track(self, provider: str, cost_usd: float):
        self.images += 1
        self.total_cost_usd += cost_usd
        self.by_provider[provider] = self.by_provider.get(provider, 0.0) + cost_usd


class TenantLock:
    """Process-local, non-queuing lock per tenant.

    Not shared across processes or persisted across restarts; a
    multi-instance deployment needs a distributed lock instead.
    """

    def __init__(self):
        self._held: dict[str, bool] = {}

    def is_held(self, tenant: str) -> bool:
        return self._held.get(tenant, False)

    def acquire(self, tenant: str) -> None:
        # No await between check and set, so this is atomic on the event loop
        if self._held.get(tenant):
            raise ConcurrencyRejected(
                f"Generation already in progress for tenant '{tenant}'",
            )
        self._held[tenant] = True

    def release(self, tenant: str) -> None:
        self._held[tenant] = False

    @contextlib.contextmanager
    def hold(self, tenant: str):
        self.acquire(tenant)
        try:
            yield
        finally:
            self.release(tenant)


def has_minimum_context(request: GenerationRequest) -> bool:
    return bool(request.title.strip()) and bool(
        request.category.strip() or request.tags or request.summary.strip()
    )


class Orchestrator:
    """Drive one request, or a tenant batch, through the generation pipeline."""

    def __init__(
        self,
        config: dict,
        media: MediaStore | None = None,
        tenant_lock: TenantLock | None = None,
        conn: sqlite3.Connection | None = None,
    ):
        self.config = config
        self.settings = get_image_settings(config)
        self.media = media or MediaStore(config)
        self.tenant_lock = tenant_lock or TenantLock()
        self.conn = conn
        self.cost_tracker = CostTracker()

    def resolve_provider(self, request: GenerationRequest) -> str:
        """Forced provider on the request, then config force, then default."""
        return (
            request.force_provider
            or self.settings["force_provider"]
            or self.settings["default_provider"]
        )

    def plan(self, request: GenerationRequest) -> PromptPlan:
        if is_raw_request(request, self.settings):
            return build_prompt_plan(request, self.settings)
        analysis = analyze_request(request, self.settings)
        return build_prompt_plan(
            request,
            self.settings,
            analysis.classification,
            analysis.country,
            analysis.entity,
            analysis.context,
        )

    async def run_ladder(
        self,
        provider: BaseImageProvider,
        plan: PromptPlan,
        request: GenerationRequest,
    ) -> ProviderResult:
        """Try each rung in order until one succeeds.

        Only errors the provider marks retryable (safety blocks) move to the
        next rung; anything else propagates immediately.
        """
        last = len(plan.attempts) - 1
        for attempt in plan.attempts:
            try:
                result = await provider.generate(attempt, request)
            except GenerationError as exc:
                if not provider.is_retryable(exc):
                    raise
                if attempt.index == last:
                    raise LadderExhausted(
                        f"All {len(plan.attempts)} prompt levels were blocked by "
                        f"{provider.name}: {exc.message}",
                        provider=provider.name,
                    ) from exc
                logger.info(
                    "%s blocked %s prompt for %s, escalating",
                    provider.name, attempt.level, request.request_id,
                )
                continue

            result.metadata.update({
                "attempt_level": attempt.level,
                "attempts_used": attempt.index + 1,
                "prompt_mode": plan.mode,
                "theme": plan.theme,
                "context_id": plan.context_id,
                "country_code": plan.country_code,
                "person": plan.person,
                "likeness": False,
            })
            return result

        # PromptPlan guarantees at least one attempt
        raise AssertionError("unreachable")

    async def generate(self, request: GenerationRequest) -> ProviderResult:
        """Generate and persist a cover for one request.

        User-facing errors propagate; technical failures degrade to a
        placeholder result carrying the error code.
        """
        provider_id = self.resolve_provider(request)

        if self.settings["strict_mode"] and not has_minimum_context(request):
            logger.warning(
                "Strict mode: %s lacks title/category/tags, using placeholder",
                request.request_id,
            )
            return await self._placeholder(
                request, provider_id, "INSUFFICIENT_CONTEXT",
                "Title plus category, tags or summary required in strict mode",
            )

        provider = get_provider(self.config, provider_id)
        plan = self.plan(request)
        try:
            result = await self.run_ladder(provider, plan, request)
            result.asset = await self.media.persist(
                result.image_bytes,
                request.request_id,
                provider.name,
                kind=result.kind,
                last_modified=result.metadata.get("last_modified"),
            )
        except GenerationError as exc:
            if exc.user_facing:
                raise
            logger.warning(
                "Generation failed for %s via %s (%s): %s",
                request.request_id, provider_id, exc.code, exc.message,
            )
            return await self._placeholder(request, provider_id, exc.code, exc.message)
        except httpx.HTTPError as exc:
            logger.warning(
                "Transport error for %s via %s: %s", request.request_id, provider_id, exc,
            )
            return await self._placeholder(request, provider_id, "PROVIDER_ERROR", str(exc))

        self.cost_tracker.track(provider.name, result.cost_usd)
        self._record_asset(result)
        logger.info(
            "Cover ready for %s via %s (%s, attempt %s)",
            request.request_id, provider.name,
            result.metadata["attempt_level"], result.metadata["attempts_used"],
        )
        return result

    async def _placeholder(
        self, request: GenerationRequest, provider_id: str, code: str, message: str,
    ) -> ProviderResult:
        try:
            asset = await self.media.persist_placeholder(request.request_id)
        except FilesystemError as exc:
            logger.error("Placeholder for %s not stored: %s", request.request_id, exc.message)
            asset = None
        result = ProviderResult(
            ok=True,
            provider=provider_id,
            kind="placeholder",
            error_code=code,
            error_message=message,
            metadata={"requested_provider": provider_id},
            asset=asset,
        )
        self._record_asset(result)
        return result

    def _record_asset(self, result: ProviderResult) -> None:
        if self.conn is not None and result.asset is not None:
            upsert_asset(self.conn, result.asset)

    async def generate_batch(
        self, requests: list[GenerationRequest], tenant: str | None = None,
    ) -> BatchReport:
        """Generate covers for several requests under the tenant lock.

        Raises ConcurrencyRejected when a batch for the tenant is already
        running. Per-item failures are recorded and the batch continues.
        """
        tenant = tenant or self.settings["default_tenant"]
        with self.tenant_lock.hold(tenant):
            run = GenerationRun(tenant=tenant, requested=len(requests))
            run_id = insert_run(self.conn, run) if self.conn is not None else None
            report = BatchReport(tenant=tenant, run_id=run_id)
            cost_before = self.cost_tracker.total_cost_usd
            logger.info("Batch started for %s: %d requests", tenant, len(requests))

            try:
                for request in requests:
                    try:
                        result = await self.generate(request)
                        report.items.append(BatchItem(request.request_id, result=result))
                    except GenerationError as exc:
                        logger.warning(
                            "Batch item %s failed (%s): %s",
                            request.request_id, exc.code, exc.message,
                        )
                        report.items.append(BatchItem(
                            request.request_id,
                            error_code=exc.code,
                            error_message=exc.message,
                        ))
                run.status = "completed"
            except Exception:
                logger.exception("Batch for %s aborted", tenant)
                run.status = "failed"
                raise
            finally:
                report.cost_usd = self.cost_tracker.total_cost_usd - cost_before
                run.finished_at = datetime.utcnow()
                run.succeeded = report.succeeded
                run.placeholders = report.placeholders
                run.failed = report.failed
                run.cost_usd = report.cost_usd
                if self.conn is not None and run_id is not None:
                    finish_run(self.conn, run_id, run)

        logger.info(
            "Batch finished for %s: %d ok, %d placeholder, %d failed ($%.3f)",
            tenant, report.succeeded, report.placeholders, report.failed, report.cost_usd,
        )
        return report

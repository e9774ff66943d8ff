"""
close_services.period_finalization -- Idempotent month-close finalization.

Responsibility:
    When a period is FINALIZED, rebuild everything derived from its event
    log: counterfactual timeline, close friction, VAT summary, mismatch
    summary, one auditor replay snapshot per timeline entry, and the ledger
    CSV and summary PDF exports.  Record the run as a job keyed by the
    period lock hash.

Architecture position:
    Services -- imperative shell over the pure engines in close_engines and
    the CloseStore from close_kernel.services.  The clock and configuration
    are injected; the store's session is owned by the caller.

Invariants enforced:
    - Idempotency: the job id is derived from (tenant, month, lock hash).
      A COMPLETED job for the same hash makes the call a no-op.
    - Mutual exclusion: job creation is a conditional create and a retry
      is a compare-and-set from FAILED.  The loser of either race and any
      caller finding RUNNING get JOB_IN_PROGRESS.
    - Atomic outputs: read models, replay snapshots and exports are written
      inside one savepoint.  Any failure rolls all of them back before the
      job is marked FAILED.
    - Hash-gated exports: an artifact is regenerated only when its stored
      period lock hash differs from the current one.
    - Services flush, callers commit.

Failure modes:
    - PERIOD_NOT_FINALIZED when the period is missing or not FINALIZED.
    - JOB_IN_PROGRESS when another run holds the job.
    - PERIOD_FINALIZE_FAILED when any computation or write fails; the job
      carries the sanitized error message.  There is no automatic retry.
      Rerunning the same hash moves the FAILED job back to RUNNING.

Audit relevance:
    Every run logs period_finalize_started and exactly one of
    period_finalize_completed / skipped / failed, bound to tenant, month
    and job.  The lock hash ties each read model and export to the exact
    event set that produced it.
"""

from __future__ import annotations

from typing import Any

from close_config.schema import CloseConfig
from close_engines.counterfactual import (
    CounterfactualTimeline,
    compute_counterfactual_timeline,
)
from close_engines.exports.ledger_csv import render_ledger_csv
from close_engines.exports.summary_pdf import SummaryFigures, render_summary_pdf
from close_engines.exports.base import RenderedExport
from close_engines.friction import compute_close_friction, default_late_arrival_day
from close_engines.ledger_snapshot import LedgerSnapshot, build_ledger_snapshot
from close_engines.period_lock import compute_period_lock_hash
from close_engines.readmodels import (
    SCHEMA_VERSION,
    build_auditor_replay_snapshot,
    build_close_friction_readmodel,
    build_mismatch_summary_readmodel,
    build_month_close_timeline_readmodel,
    build_vat_summary_readmodel,
)
from close_engines.reconciliation.mismatch import MismatchSummary, detect_mismatches
from close_engines.vat_summary import compute_vat_summary
from close_kernel.domain.clock import Clock
from close_kernel.domain.events import BusinessEvent, date_key
from close_kernel.domain.month import Month
from close_kernel.domain.records import (
    FINALIZE_ACTION,
    ArtifactKind,
    ExportArtifactRecord,
    JobRecord,
    JobStatus,
    PeriodRecord,
    PeriodStatus,
    ReadModelKind,
    artifact_ref,
    finalize_job_id,
)
from close_kernel.error_normalizer import normalize_error
from close_kernel.exceptions import ConcurrentModificationError, JobAlreadyExistsError
from close_kernel.logging_config import LogContext, get_logger
from close_kernel.services.close_store import CloseStore
from close_services._finalize_types import FinalizeResult, FinalizeStatus

logger = get_logger("services.period_finalization")

_ACCURACY_FALLBACK = "Final accuracy was reached on Day 0."
_VARIANCE_FALLBACK = "100% of variance resolved in the last 0 days."


def _safe_insight(insights: tuple[str, ...], index: int, fallback: str) -> str:
    return insights[index] if index < len(insights) else fallback


def _export_refs(tenant_id: str, month_key: str) -> dict[str, str]:
    return {kind.value: artifact_ref(tenant_id, month_key, kind) for kind in ArtifactKind}


class PeriodFinalizationWorkflow:
    """
    Rebuilds a finalized month's read models and exports.

    Contract:
        Receives the store, the clock and the close configuration via
        constructor injection.  Once the request is valid, ``finalize``
        never raises for business outcomes; it returns a FinalizeResult.
        An unsupported report currency raises InvalidCurrencyError before
        any job is created.
    Guarantees:
        - Two calls over the same event log produce the same lock hash and
          the second one is a no-op returning the recorded outputs.
        - A failed run leaves no partial read models or exports behind.
    Non-goals:
        - Does not commit; the caller owns the transaction.
        - Does not sweep RUNNING jobs left by crashed workers.
    """

    def __init__(self, store: CloseStore, clock: Clock, config: CloseConfig):
        self._store = store
        self._clock = clock
        self._config = config

    def finalize(
        self,
        tenant_id: str,
        month_key: str,
        *,
        currency: str | None = None,
        day_for_late_arrival: int | None = None,
        actor_id: str | None = None,
    ) -> FinalizeResult:
        with LogContext.bind(tenant_id=tenant_id, month_key=month_key, actor_id=actor_id):
            return self._finalize(tenant_id, month_key, currency, day_for_late_arrival)

    # -----------------------------------------------------------------
    # Orchestration
    # -----------------------------------------------------------------

    def _finalize(
        self,
        tenant_id: str,
        month_key: str,
        currency: str | None,
        day_for_late_arrival: int | None,
    ) -> FinalizeResult:
        period = self._store.read_period(tenant_id, month_key)
        if period is None or period.status != PeriodStatus.FINALIZED:
            logger.info("period_finalize_skipped", extra={"reason": FinalizeStatus.PERIOD_NOT_FINALIZED.value})
            return FinalizeResult(
                status=FinalizeStatus.PERIOD_NOT_FINALIZED,
                tenant_id=tenant_id,
                month_key=month_key,
                message="Period is not finalized or does not exist",
            )

        currency = currency or self._config.default_currency
        self._config.currencies.require(currency)

        month = Month.parse(month_key)
        as_of_days = period.as_of_days if period.as_of_days is not None else self._config.as_of_days
        finalized_at = period.finalized_at or self._clock.now_iso()

        events = self._store.read_events_by_month(tenant_id, month_key)
        lock_hash = compute_period_lock_hash(
            tenant_id=tenant_id,
            month_key=month_key,
            period_end=month.end,
            as_of_days=as_of_days,
            events=events,
        )
        self._store.upsert_period(
            PeriodRecord(
                tenant_id=tenant_id,
                month_key=month_key,
                status=PeriodStatus.FINALIZED,
                finalized_at=finalized_at,
                as_of_days=tuple(as_of_days),
                period_lock_hash=lock_hash,
            )
        )

        job_id = finalize_job_id(tenant_id, month_key, lock_hash)
        with LogContext.bind(job_id=job_id):
            claimed = self._claim_job(job_id, tenant_id, month_key, lock_hash)
            if claimed is not None:
                return claimed

            logger.info(
                "period_finalize_started",
                extra={"period_lock_hash": lock_hash, "event_count": len(events), "currency": currency},
            )
            try:
                with self._store.savepoint():
                    outputs = self._build_and_write(
                        tenant_id=tenant_id,
                        month=month,
                        currency=currency,
                        as_of_days=as_of_days,
                        final_as_of_date=date_key(finalized_at),
                        day_for_late_arrival=day_for_late_arrival,
                        events=events,
                        lock_hash=lock_hash,
                    )
            except Exception as exc:
                return self._record_failure(exc, job_id, tenant_id, month_key, lock_hash)

            self._store.update_job(
                job_id,
                expected_status=JobStatus.RUNNING,
                status=JobStatus.COMPLETED,
                outputs_refs=outputs,
            )
            logger.info("period_finalize_completed", extra={"period_lock_hash": lock_hash, "outputs": outputs})
            return FinalizeResult(
                status=FinalizeStatus.COMPLETED,
                tenant_id=tenant_id,
                month_key=month_key,
                job_id=job_id,
                period_lock_hash=lock_hash,
                outputs_refs=outputs,
            )

    def _claim_job(
        self, job_id: str, tenant_id: str, month_key: str, lock_hash: str
    ) -> FinalizeResult | None:
        """Move the job to RUNNING for this call, or return why we cannot."""
        existing = self._store.read_job(job_id)

        if existing is not None and existing.status == JobStatus.COMPLETED:
            logger.info("period_finalize_skipped", extra={"reason": FinalizeStatus.ALREADY_COMPLETED.value})
            return FinalizeResult(
                status=FinalizeStatus.ALREADY_COMPLETED,
                tenant_id=tenant_id,
                month_key=month_key,
                job_id=job_id,
                period_lock_hash=lock_hash,
                outputs_refs=dict(existing.outputs_refs) or _export_refs(tenant_id, month_key),
            )

        if existing is not None and existing.status == JobStatus.RUNNING:
            return self._in_progress(job_id, tenant_id, month_key, lock_hash)

        try:
            if existing is None:
                self._store.create_job(
                    JobRecord(
                        id=job_id,
                        tenant_id=tenant_id,
                        month_key=month_key,
                        action=FINALIZE_ACTION,
                        status=JobStatus.RUNNING,
                        period_lock_hash=lock_hash,
                    )
                )
            else:
                self._store.update_job(
                    job_id,
                    expected_status=JobStatus.FAILED,
                    status=JobStatus.RUNNING,
                )
                logger.info("period_finalize_retry", extra={"previous_error_code": existing.error_code})
        except (JobAlreadyExistsError, ConcurrentModificationError):
            return self._in_progress(job_id, tenant_id, month_key, lock_hash)
        return None

    def _in_progress(self, job_id: str, tenant_id: str, month_key: str, lock_hash: str) -> FinalizeResult:
        logger.info("period_finalize_skipped", extra={"reason": FinalizeStatus.JOB_IN_PROGRESS.value})
        return FinalizeResult(
            status=FinalizeStatus.JOB_IN_PROGRESS,
            tenant_id=tenant_id,
            month_key=month_key,
            job_id=job_id,
            period_lock_hash=lock_hash,
            message="Period finalization job is already running",
        )

    def _record_failure(
        self, exc: Exception, job_id: str, tenant_id: str, month_key: str, lock_hash: str
    ) -> FinalizeResult:
        error = normalize_error(exc)
        logger.error(
            "period_finalize_failed",
            extra={"error_code": error.code.value, "error_message": error.message},
            exc_info=True,
        )
        self._store.update_job(
            job_id,
            expected_status=JobStatus.RUNNING,
            status=JobStatus.FAILED,
            error_code=FinalizeStatus.FAILED.value,
            error_message=error.message,
        )
        return FinalizeResult(
            status=FinalizeStatus.FAILED,
            tenant_id=tenant_id,
            month_key=month_key,
            job_id=job_id,
            period_lock_hash=lock_hash,
            message=error.message,
        )

    # -----------------------------------------------------------------
    # Computation and writes
    # -----------------------------------------------------------------

    def _build_and_write(
        self,
        *,
        tenant_id: str,
        month: Month,
        currency: str,
        as_of_days: tuple[int, ...],
        final_as_of_date: str,
        day_for_late_arrival: int | None,
        events: list[BusinessEvent],
        lock_hash: str,
    ) -> dict[str, str]:
        month_key = month.key
        generated_at = self._clock.now_iso()

        timeline = compute_counterfactual_timeline(
            tenant_id=tenant_id,
            month_key=month_key,
            period_start=month.start,
            period_end=month.end,
            currency=currency,
            as_of_days=as_of_days,
            events=events,
            final_as_of_date=final_as_of_date,
        )

        if day_for_late_arrival is None:
            day_for_late_arrival = self._config.late_arrival_days
        if day_for_late_arrival is None:
            day_for_late_arrival = default_late_arrival_day(timeline.as_of_days)

        friction = compute_close_friction(
            tenant_id=tenant_id,
            month_key=month_key,
            period_end=month.end,
            events=events,
            timeline=timeline.entries,
            as_of_days=timeline.as_of_days,
            day_for_late_arrival=day_for_late_arrival,
        )

        final_snapshot = build_ledger_snapshot(events=events)
        vat_summary = compute_vat_summary(
            invoices=final_snapshot.invoices,
            currency=currency,
            bucket_rates=self._config.vat_buckets,
        )
        mismatches = detect_mismatches(
            bank_tx=final_snapshot.bank_tx,
            invoices=final_snapshot.invoices,
            matches=final_snapshot.matches,
            currency=currency,
        )

        stamp: dict[str, Any] = {"generated_at": generated_at, "period_lock_hash": lock_hash}
        readmodels = {
            ReadModelKind.MONTH_CLOSE_TIMELINE: build_month_close_timeline_readmodel(timeline, **stamp),
            ReadModelKind.CLOSE_FRICTION: build_close_friction_readmodel(
                friction,
                period_end=month.end,
                day_for_late_arrival=day_for_late_arrival,
                **stamp,
            ),
            ReadModelKind.VAT_SUMMARY: build_vat_summary_readmodel(
                vat_summary, tenant_id=tenant_id, month_key=month_key, **stamp
            ),
            ReadModelKind.MISMATCH_SUMMARY: build_mismatch_summary_readmodel(
                mismatches, tenant_id=tenant_id, month_key=month_key, **stamp
            ),
        }
        for kind, document in readmodels.items():
            self._store.write_readmodel(tenant_id, month_key, kind, document)

        self._write_replay_snapshots(tenant_id, month_key, timeline, events, stamp)

        self._write_exports(
            tenant_id=tenant_id,
            month_key=month_key,
            currency=currency,
            lock_hash=lock_hash,
            generated_at=generated_at,
            timeline=timeline,
            final_snapshot=final_snapshot,
            mismatches=mismatches,
            net_vat_cents=vat_summary.net_vat_cents,
        )
        return _export_refs(tenant_id, month_key)

    def _write_replay_snapshots(
        self,
        tenant_id: str,
        month_key: str,
        timeline: CounterfactualTimeline,
        events: list[BusinessEvent],
        stamp: dict[str, Any],
    ) -> None:
        occurred = [(date_key(e.occurred_at), e) for e in events]
        for entry in timeline.entries:
            cutoff = entry.as_of_date
            snapshot = build_ledger_snapshot(events=[e for d, e in occurred if d <= cutoff])
            document = build_auditor_replay_snapshot(
                snapshot,
                tenant_id=tenant_id,
                month_key=month_key,
                as_of_date_key=cutoff,
                **stamp,
            )
            self._store.write_audit_snapshot(tenant_id, month_key, cutoff, document)

    def _write_exports(
        self,
        *,
        tenant_id: str,
        month_key: str,
        currency: str,
        lock_hash: str,
        generated_at: str,
        timeline: CounterfactualTimeline,
        final_snapshot: LedgerSnapshot,
        mismatches: MismatchSummary,
        net_vat_cents: int,
    ) -> None:
        if self._export_is_current(tenant_id, month_key, ArtifactKind.LEDGER_CSV, lock_hash):
            logger.info("export_unchanged", extra={"kind": ArtifactKind.LEDGER_CSV.value})
        else:
            rendered = render_ledger_csv(
                tenant_id=tenant_id,
                month_key=month_key,
                currency=currency,
                bank_tx=final_snapshot.bank_tx,
                invoices=final_snapshot.invoices,
                matches=final_snapshot.matches,
            )
            self._save_export(tenant_id, month_key, ArtifactKind.LEDGER_CSV, rendered, lock_hash, generated_at)

        if self._export_is_current(tenant_id, month_key, ArtifactKind.SUMMARY_PDF, lock_hash):
            logger.info("export_unchanged", extra={"kind": ArtifactKind.SUMMARY_PDF.value})
        else:
            final = timeline.final_entry
            figures = SummaryFigures(
                tenant_id=tenant_id,
                tenant_name=tenant_id,
                month_key=month_key,
                currency=currency,
                generated_at=generated_at,
                revenue_cents=final.revenue_cents,
                expense_cents=final.expense_cents,
                vat_cents=final.vat_cents,
                net_vat_cents=net_vat_cents,
                unmatched_count=final.unmatched_total_count,
                bank_tx_mismatch_count=len(mismatches.bank_tx_without_invoice),
                invoice_mismatch_count=mismatches.invoice_mismatch_count,
                final_accuracy_statement=_safe_insight(timeline.insights, 0, _ACCURACY_FALLBACK),
                variance_resolved_statement=_safe_insight(timeline.insights, 1, _VARIANCE_FALLBACK),
            )
            rendered = render_summary_pdf(figures=figures)
            self._save_export(tenant_id, month_key, ArtifactKind.SUMMARY_PDF, rendered, lock_hash, generated_at)

    def _export_is_current(self, tenant_id: str, month_key: str, kind: ArtifactKind, lock_hash: str) -> bool:
        existing = self._store.read_export_artifact(tenant_id, month_key, kind)
        return existing is not None and existing.period_lock_hash == lock_hash

    def _save_export(
        self,
        tenant_id: str,
        month_key: str,
        kind: ArtifactKind,
        rendered: RenderedExport,
        lock_hash: str,
        generated_at: str,
    ) -> None:
        self._store.write_export_artifact(
            ExportArtifactRecord(
                tenant_id=tenant_id,
                month_key=month_key,
                kind=kind,
                period_lock_hash=lock_hash,
                content_hash=rendered.content_hash,
                content_type=rendered.content_type,
                filename=rendered.filename,
                content=rendered.content,
                generated_at=generated_at,
                schema_version=SCHEMA_VERSION,
            )
        )
        logger.info(
            "export_written",
            extra={"kind": kind.value, "content_hash": rendered.content_hash, "filename": rendered.filename},
        )

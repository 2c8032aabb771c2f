"""Application services orchestrating mastering attempts."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

import numpy as np

from intent_master.advisory import AdvisoryOracle, DecisionResolution, oracles_from_config, resolve_decision
from intent_master.analysis import AnalysisSnapshot
from intent_master.application.event_publisher import EventPublisher, NullEventPublisher
from intent_master.application.session import MasteringSession
from intent_master.correction import (
    DEFAULT_CORRECTION_TUNING,
    CorrectionIteration,
    CorrectionResult,
    CorrectionTuning,
    run_self_correction,
)
from intent_master.decision import DEFAULT_DECISION, Decision
from intent_master.derivation import DerivationTuning, derive_params
from intent_master.domain.events import (
    CorrectionIterated,
    DecisionResolved,
    MasteringCompleted,
    MasteringFailed,
    ParamsDerived,
)
from intent_master.errors import AttemptSuperseded, MasteringError
from intent_master.feedback import FeedbackType, apply_feedback_adjustment
from intent_master.params import Params
from intent_master.rendering import RenderMeasure
from intent_master.safety import clamp_adjusted_params, clamp_params
from intent_master.specifics import MasteringTarget, Specifics, resolve_specifics
from intent_master.utils.config import MasteringConfig


@dataclass(frozen=True, slots=True)
class MasteringOutcome:
    """Everything produced by one attempt, ending in validated parameters."""

    attempt_id: int
    correlation_id: str
    specifics: Specifics
    decision: Decision
    decision_steps: tuple[str, ...]
    derived_params: Params
    correction: CorrectionResult

    @property
    def params(self) -> Params:
        return self.correction.params


@dataclass(slots=True)
class MasterTrackWithIntent:
    """Use case that turns an analysis snapshot into validated mastering parameters."""

    renderer: RenderMeasure
    primary_oracle: AdvisoryOracle | None = None
    reviewer_oracle: AdvisoryOracle | None = None
    correction_tuning: CorrectionTuning = DEFAULT_CORRECTION_TUNING
    derivation_tuning: DerivationTuning | None = None
    event_publisher: EventPublisher = NullEventPublisher()

    @classmethod
    def from_config(
        cls,
        config: MasteringConfig,
        renderer: RenderMeasure,
        event_publisher: EventPublisher | None = None,
    ) -> "MasterTrackWithIntent":
        primary, reviewer = oracles_from_config(config.oracle)
        return cls(
            renderer=renderer,
            primary_oracle=primary,
            reviewer_oracle=reviewer,
            correction_tuning=config.self_correction.to_tuning(),
            event_publisher=event_publisher or NullEventPublisher(),
        )

    async def resolve(self, snapshot: AnalysisSnapshot, specifics: Specifics) -> DecisionResolution:
        if self.primary_oracle is None:
            return DecisionResolution(
                decision=DEFAULT_DECISION,
                raw_text="",
                steps=("default",),
            )
        return await resolve_decision(snapshot, specifics, self.primary_oracle, self.reviewer_oracle)

    def prepare_params(self, decision: Decision, snapshot: AnalysisSnapshot, specifics: Specifics) -> Params:
        return clamp_params(derive_params(decision, snapshot, specifics, self.derivation_tuning), snapshot)

    def _fail(self, correlation_id: str, attempt_id: int, stage: str, error: MasteringError) -> None:
        self.event_publisher.publish(
            MasteringFailed(
                correlation_id=correlation_id,
                payload_summary={"stage": stage, "attempt_id": attempt_id, **error.as_dict()},
            )
        )

    def _iteration_publisher(self, correlation_id: str, attempt_id: int):
        def publish(iteration: CorrectionIteration) -> None:
            self.event_publisher.publish(
                CorrectionIterated(
                    correlation_id=correlation_id,
                    payload_summary={
                        "attempt_id": attempt_id,
                        "iteration": iteration.index,
                        "gain_db": iteration.gain_db,
                        "measured_loudness": iteration.measured_loudness,
                        "measured_peak_db": iteration.measured_peak_db,
                    },
                )
            )

        return publish

    async def _correct(
        self,
        params: Params,
        snapshot: AnalysisSnapshot,
        specifics: Specifics,
        source: np.ndarray,
        sample_rate: int,
        session: MasteringSession | None,
        attempt_id: int,
        correlation_id: str,
    ) -> CorrectionResult:
        try:
            return await run_self_correction(
                params,
                snapshot,
                specifics,
                source,
                sample_rate,
                self.renderer,
                tuning=self.correction_tuning,
                is_live=session.liveness(attempt_id) if session is not None else None,
                attempt_id=attempt_id,
                on_iteration=self._iteration_publisher(correlation_id, attempt_id),
            )
        except MasteringError as exc:
            self._fail(correlation_id, attempt_id, "correction", exc)
            raise

    def _complete(self, outcome: MasteringOutcome) -> MasteringOutcome:
        result = outcome.correction
        self.event_publisher.publish(
            MasteringCompleted(
                correlation_id=outcome.correlation_id,
                payload_summary={
                    "attempt_id": outcome.attempt_id,
                    "status": result.status.value,
                    "iterations": len(result.iterations),
                    "gain_db": result.params.gain_db,
                    "measured_loudness": result.measured_loudness,
                    "measured_peak_db": result.measured_peak_db,
                },
            )
        )
        return outcome

    async def run(
        self,
        snapshot: AnalysisSnapshot,
        target: MasteringTarget,
        source: np.ndarray,
        sample_rate: int,
        decision: Decision | None = None,
        session: MasteringSession | None = None,
        correlation_id: str | None = None,
    ) -> MasteringOutcome:
        run_correlation_id = correlation_id or str(uuid4())
        attempt_id = session.begin_attempt() if session is not None else 0
        specifics = resolve_specifics(target)

        if decision is not None:
            resolution = DecisionResolution(decision=decision, raw_text="", steps=("provided",))
        else:
            try:
                resolution = await self.resolve(snapshot, specifics)
                if session is not None and not session.is_current(attempt_id):
                    raise AttemptSuperseded(attempt_id)
            except MasteringError as exc:
                self._fail(run_correlation_id, attempt_id, "decision", exc)
                raise
        self.event_publisher.publish(
            DecisionResolved(
                correlation_id=run_correlation_id,
                payload_summary={
                    "attempt_id": attempt_id,
                    "steps": list(resolution.steps),
                    **resolution.decision.as_dict(),
                },
            )
        )

        params = self.prepare_params(resolution.decision, snapshot, specifics)
        self.event_publisher.publish(
            ParamsDerived(
                correlation_id=run_correlation_id,
                payload_summary={
                    "attempt_id": attempt_id,
                    "gain_db": params.gain_db,
                    "limiter_ceiling_db": params.limiter_ceiling_db,
                    "tube_drive_amount": params.tube_drive_amount,
                    "width_amount": params.width_amount,
                    "eq_count": len(params.eq_adjustments),
                    "safety_pressure": params.safety_pressure,
                },
            )
        )

        correction = await self._correct(
            params, snapshot, specifics, source, sample_rate, session, attempt_id, run_correlation_id
        )
        return self._complete(
            MasteringOutcome(
                attempt_id=attempt_id,
                correlation_id=run_correlation_id,
                specifics=specifics,
                decision=resolution.decision,
                decision_steps=resolution.steps,
                derived_params=params,
                correction=correction,
            )
        )

    async def retry_with_feedback(
        self,
        previous: MasteringOutcome,
        feedback: FeedbackType,
        snapshot: AnalysisSnapshot,
        source: np.ndarray,
        sample_rate: int,
        session: MasteringSession | None = None,
    ) -> MasteringOutcome:
        """Nudge the previous validated parameters and validate them again."""

        attempt_id = session.begin_attempt() if session is not None else previous.attempt_id + 1
        adjusted = apply_feedback_adjustment(previous.params, feedback, self.correction_tuning)
        params = clamp_adjusted_params(previous.params, adjusted, snapshot)
        self.event_publisher.publish(
            ParamsDerived(
                correlation_id=previous.correlation_id,
                payload_summary={
                    "attempt_id": attempt_id,
                    "feedback": feedback.value,
                    "gain_db": params.gain_db,
                    "target_loudness": params.target_loudness,
                    "limiter_ceiling_db": params.limiter_ceiling_db,
                    "eq_count": len(params.eq_adjustments),
                },
            )
        )
        correction = await self._correct(
            params,
            snapshot,
            previous.specifics,
            source,
            sample_rate,
            session,
            attempt_id,
            previous.correlation_id,
        )
        return self._complete(
            MasteringOutcome(
                attempt_id=attempt_id,
                correlation_id=previous.correlation_id,
                specifics=previous.specifics,
                decision=previous.decision,
                decision_steps=previous.decision_steps + (f"feedback:{feedback.value}",),
                derived_params=params,
                correction=correction,
            )
        )

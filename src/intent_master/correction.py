"""Closed-loop gain correction against rendered trial masters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import numpy as np

from .analysis import AnalysisSnapshot
from .errors import AttemptSuperseded, PeakLimitExceeded, RenderFailure
from .params import Params
from .rendering import RenderMeasure, TrialRender
from .safety import DEFAULT_BOUNDS, clamp_params
from .specifics import Specifics

LOGGER = logging.getLogger(__name__)

MIN_GAIN_STEP_DB = 0.2
MAX_GAIN_STEP_DB = 0.8
GAIN_STEP_TOLERANCE_RATIO = 0.35


@dataclass(frozen=True, slots=True)
class CorrectionTuning:
    """Tunable constants for the self-correction loop."""

    loudness_tolerance_db: float = 1.0
    max_gain_step_db: float | None = None
    max_iterations: int = 12
    peak_margin_db: float = 0.1
    max_peak_cut_db: float | None = None
    max_total_adjustment_db: float = 6.0
    window_seconds: float = 10.0
    back_half_points: int = 3


DEFAULT_CORRECTION_TUNING = CorrectionTuning()


class CorrectionStatus(str, Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class CorrectionIteration:
    """One rendered and measured trial."""

    index: int
    gain_db: float
    measured_loudness: float
    measured_peak_db: float


@dataclass(frozen=True, slots=True)
class CorrectionResult:
    """Validated parameters plus the measurement that validated them."""

    params: Params
    measured_loudness: float
    measured_peak_db: float
    status: CorrectionStatus
    iterations: tuple[CorrectionIteration, ...] = tuple()

    @property
    def converged(self) -> bool:
        return self.status is CorrectionStatus.CONVERGED


def derive_gain_step_cap(loudness_tolerance_db: float, configured_step_db: float | None = None) -> float:
    """Per-iteration gain step, clamped to a range that avoids oscillation."""

    raw = configured_step_db if configured_step_db is not None else GAIN_STEP_TOLERANCE_RATIO * loudness_tolerance_db
    return float(np.clip(raw, MIN_GAIN_STEP_DB, MAX_GAIN_STEP_DB))


def compute_peak_safe_gain(
    candidate_gain_db: float,
    applied_gain_db: float,
    observed_peak_db: float,
    target_peak_db: float,
    peak_margin_db: float,
    max_peak_cut_db: float | None = None,
) -> float:
    """Pull a candidate gain down when it would push the peak past target + margin.

    The cut is the full overflow below ``target - margin`` so the next render
    lands with headroom, optionally limited to ``max_peak_cut_db`` per call.
    """

    predicted_peak_db = observed_peak_db + (candidate_gain_db - applied_gain_db)
    if predicted_peak_db <= target_peak_db + peak_margin_db:
        return candidate_gain_db

    cut_db = predicted_peak_db - (target_peak_db - peak_margin_db)
    if max_peak_cut_db is not None:
        cut_db = min(cut_db, max_peak_cut_db)
    return candidate_gain_db - cut_db


def measurement_windows(total_frames: int, window_frames: int, back_half_points: int = 3) -> tuple[int, ...]:
    """Window start frames: the beginning, the back half, and one ending at the buffer end."""

    if total_frames <= window_frames or window_frames <= 0:
        return (0,)

    last_start = total_frames - window_frames
    half = min(total_frames // 2, last_start)
    starts = {0, last_start}
    if back_half_points > 0:
        starts.update(int(round(point)) for point in np.linspace(half, last_start, back_half_points))
    return tuple(sorted(starts))


def observe_render(render: TrialRender, tuning: CorrectionTuning) -> tuple[float, float]:
    """Return ``(loudness, peak)`` taken as the loudest window and the hottest peak."""

    window_frames = int(round(tuning.window_seconds * render.sample_rate))
    starts = measurement_windows(render.frame_count, window_frames, tuning.back_half_points)
    length = min(window_frames, render.frame_count)
    measurements = [render.measure(start, length) for start in starts]
    loudness = max(measurement.loudness_lufs for measurement in measurements)
    peak = max(measurement.true_peak_db for measurement in measurements)
    return loudness, peak


def _ensure_live(is_live: Callable[[], bool] | None, attempt_id: int) -> None:
    if is_live is not None and not is_live():
        raise AttemptSuperseded(attempt_id)


async def _trial(
    renderer: RenderMeasure,
    params: Params,
    source: np.ndarray,
    sample_rate: int,
    tuning: CorrectionTuning,
    index: int,
    is_live: Callable[[], bool] | None,
    attempt_id: int,
) -> tuple[float, float]:
    _ensure_live(is_live, attempt_id)
    try:
        render = await renderer.render(params, source, sample_rate)
        measured = observe_render(render, tuning)
    except (AttemptSuperseded, RenderFailure):
        raise
    except Exception as exc:
        raise RenderFailure(f"Trial render failed on iteration {index}: {exc}") from exc
    _ensure_live(is_live, attempt_id)
    return measured


async def run_self_correction(
    params: Params,
    snapshot: AnalysisSnapshot,
    specifics: Specifics,
    source: np.ndarray,
    sample_rate: int,
    renderer: RenderMeasure,
    tuning: CorrectionTuning = DEFAULT_CORRECTION_TUNING,
    is_live: Callable[[], bool] | None = None,
    attempt_id: int = 0,
    on_iteration: Callable[[CorrectionIteration], None] | None = None,
) -> CorrectionResult:
    """Render, measure and nudge gain until loudness and peak are on target.

    Loudness is steered toward ``params.target_loudness`` so feedback nudges to
    the target carry through; the peak limit comes from ``specifics``.

    Returns the converged parameters, or the best peak-safe candidate seen when
    the iteration budget runs out. When no render met the peak limit, the
    coolest one is cut to ``target - margin`` and verified with one more
    render; if that still fails, or the gain floor leaves nothing to cut,
    :class:`~intent_master.errors.PeakLimitExceeded` is raised. Render errors
    surface as :class:`~intent_master.errors.RenderFailure`; an attempt that
    stops being live raises :class:`~intent_master.errors.AttemptSuperseded`.
    """

    step_cap = derive_gain_step_cap(tuning.loudness_tolerance_db, tuning.max_gain_step_db)
    target_loudness = params.target_loudness
    peak_limit = specifics.target_peak + tuning.peak_margin_db
    current = clamp_params(params, snapshot)
    start_gain = current.gain_db
    total_low = max(DEFAULT_BOUNDS.gain_db[0], start_gain - tuning.max_total_adjustment_db)
    total_high = min(DEFAULT_BOUNDS.gain_db[1], start_gain + tuning.max_total_adjustment_db)

    iterations: list[CorrectionIteration] = []
    best: CorrectionIteration | None = None
    best_params = current

    async def observe(candidate: Params) -> CorrectionIteration:
        index = len(iterations) + 1
        loudness, peak = await _trial(
            renderer, candidate, source, sample_rate, tuning, index, is_live, attempt_id
        )
        iteration = CorrectionIteration(
            index=index,
            gain_db=candidate.gain_db,
            measured_loudness=loudness,
            measured_peak_db=peak,
        )
        iterations.append(iteration)
        if on_iteration is not None:
            on_iteration(iteration)
        LOGGER.debug(
            "correction_iteration",
            extra={
                "iteration": index,
                "gain_db": candidate.gain_db,
                "loudness": loudness,
                "peak_db": peak,
                "error_db": target_loudness - loudness,
            },
        )
        return iteration

    for _ in range(max(1, tuning.max_iterations)):
        iteration = await observe(current)
        loudness, peak = iteration.measured_loudness, iteration.measured_peak_db
        error_db = target_loudness - loudness
        peak_safe = peak <= peak_limit

        if peak_safe and (best is None or abs(error_db) < abs(target_loudness - best.measured_loudness)):
            best, best_params = iteration, current

        if peak_safe and abs(error_db) <= tuning.loudness_tolerance_db:
            return CorrectionResult(
                params=current,
                measured_loudness=loudness,
                measured_peak_db=peak,
                status=CorrectionStatus.CONVERGED,
                iterations=tuple(iterations),
            )

        candidate = current.gain_db + float(np.clip(error_db, -step_cap, step_cap))
        candidate = compute_peak_safe_gain(
            candidate,
            current.gain_db,
            peak,
            specifics.target_peak,
            tuning.peak_margin_db,
            tuning.max_peak_cut_db,
        )
        candidate = float(np.clip(candidate, total_low, total_high))
        if np.isclose(candidate, current.gain_db, atol=1e-6):
            break
        current = clamp_params(current.with_gain(candidate), snapshot)

    if best is None:
        best, best_params = await _verify_coolest(iterations, current, snapshot, specifics, tuning, observe)

    LOGGER.debug("correction_exhausted", extra={"iterations": len(iterations), "gain_db": best.gain_db})
    return CorrectionResult(
        params=best_params,
        measured_loudness=best.measured_loudness,
        measured_peak_db=best.measured_peak_db,
        status=CorrectionStatus.EXHAUSTED,
        iterations=tuple(iterations),
    )


async def _verify_coolest(
    iterations: list[CorrectionIteration],
    current: Params,
    snapshot: AnalysisSnapshot,
    specifics: Specifics,
    tuning: CorrectionTuning,
    observe: Callable[[Params], Awaitable[CorrectionIteration]],
) -> tuple[CorrectionIteration, Params]:
    """Cut the coolest unsafe render fully below the peak limit and re-measure it."""

    peak_limit = specifics.target_peak + tuning.peak_margin_db
    coolest = min(iterations, key=lambda item: item.measured_peak_db)
    safe_gain = compute_peak_safe_gain(
        coolest.gain_db,
        coolest.gain_db,
        coolest.measured_peak_db,
        specifics.target_peak,
        tuning.peak_margin_db,
    )
    safe_gain = max(DEFAULT_BOUNDS.gain_db[0], safe_gain)
    if np.isclose(safe_gain, coolest.gain_db, atol=1e-6):
        raise PeakLimitExceeded(
            f"Peak {coolest.measured_peak_db:.2f} dBTP stays above {peak_limit:.2f} dBTP at the gain floor."
        )

    candidate = clamp_params(current.with_gain(safe_gain), snapshot)
    verified = await observe(candidate)
    if verified.measured_peak_db > peak_limit:
        raise PeakLimitExceeded(
            f"Peak {verified.measured_peak_db:.2f} dBTP stays above {peak_limit:.2f} dBTP "
            f"after cutting gain to {candidate.gain_db:.2f} dB."
        )
    return verified, candidate

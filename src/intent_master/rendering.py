"""Render+measure boundary: trial mastering of the source buffer and window metering."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Protocol

import numpy as np
import pyloudnorm as pyln
from pedalboard import (
    Compressor,
    Distortion,
    Gain,
    HighShelfFilter,
    HighpassFilter,
    Limiter,
    LowShelfFilter,
    PeakFilter,
    Pedalboard,
)

from .params import EqAdjustment, EqFilterType, Params

SILENCE_LUFS = -70.0
SILENCE_DBTP = -70.0
LOUDNESS_BLOCK_SECONDS = 0.4


@dataclass(frozen=True, slots=True)
class WindowMeasurement:
    """Loudness and true peak of one measured window."""

    loudness_lufs: float
    true_peak_db: float


def _as_channels(audio: np.ndarray) -> np.ndarray:
    """View a mono or channel-first window as ``(channels, frames)`` float64."""

    return np.atleast_2d(np.asarray(audio, dtype=np.float64))


def measure_integrated_lufs(audio: np.ndarray, sample_rate: int) -> float:
    """Gated BS.1770 loudness of one window; anything shorter than a gating block reads as silence."""

    channels = _as_channels(audio)
    if channels.shape[-1] <= int(LOUDNESS_BLOCK_SECONDS * sample_rate):
        return SILENCE_LUFS
    meter = pyln.Meter(sample_rate, block_size=LOUDNESS_BLOCK_SECONDS)
    loudness = float(meter.integrated_loudness(channels.T))
    return loudness if np.isfinite(loudness) else SILENCE_LUFS


def measure_true_peak_dbtp(audio: np.ndarray, oversample_factor: int = 4) -> float:
    """Inter-sample peak of one window, linearly interpolated at ``oversample_factor``."""

    if oversample_factor < 1:
        raise ValueError("oversample_factor must be >= 1")

    channels = _as_channels(audio)
    if channels.size == 0:
        return SILENCE_DBTP
    frame_count = channels.shape[-1]
    if oversample_factor > 1 and frame_count > 1:
        grid = np.linspace(0.0, frame_count - 1, frame_count * oversample_factor)
        frames = np.arange(frame_count)
        channels = np.stack([np.interp(grid, frames, channel) for channel in channels])

    peak = float(np.max(np.abs(channels)))
    return float(20.0 * np.log10(peak)) if peak > 0.0 else SILENCE_DBTP


def measure_window(audio: np.ndarray, sample_rate: int) -> WindowMeasurement:
    return WindowMeasurement(
        loudness_lufs=measure_integrated_lufs(audio, sample_rate),
        true_peak_db=measure_true_peak_dbtp(audio),
    )


@dataclass(frozen=True, slots=True)
class TrialRender:
    """A rendered trial master plus the function that meters a slice of it.

    ``buffer`` is channel-first, matching pedalboard's layout.
    """

    buffer: np.ndarray
    sample_rate: int
    meter: Callable[[np.ndarray, int], WindowMeasurement] = field(default=measure_window)

    @property
    def frame_count(self) -> int:
        return int(self.buffer.shape[-1])

    def measure(self, start_frame: int, length_frames: int) -> WindowMeasurement:
        """Meter the ``[start_frame, start_frame + length_frames)`` window."""

        start = max(0, int(start_frame))
        stop = min(self.frame_count, start + max(0, int(length_frames)))
        return self.meter(self.buffer[..., start:stop], self.sample_rate)


class RenderMeasure(Protocol):
    """Port for rendering a trial master with a given parameter set."""

    async def render(self, params: Params, source: np.ndarray, sample_rate: int) -> TrialRender:
        """Render ``source`` through the mastering chain described by ``params``."""


@dataclass(frozen=True, slots=True)
class ChainVoicing:
    """Fixed voicing constants of the reference chain."""

    rumble_hpf_hz: float = 25.0
    contour_shelf_hz: float = 80.0
    contour_depth_db: float = 4.0
    compressor_threshold_db: float = -16.0
    compressor_ratio: float = 1.8
    tube_drive_db: float = 10.0
    tube_mix: float = 0.12
    exciter_drive_db: float = 18.0
    exciter_mix: float = 1.5
    default_attack_s: float = 0.02
    default_release_s: float = 0.15
    default_limiter_release_s: float = 0.15
    default_low_mono_hz: float = 120.0
    default_tube_hpf_hz: float = 40.0
    default_exciter_hpf_hz: float = 6_000.0


DEFAULT_VOICING = ChainVoicing()


def _eq_plugin(adjustment: EqAdjustment):
    if adjustment.filter_type is EqFilterType.LOWSHELF:
        return LowShelfFilter(
            cutoff_frequency_hz=adjustment.frequency_hz,
            gain_db=adjustment.gain_db,
            q=adjustment.q,
        )
    if adjustment.filter_type is EqFilterType.HIGHSHELF:
        return HighShelfFilter(
            cutoff_frequency_hz=adjustment.frequency_hz,
            gain_db=adjustment.gain_db,
            q=adjustment.q,
        )
    return PeakFilter(
        cutoff_frequency_hz=adjustment.frequency_hz,
        gain_db=adjustment.gain_db,
        q=adjustment.q,
    )


def build_tone_chain(params: Params, voicing: ChainVoicing = DEFAULT_VOICING) -> Pedalboard:
    """Corrective EQ, low contour and transient stage, in that order."""

    plugins = [HighpassFilter(cutoff_frequency_hz=voicing.rumble_hpf_hz)]
    plugins.extend(_eq_plugin(adjustment) for adjustment in params.eq_adjustments)
    if params.low_contour_amount > 0.0:
        plugins.append(
            LowShelfFilter(
                cutoff_frequency_hz=voicing.contour_shelf_hz,
                gain_db=-voicing.contour_depth_db * params.low_contour_amount,
            )
        )

    attack_s = params.transient_attack_s or voicing.default_attack_s
    release_s = params.transient_release_s or voicing.default_release_s
    plugins.append(
        Compressor(
            threshold_db=voicing.compressor_threshold_db,
            ratio=voicing.compressor_ratio,
            attack_ms=attack_s * 1000.0,
            release_ms=release_s * 1000.0,
        )
    )
    return Pedalboard(plugins)


def build_output_chain(params: Params, voicing: ChainVoicing = DEFAULT_VOICING) -> Pedalboard:
    release_s = params.limiter_release_s or voicing.default_limiter_release_s
    return Pedalboard(
        [
            Gain(gain_db=params.gain_db),
            Limiter(threshold_db=params.limiter_ceiling_db, release_ms=release_s * 1000.0),
        ]
    )


def _parallel_harmonics(
    audio: np.ndarray,
    sample_rate: int,
    highpass_hz: float,
    drive_db: float,
    mix: float,
) -> np.ndarray:
    if mix <= 0.0:
        return audio
    band = HighpassFilter(cutoff_frequency_hz=highpass_hz)(audio, sample_rate)
    wet = Distortion(drive_db=drive_db)(band, sample_rate)
    return audio + mix * (wet - band)


def apply_stereo_width(
    audio: np.ndarray,
    sample_rate: int,
    width: float,
    low_mono_hz: float,
) -> np.ndarray:
    """Scale the side signal above ``low_mono_hz``; everything below is summed to mono."""

    if audio.ndim != 2 or audio.shape[0] != 2:
        return audio
    mid = 0.5 * (audio[0] + audio[1])
    side = 0.5 * (audio[0] - audio[1])
    side_high = HighpassFilter(cutoff_frequency_hz=low_mono_hz)(
        side[np.newaxis, :].astype(np.float32), sample_rate
    )[0]
    side_out = side_high * width
    return np.stack([mid + side_out, mid - side_out]).astype(np.float32)


def render_master(
    params: Params,
    source: np.ndarray,
    sample_rate: int,
    voicing: ChainVoicing = DEFAULT_VOICING,
) -> np.ndarray:
    """Apply the full mastering chain synchronously."""

    audio = np.asarray(source, dtype=np.float32)
    audio = build_tone_chain(params, voicing)(audio, sample_rate)
    audio = _parallel_harmonics(
        audio,
        sample_rate,
        params.tube_hpf_hz or voicing.default_tube_hpf_hz,
        voicing.tube_drive_db,
        voicing.tube_mix * params.tube_drive_amount,
    )
    audio = _parallel_harmonics(
        audio,
        sample_rate,
        params.exciter_hpf_hz or voicing.default_exciter_hpf_hz,
        voicing.exciter_drive_db,
        voicing.exciter_mix * params.exciter_amount,
    )
    audio = apply_stereo_width(
        audio,
        sample_rate,
        params.width_amount,
        params.low_mono_hz or voicing.default_low_mono_hz,
    )
    return build_output_chain(params, voicing)(np.asarray(audio, dtype=np.float32), sample_rate)


@dataclass(frozen=True, slots=True)
class PedalboardRenderer:
    """Reference :class:`RenderMeasure` adapter built on pedalboard and pyloudnorm."""

    voicing: ChainVoicing = DEFAULT_VOICING

    async def render(self, params: Params, source: np.ndarray, sample_rate: int) -> TrialRender:
        mastered = await asyncio.to_thread(render_master, params, source, sample_rate, self.voicing)
        return TrialRender(buffer=mastered, sample_rate=sample_rate)

import numpy as np
import pytest


@pytest.fixture
def sine_wave():
    sample_rate = 44100
    duration_s = 3.0
    t = np.linspace(0.0, duration_s, int(sample_rate * duration_s), endpoint=False)
    base = np.sin(2 * np.pi * 110.0 * t) + 0.3 * np.sin(2 * np.pi * 2_000.0 * t)
    stereo = np.stack([base, np.roll(base, 40)]).astype(np.float32)
    return {
        "sample_rate": sample_rate,
        "quiet": 0.1 * stereo,
        "loud": 0.5 * stereo,
    }

"""Fake probers for check_jitter testing and simulation."""

import random
from collections import deque
from typing import Iterable

from check_jitter.models import FailureReason, ProbeFailure, ProbeOutcome, ProbeSuccess


class FakeProber:
    """Prober that replays scripted round-trip times.

    Each script entry is either an RTT in milliseconds or a FailureReason.
    Once the script runs out, every further probe times out.

        prober = FakeProber([10.0, 12.0, FailureReason.TIMEOUT, 13.0])
    """

    def __init__(self, script: Iterable[float | FailureReason] | None = None):
        self.script = deque(script or [])
        self.probed: list[int] = []
        self.opened = False
        self.closed = False

    def __enter__(self) -> "FakeProber":
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def probe(self, sequence_index: int) -> ProbeOutcome:
        self.probed.append(sequence_index)
        if not self.script:
            return ProbeFailure(sequence_index, FailureReason.TIMEOUT)

        entry = self.script.popleft()
        if isinstance(entry, FailureReason):
            return ProbeFailure(sequence_index, entry)
        return ProbeSuccess(sequence_index, float(entry))


class SimulatedProber(FakeProber):
    """Generates plausible RTTs with occasional spikes and loss."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        super().__init__()
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_latency = 25.0  # Base latency in ms
        self.latency_variance = 5.0  # Normal variance
        self.spike_probability = 0.05
        self.spike_multiplier = 3.0
        self.loss_probability = 0.02

    def probe(self, sequence_index: int) -> ProbeOutcome:
        self.probed.append(sequence_index)

        if self._random.random() < self.loss_probability:
            return ProbeFailure(sequence_index, FailureReason.TIMEOUT)

        latency = self.base_latency
        if self._random.random() < self.spike_probability:
            latency *= self.spike_multiplier
        latency += self._random.gauss(0, self.latency_variance)

        return ProbeSuccess(sequence_index, round(max(0.1, latency), 3))

"""
Randomized human-like pacing.

Tests inject PacingProfile.instant(); production code uses PacingProfile.default().
"""
import asyncio
import random
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DelayRange:
    min_seconds: float
    max_seconds: float

    def __post_init__(self):
        if self.min_seconds < 0 or self.max_seconds < self.min_seconds:
            raise ValueError(f"invalid delay range {self.min_seconds}..{self.max_seconds}")

    def sample(self, rng: random.Random = None) -> float:
        rng = rng or random
        return rng.uniform(self.min_seconds, self.max_seconds)

    async def sleep(self, rng: random.Random = None) -> float:
        delay = self.sample(rng)
        if delay > 0:
            await asyncio.sleep(delay)
        return delay


ZERO = DelayRange(0.0, 0.0)


@dataclass
class PacingProfile:
    page_open: DelayRange = DelayRange(1.0, 2.0)
    page_settle: DelayRange = DelayRange(2.0, 4.0)
    pagination_settle: DelayRange = DelayRange(1.5, 3.0)
    keystroke: DelayRange = DelayRange(0.03, 0.10)
    inter_field: DelayRange = DelayRange(0.05, 0.40)
    pre_click: DelayRange = DelayRange(0.2, 0.5)
    submit_settle: DelayRange = DelayRange(2.0, 3.0)
    platform_gap: DelayRange = DelayRange(3.0, 3.0)
    scroll_probability: float = 0.35
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def default(cls, platform_delay_seconds: float = 3.0) -> "PacingProfile":
        return cls(platform_gap=DelayRange(platform_delay_seconds, platform_delay_seconds))

    @classmethod
    def instant(cls, seed: int = 0) -> "PacingProfile":
        return cls(
            page_open=ZERO,
            page_settle=ZERO,
            pagination_settle=ZERO,
            keystroke=ZERO,
            inter_field=ZERO,
            pre_click=ZERO,
            submit_settle=ZERO,
            platform_gap=ZERO,
            scroll_probability=0.0,
            rng=random.Random(seed),
        )

    async def pause(self, delay: DelayRange) -> float:
        return await delay.sleep(self.rng)

    def should_scroll(self) -> bool:
        return self.rng.random() < self.scroll_probability

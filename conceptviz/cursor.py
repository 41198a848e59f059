"""
Bounded cursor with auto-advance.

Every animated panel drives one or more of these: an integer position in
[lower, upper], a restart value auto-play wraps to, a timer interval and a
playing flag. The cursor is immutable so it can live in a ``gr.State``;
each operation returns a new cursor.

State machine:
    paused  --play/toggle-->  playing
    playing --pause/toggle/step/scrub/reset-->  paused
Parameter-driven changes (bounds, interval, rewind) never change the
playing flag.
"""
from dataclasses import dataclass, replace


def _clamp(value, lower, upper):
    return max(lower, min(upper, int(value)))


@dataclass(frozen=True)
class BoundedCursor:
    value: int
    lower: int
    upper: int
    restart: int
    interval_ms: int
    playing: bool = False

    def __post_init__(self):
        if self.upper < self.lower:
            raise ValueError(f"upper ({self.upper}) < lower ({self.lower})")
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, 'restart', _clamp(self.restart, self.lower, self.upper))
        object.__setattr__(self, 'value', _clamp(self.value, self.lower, self.upper))
        object.__setattr__(self, 'interval_ms', max(1, int(self.interval_ms)))

    @classmethod
    def from_spec(cls, spec, lower, upper):
        """Build a mount-time cursor from an AnimationSpec."""
        return cls(
            value=spec.start, lower=lower, upper=upper, restart=spec.restart,
            interval_ms=spec.interval_ms, playing=spec.autoplay,
        )

    @property
    def interval_s(self):
        return self.interval_ms / 1000.0

    # -- timer ---------------------------------------------------------

    def tick(self):
        """Advance one unit if playing; wrap to restart past the upper bound."""
        if not self.playing:
            return self
        nxt = self.value + 1
        if nxt > self.upper:
            nxt = self.restart
        return replace(self, value=nxt)

    # -- manual controls (always pause) --------------------------------

    def step(self, delta):
        return replace(self, value=_clamp(self.value + delta, self.lower, self.upper), playing=False)

    def scrub(self, value):
        return replace(self, value=_clamp(value, self.lower, self.upper), playing=False)

    def reset(self):
        return replace(self, value=self.restart, playing=False)

    # -- transport -----------------------------------------------------

    def play(self):
        return replace(self, playing=True)

    def pause(self):
        return replace(self, playing=False)

    def toggle(self):
        return replace(self, playing=not self.playing)

    # -- parameter-driven ----------------------------------------------

    def rewind(self):
        """Return to the restart value without touching the playing flag."""
        return replace(self, value=self.restart)

    def with_bounds(self, lower, upper):
        return BoundedCursor(
            value=self.value, lower=lower, upper=upper, restart=self.restart,
            interval_ms=self.interval_ms, playing=self.playing,
        )

    def with_interval(self, interval_ms):
        return replace(self, interval_ms=interval_ms)

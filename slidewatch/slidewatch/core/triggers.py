"""Proximity and push trigger policy.

Two independent one-shot latches. Each fires once when its condition becomes
true and is re-armed only after a wider hysteresis condition is crossed, so a
reading hovering around a threshold does not produce a stream of alerts.

    proximity: fire at distance <= 100 m, re-arm at distance > 120 m
    push:      fire at distance <= 100 m and probability >= 0.70,
               re-arm at distance > 100 m or probability < 0.60
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from slidewatch.core import messages
from slidewatch.core.geo import format_distance
from slidewatch.core.models import NotificationRequest
from slidewatch.core.scoring import round_half_up

log = structlog.get_logger()

PROXIMITY_THRESHOLD_METERS = 100.0
PROXIMITY_HYSTERESIS_METERS = 20.0
PUSH_RISK_THRESHOLD = 0.70
PUSH_REARM_MARGIN = 0.10


@dataclass
class OneShotLatch:
    fired: bool = False

    def update(self, *, arm: bool, rearm: bool) -> bool:
        """Advance the latch. Returns True only on the evaluation that fires it."""
        fired_now = False
        if arm and not self.fired:
            self.fired = True
            fired_now = True
        if rearm and self.fired:
            self.fired = False
        return fired_now


@dataclass
class AlertContext:
    """Mutable alert state for one client: push token, setting and latches.

    Created at startup, reset on logout. Only TriggerPolicy.evaluate() writes
    the latches.
    """
    push_token: str | None = None
    notifications_enabled: bool = True
    proximity: OneShotLatch = field(default_factory=OneShotLatch)
    push: OneShotLatch = field(default_factory=OneShotLatch)

    def reset(self) -> None:
        self.push_token = None
        self.proximity = OneShotLatch()
        self.push = OneShotLatch()


@dataclass(frozen=True)
class TriggerThresholds:
    proximity_threshold_m: float = PROXIMITY_THRESHOLD_METERS
    proximity_hysteresis_m: float = PROXIMITY_HYSTERESIS_METERS
    push_risk_threshold: float = PUSH_RISK_THRESHOLD
    push_rearm_margin: float = PUSH_REARM_MARGIN


class TriggerPolicy:
    """Decides which notifications a (distance, probability) reading triggers."""

    def __init__(self, thresholds: TriggerThresholds | None = None, context: AlertContext | None = None) -> None:
        self.thresholds = thresholds or TriggerThresholds()
        self.context = context or AlertContext()

    def evaluate(
        self,
        *,
        distance_m: float,
        probability: float,
        probability_percent: int | None = None,
        site_name: str = "",
    ) -> list[NotificationRequest]:
        t = self.thresholds
        ctx = self.context
        distance_label = format_distance(distance_m)
        requests: list[NotificationRequest] = []

        is_close = distance_m <= t.proximity_threshold_m
        if ctx.proximity.update(arm=is_close, rearm=distance_m > t.proximity_threshold_m + t.proximity_hysteresis_m):
            log.info("proximity_latch_fired", distance_m=distance_m)
            requests.append(NotificationRequest(
                kind="proximity",
                title=messages.PROXIMITY_TITLE,
                body=messages.proximity_body(distance_label, t.proximity_threshold_m),
            ))

        # With notifications off the push latch is left untouched.
        if not ctx.notifications_enabled:
            return requests

        is_high_risk = probability >= t.push_risk_threshold
        rearm = not is_close or probability < t.push_risk_threshold - t.push_rearm_margin
        if ctx.push.update(arm=is_close and is_high_risk, rearm=rearm):
            percent = probability_percent if probability_percent is not None else round_half_up(probability * 100)
            log.info("push_latch_fired", distance_m=distance_m, probability=round(probability, 3),
                     has_token=ctx.push_token is not None)
            requests.append(NotificationRequest(
                kind="push",
                title=messages.PUSH_TITLE,
                body=messages.push_body(percent, site_name, distance_label),
                token=ctx.push_token,
            ))

        return requests

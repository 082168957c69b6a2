"""Test doubles for the messaging gateway."""
from collections import deque
from dataclasses import dataclass
from typing import List, Optional

from family_tasks.services.gateway import GatewayMessage


@dataclass
class SentMessage:
    channel: str
    to: str
    from_: str
    body: str
    status_callback_url: str


class FakeGateway:
    """
    Records every send and replays queued outcomes.

    Queue ``GatewayMessage`` values or exceptions with ``queue``; once the
    queue is empty each send succeeds with a fresh ``SM<n>`` id and status
    ``queued``.
    """

    def __init__(self):
        self.calls: List[SentMessage] = []
        self._outcomes = deque()

    def queue(self, *outcomes) -> "FakeGateway":
        self._outcomes.extend(outcomes)
        return self

    def send(self, channel, to, from_, body, status_callback_url) -> GatewayMessage:
        self.calls.append(SentMessage(channel, to, from_, body, status_callback_url))
        if self._outcomes:
            outcome = self._outcomes.popleft()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return GatewayMessage(provider_id=f"SM{len(self.calls)}", status="queued")

    @property
    def last(self) -> Optional[SentMessage]:
        return self.calls[-1] if self.calls else None

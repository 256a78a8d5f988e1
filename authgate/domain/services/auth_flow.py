from __future__ import annotations

from enum import Enum


class FlowKind(str, Enum):
    PASSWORD = "password"
    CODE = "code"
    ID_TOKEN = "id_token"


class FlowState(str, Enum):
    STARTED = "started"
    AWAITING_PROVIDER_CALLBACK = "awaiting_provider_callback"
    EXCHANGED = "exchanged"
    VERIFIED = "verified"
    CREDENTIALS_CHECKED = "credentials_checked"
    IDENTITY_RESOLVED = "identity_resolved"
    ISSUED = "issued"
    FAILED = "failed"


_TRANSITIONS: dict[FlowKind, dict[FlowState, FlowState]] = {
    FlowKind.PASSWORD: {
        FlowState.STARTED: FlowState.CREDENTIALS_CHECKED,
        FlowState.CREDENTIALS_CHECKED: FlowState.ISSUED,
    },
    FlowKind.CODE: {
        FlowState.STARTED: FlowState.AWAITING_PROVIDER_CALLBACK,
        FlowState.AWAITING_PROVIDER_CALLBACK: FlowState.EXCHANGED,
        FlowState.EXCHANGED: FlowState.IDENTITY_RESOLVED,
        FlowState.IDENTITY_RESOLVED: FlowState.ISSUED,
    },
    FlowKind.ID_TOKEN: {
        FlowState.STARTED: FlowState.VERIFIED,
        FlowState.VERIFIED: FlowState.IDENTITY_RESOLVED,
        FlowState.IDENTITY_RESOLVED: FlowState.ISSUED,
    },
}

TERMINAL_STATES = frozenset({FlowState.ISSUED, FlowState.FAILED})


class AuthFlow:
    """Tracks one flow instance through its linear sequence of states.

    Each flow kind admits exactly one successor per state. Any step may fail,
    which moves the flow to ``FAILED`` and records the reason. Terminal flows
    accept no further transitions.
    """

    def __init__(self, kind: FlowKind, *, state: FlowState = FlowState.STARTED):
        self.kind = kind
        self.state = state
        self.failure_reason: str | None = None
        self.history: list[FlowState] = [state]

    @classmethod
    def resume(cls, kind: FlowKind, state: FlowState) -> AuthFlow:
        return cls(kind, state=state)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: FlowState) -> None:
        expected = _TRANSITIONS[self.kind].get(self.state)
        if expected is None or expected != target:
            raise RuntimeError(
                f"Illegal {self.kind.value} flow transition: {self.state.value} -> {target.value}"
            )
        self.state = target
        self.history.append(target)

    def fail(self, reason: str) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Flow already terminal in state {self.state.value}")
        self.state = FlowState.FAILED
        self.failure_reason = reason
        self.history.append(FlowState.FAILED)

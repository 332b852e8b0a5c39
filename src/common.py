"""Common result types for add-on reconciliation."""

from dataclasses import dataclass, field
from typing import Optional

# Phase/action outcome states
DONE = 'done'
REQUEUE = 'requeue'
ERROR = 'error'


@dataclass
class ActionResult:
    """Result returned by an action.

    status is one of DONE, REQUEUE or ERROR. REQUEUE is the benign
    "not yet" outcome and carries a suggested delay in requeue_after.
    continue_on_failure lets best-effort phases report a problem without
    stopping the stage.
    """
    status: str = DONE
    message: str = ''
    duration: float = 0.0
    requeue_after: float = 0.0
    context_updates: dict = field(default_factory=dict)
    continue_on_failure: bool = False

    @property
    def success(self) -> bool:
        return self.status == DONE

    @property
    def pending(self) -> bool:
        return self.status == REQUEUE


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation invocation, handed to the scheduler.

    Exactly one of three shapes:
    - Done: requeue_after is None and error is None
    - RequeueAfter: requeue_after holds the delay in seconds
    - Error: error holds the cause
    """
    requeue_after: Optional[float] = None
    error: Optional[str] = None
    message: str = ''

    @classmethod
    def done(cls, message: str = '') -> 'ReconcileResult':
        return cls(message=message)

    @classmethod
    def requeue(cls, after: float, message: str = '') -> 'ReconcileResult':
        return cls(requeue_after=after, message=message)

    @classmethod
    def failed(cls, error: str) -> 'ReconcileResult':
        return cls(error=error, message=error)

    @property
    def is_done(self) -> bool:
        return self.requeue_after is None and self.error is None

    @property
    def is_requeue(self) -> bool:
        return self.requeue_after is not None and self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def kind(self) -> str:
        if self.is_error:
            return 'Error'
        if self.is_requeue:
            return 'RequeueAfter'
        return 'Done'

    def to_dict(self) -> dict:
        d: dict = {'result': self.kind}
        if self.requeue_after is not None:
            d['requeue_after'] = self.requeue_after
        if self.error is not None:
            d['error'] = self.error
        if self.message:
            d['message'] = self.message
        return d

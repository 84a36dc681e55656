import logging
from datetime import datetime, timedelta
from typing import Callable

from app.core.credentials import normalize_email
from app.core.otp import utcnow
from app.core.reset_tokens import generate_flow_id
from app.services.signup_flow import SignupFlow

logger = logging.getLogger(__name__)


class SignupFlowRegistry:
    """
    In-process home for signup flows between requests.

    Signup state (form, code, dialog) is deliberately kept in memory only;
    a flow disappears on completion, cancel, or after sitting idle. At most
    one live flow exists per email: adding a new one replaces the old, and
    the registry never holds more than ``max_flows`` entries.
    """

    def __init__(
        self,
        idle_timeout: timedelta = timedelta(minutes=30),
        max_flows: int = 10_000,
        now: Callable[[], datetime] = utcnow,
    ):
        self.idle_timeout = idle_timeout
        self.max_flows = max_flows
        self.now = now
        self._flows: dict[str, tuple[SignupFlow, datetime]] = {}
        self._by_email: dict[str, str] = {}
        self._email_of: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def _drop(self, flow_id: str) -> None:
        self._flows.pop(flow_id, None)
        email = self._email_of.pop(flow_id, None)
        if email and self._by_email.get(email) == flow_id:
            del self._by_email[email]

    def _live(self, flow_id: str, touch: bool) -> SignupFlow | None:
        entry = self._flows.get(flow_id)
        if entry is None:
            return None
        flow, touched = entry
        if self.now() - touched > self.idle_timeout:
            self._drop(flow_id)
            return None
        if touch:
            self._flows[flow_id] = (flow, self.now())
        return flow

    def add(self, flow: SignupFlow) -> str:
        self.purge()

        email = flow.email
        if email and email in self._by_email:
            self._drop(self._by_email[email])

        while len(self._flows) >= self.max_flows:
            oldest = min(self._flows, key=lambda fid: self._flows[fid][1])
            logger.warning("Signup registry full (%d), evicting flow %s", self.max_flows, oldest)
            self._drop(oldest)

        flow_id = generate_flow_id()
        self._flows[flow_id] = (flow, self.now())
        if email:
            self._by_email[email] = flow_id
            self._email_of[flow_id] = email
        return flow_id

    def get(self, flow_id: str) -> SignupFlow | None:
        return self._live(flow_id, touch=True)

    def find_by_email(self, email: str) -> tuple[str, SignupFlow] | None:
        """Live flow for ``email``, if any. Does not reset its idle timer."""
        flow_id = self._by_email.get(normalize_email(email or ""))
        if flow_id is None:
            return None
        flow = self._live(flow_id, touch=False)
        return (flow_id, flow) if flow is not None else None

    def discard(self, flow_id: str) -> None:
        self._drop(flow_id)

    def purge(self) -> int:
        cutoff = self.now() - self.idle_timeout
        stale = [fid for fid, (_, touched) in self._flows.items() if touched < cutoff]
        for fid in stale:
            self._drop(fid)
        if stale:
            logger.debug("Purged %d idle signup flows", len(stale))
        return len(stale)

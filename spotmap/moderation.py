"""Community moderation: map vote counters onto a display trust state."""

from .config import ModerationThresholds
from .schemas import TrustState


class ModerationPolicy:
    """Pure classification of a spot from its raw up/down counters.

    Severity is checked from the top down, so a spot with 20 downvotes is
    DELETE even though it also clears the SUPPRESSED and FLAGGED bars.
    """

    def __init__(self, thresholds: ModerationThresholds | None = None):
        self.thresholds = thresholds or ModerationThresholds()

    def classify(self, upvotes: int, downvotes: int) -> TrustState:
        t = self.thresholds
        if downvotes >= t.delete_downvotes:
            return TrustState.DELETE
        if downvotes >= t.suppress_downvotes:
            return TrustState.SUPPRESSED
        if downvotes - upvotes >= t.flag_margin:
            return TrustState.FLAGGED
        return TrustState.NORMAL

    def is_terminal(self, upvotes: int, downvotes: int) -> bool:
        return self.classify(upvotes, downvotes) is TrustState.DELETE


def classify(upvotes: int, downvotes: int) -> TrustState:
    """Classify with the default thresholds."""
    return ModerationPolicy().classify(upvotes, downvotes)

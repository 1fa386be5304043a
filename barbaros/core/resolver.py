import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from barbaros.config.settings import MIN_FALLBACK_ID_LENGTH
from barbaros.core.badge_codec import decode_badge
from barbaros.core.errors import NoSymbolFound, Rejected, ScanError

OBJECT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")
CLIENT_ID_PATTERN = re.compile(r"C[A-Za-z0-9]{8}")


class Outcome(Enum):
    NO_SYMBOL_FOUND = "no_symbol_found"
    DECODED_BADGE = "decoded_badge"
    DECODED_FALLBACK = "decoded_fallback"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ScanAttempt:
    """
    Result of evaluating one camera frame or one uploaded image.
    """
    raw_text: Optional[str]
    outcome: Outcome
    subject_id: Optional[str] = None
    rule: Optional[str] = None  # fallback branch that matched

    @property
    def resolved(self) -> bool:
        return self.outcome in (Outcome.DECODED_BADGE, Outcome.DECODED_FALLBACK)


@dataclass(frozen=True)
class ScanResult:
    """
    What the scanner hands back to its caller: a subject id or a typed error.
    """
    subject_id: Optional[str] = None
    error: Optional[ScanError] = None
    attempt: Optional[ScanAttempt] = None

    @property
    def ok(self) -> bool:
        return self.subject_id is not None

    @classmethod
    def from_attempt(cls, attempt: ScanAttempt):
        if attempt.resolved:
            return cls(subject_id=attempt.subject_id, attempt=attempt)
        if attempt.outcome is Outcome.NO_SYMBOL_FOUND:
            return cls(error=NoSymbolFound(), attempt=attempt)
        return cls(error=Rejected(), attempt=attempt)

    @classmethod
    def failed(cls, error: ScanError):
        return cls(error=error)


def _fallback(raw_text: str):
    """
    Identify raw text that is not a badge payload.
    Returns the name of the matching rule or None; first match wins.
    """
    if OBJECT_ID_PATTERN.fullmatch(raw_text):
        return "object_id"
    if CLIENT_ID_PATTERN.fullmatch(raw_text):
        return "client_id"
    if len(raw_text) >= MIN_FALLBACK_ID_LENGTH:
        return "raw_text"
    return None


def resolve(raw_text: Optional[str]) -> ScanAttempt:
    """
    Turn text read from a QR symbol into a client identifier.

    A structured badge wins; otherwise the text itself is accepted when it
    looks like a database id, a client id, or anything at least
    MIN_FALLBACK_ID_LENGTH characters long. The identifier is not checked
    against the database here.

    Args:
        raw_text: Decoded symbol text, or None when no symbol was found

    Returns:
        ScanAttempt describing the outcome
    """
    if raw_text is None:
        return ScanAttempt(raw_text=None, outcome=Outcome.NO_SYMBOL_FOUND)

    badge = decode_badge(raw_text)
    if badge is not None:
        return ScanAttempt(raw_text=raw_text, outcome=Outcome.DECODED_BADGE,
                           subject_id=badge.subject_id)

    rule = _fallback(raw_text)
    if rule is None:
        return ScanAttempt(raw_text=raw_text, outcome=Outcome.REJECTED)
    return ScanAttempt(raw_text=raw_text, outcome=Outcome.DECODED_FALLBACK,
                       subject_id=raw_text, rule=rule)

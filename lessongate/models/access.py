from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Restriction(StrEnum):
    NONE = "none"
    PREVIEW_ONLY = "preview_only"
    COMPLETED_ONLY = "completed_only"
    BLOCKED = "blocked"


# Reasons attached to decisions.  Allowed decisions carry the rule that
# granted them; blocked decisions carry what the learner needs to fix.
REASON_STAFF = "staff"
REASON_FREE = "free_content"
REASON_ENROLLED = "enrolled"
REASON_COMPLETED_REVIEW = "completed_review"
REASON_AUTH_REQUIRED = "auth_required"
REASON_ACADEMIC_MISMATCH = "academic_mismatch"
REASON_PROFILE_INCOMPLETE = "profile_incomplete"
REASON_PROFILE_UNAVAILABLE = "profile_unavailable"
REASON_NOT_ENROLLED = "not_enrolled"
REASON_ENROLLMENT_UNAVAILABLE = "enrollment_unavailable"
REASON_SUSPENDED = "enrollment_suspended"
REASON_PENDING = "enrollment_pending"
REASON_EXPIRED = "enrollment_expired"
REASON_CANCELLED = "enrollment_cancelled"
REASON_MISCONFIGURED = "content_misconfigured"
REASON_WATCH_TIME_REQUIRED = "watch_time_required"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    restriction: Restriction
    reason: str

    @staticmethod
    def allow(reason: str, restriction: Restriction = Restriction.NONE) -> AccessDecision:
        return AccessDecision(allowed=True, restriction=restriction, reason=reason)

    @staticmethod
    def block(reason: str) -> AccessDecision:
        return AccessDecision(
            allowed=False, restriction=Restriction.BLOCKED, reason=reason
        )


# Learner-facing copy.  Keep it short and free of system detail: the
# learner should know what to do next, not what failed.
_MESSAGES: dict[str, dict[str, str]] = {
    REASON_AUTH_REQUIRED: {
        "en": "Sign in to access this content",
        "ar": "سجل دخول للوصول لهذا المحتوى",
    },
    REASON_ACADEMIC_MISMATCH: {
        "en": "This content is for a different grade",
        "ar": "هذا المحتوى مخصص لصف دراسي آخر",
    },
    REASON_PROFILE_INCOMPLETE: {
        "en": "Complete your profile to access this content",
        "ar": "أكمل بياناتك للوصول لهذا المحتوى",
    },
    REASON_PROFILE_UNAVAILABLE: {
        "en": "We couldn't confirm your access right now. Please try again",
        "ar": "تعذر التحقق من صلاحيتك الآن، حاول مرة أخرى",
    },
    REASON_NOT_ENROLLED: {
        "en": "Enroll in this course to watch this lesson",
        "ar": "اشترك في الكورس لمشاهدة هذا الدرس",
    },
    REASON_ENROLLMENT_UNAVAILABLE: {
        "en": "We couldn't confirm your access right now. Please try again",
        "ar": "تعذر التحقق من صلاحيتك الآن، حاول مرة أخرى",
    },
    REASON_SUSPENDED: {
        "en": "Your enrollment is paused. You can only review lessons you completed",
        "ar": "اشتراكك موقوف مؤقتًا، يمكنك مراجعة الدروس المكتملة فقط",
    },
    REASON_PENDING: {
        "en": "Your enrollment is awaiting confirmation",
        "ar": "اشتراكك في انتظار التأكيد",
    },
    REASON_EXPIRED: {
        "en": "Your enrollment has expired",
        "ar": "انتهت صلاحية اشتراكك",
    },
    REASON_CANCELLED: {
        "en": "Your enrollment was cancelled",
        "ar": "تم إلغاء اشتراكك",
    },
    REASON_MISCONFIGURED: {
        "en": "This content isn't available yet",
        "ar": "هذا المحتوى غير متاح حاليًا",
    },
    REASON_WATCH_TIME_REQUIRED: {
        "en": "Keep watching to finish this lesson",
        "ar": "تابع المشاهدة لإكمال هذا الدرس",
    },
}


def message_for(reason: str, language: str = "en") -> str | None:
    """Localized message for a blocked reason, or None when nothing to show."""
    messages = _MESSAGES.get(reason)
    if messages is None:
        return None
    return messages.get(language, messages["en"])

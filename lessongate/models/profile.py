from __future__ import annotations

from dataclasses import dataclass

GRADES = ("second_secondary", "third_secondary")
TRACKS = ("arabic", "languages")
ATTENDANCE_MODES = ("online", "center")

# Older records store grade and track in one field.
_LEGACY_COMBINED: dict[str, tuple[str, str]] = {
    "second_arabic": ("second_secondary", "arabic"),
    "second_languages": ("second_secondary", "languages"),
    "third_arabic": ("third_secondary", "arabic"),
    "third_languages": ("third_secondary", "languages"),
}

# Retired attendance modes and the mode they are served as.
_LEGACY_ATTENDANCE: dict[str, str] = {"hybrid": "online"}


def normalize_attendance_mode(mode: str | None) -> str | None:
    """Map a stored attendance mode onto ATTENDANCE_MODES.

    Stored rows are left as they are; legacy ``hybrid`` reads as
    ``online``.  Unknown values read as unset.
    """
    if not mode:
        return None
    mode = _LEGACY_ATTENDANCE.get(mode, mode)
    return mode if mode in ATTENDANCE_MODES else None


@dataclass(frozen=True, slots=True)
class AcademicPath:
    """The (grade, track) pair a learner belongs to or a course targets."""

    grade: str | None
    track: str | None

    def is_empty(self) -> bool:
        return self.grade is None and self.track is None


def parse_academic_path(grade: str | None, track: str | None = None) -> AcademicPath:
    """Normalize a grade field (new or legacy combined format) plus track."""
    if not grade:
        return AcademicPath(grade=None, track=track or None)
    if grade in _LEGACY_COMBINED:
        legacy_grade, legacy_track = _LEGACY_COMBINED[grade]
        return AcademicPath(grade=legacy_grade, track=track or legacy_track)
    if grade in GRADES:
        return AcademicPath(grade=grade, track=track or None)
    return AcademicPath(grade=None, track=None)


def paths_match(learner: AcademicPath, target: AcademicPath) -> bool:
    """True when the learner's path satisfies the target.

    A target with no grade is open to every path; a target with a grade but
    no track accepts either track of that grade.
    """
    if target.grade is None:
        return True
    if learner.grade != target.grade:
        return False
    if target.track is None:
        return True
    return learner.track == target.track


@dataclass(frozen=True, slots=True)
class AcademicProfile:
    user_id: str
    grade: str | None
    track: str | None = None
    attendance_mode: str | None = None

    @property
    def path(self) -> AcademicPath:
        return parse_academic_path(self.grade, self.track)

# lessonbook/core/permissions.py
"""Role policy decisions, kept in one place so every role is handled explicitly."""
from lessonbook.core.exceptions import ForbiddenException
from lessonbook.models.profile import Profile, UserRole


def can_hold_slots(profile: Profile) -> bool:
    """Only students can take holds and book lessons."""
    if profile.role == UserRole.STUDENT:
        return True
    if profile.role == UserRole.TUTOR:
        return False
    raise ValueError(f"Unhandled role: {profile.role}")


def can_publish_availability(profile: Profile) -> bool:
    if profile.role == UserRole.TUTOR:
        return True
    if profile.role == UserRole.STUDENT:
        return False
    raise ValueError(f"Unhandled role: {profile.role}")


def can_edit_slot(profile: Profile, slot) -> bool:
    """A slot can only be changed by the tutor who owns it."""
    return can_publish_availability(profile) and slot.tutor_id == profile.id


def ensure_can_hold(profile: Profile) -> None:
    if not profile.is_active or not can_hold_slots(profile):
        raise ForbiddenException("Only students can book lessons.")


def ensure_can_publish(profile: Profile) -> None:
    if not profile.is_active or not can_publish_availability(profile):
        raise ForbiddenException("Tutor access required.")


def ensure_can_edit_slot(profile: Profile, slot) -> None:
    if not can_edit_slot(profile, slot):
        raise ForbiddenException("You can only change your own slots.")

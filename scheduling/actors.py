"""
Actors acting on the scheduling API.

Each authenticated user is mapped once to exactly one actor variant.
Authorization checkpoints dispatch on the variant instead of probing for
role-specific fields on the user object.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from scheduling.models import Appointment, Doctor, User


@dataclass(frozen=True)
class Admin:
    user: User


@dataclass(frozen=True)
class SubAdmin:
    user: User
    department_id: Optional[int]


@dataclass(frozen=True)
class Staff:
    user: User
    department_id: Optional[int]


@dataclass(frozen=True)
class DoctorActor:
    user: User
    doctor_id: Optional[int]
    department_id: Optional[int]


@dataclass(frozen=True)
class PatientActor:
    user: Optional[User]
    patient_ref: Optional[int] = None


Actor = Union[Admin, SubAdmin, Staff, DoctorActor, PatientActor]

# Public booking endpoints act on behalf of an anonymous patient
ANONYMOUS_PATIENT = PatientActor(user=None)


def actor_for_user(user: Optional[User]) -> Actor:
    if user is None or not getattr(user, 'is_authenticated', False):
        return ANONYMOUS_PATIENT
    role = user.role
    if role == User.ROLE_ADMIN:
        return Admin(user=user)
    if role == User.ROLE_SUBADMIN:
        return SubAdmin(user=user, department_id=user.department_id)
    if role == User.ROLE_STAFF:
        return Staff(user=user, department_id=user.department_id)
    if role == User.ROLE_DOCTOR:
        doctor = Doctor.objects.filter(user=user).only('id', 'department_id').first()
        return DoctorActor(
            user=user,
            doctor_id=doctor.id if doctor else None,
            department_id=doctor.department_id if doctor else None,
        )
    if role == User.ROLE_PATIENT:
        profile = getattr(user, 'patient_profile', None)
        return PatientActor(user=user, patient_ref=profile.id if profile else None)
    raise ValueError(f"unknown role {role!r}")


def department_scope(actor: Actor) -> Optional[int]:
    """Department an actor is confined to, or ``None`` for hospital-wide access."""
    if isinstance(actor, (Admin, SubAdmin)):
        return None
    if isinstance(actor, (Staff, DoctorActor)):
        return actor.department_id
    if isinstance(actor, PatientActor):
        return None
    raise TypeError(f"unhandled actor {actor!r}")


def can_book_for_department(actor: Actor, department_id: Optional[int]) -> bool:
    if isinstance(actor, (Admin, PatientActor)):
        return True
    if isinstance(actor, SubAdmin):
        return actor.department_id is None or actor.department_id == department_id
    if isinstance(actor, Staff):
        return actor.department_id is not None and actor.department_id == department_id
    if isinstance(actor, DoctorActor):
        return False
    raise TypeError(f"unhandled actor {actor!r}")


def can_manage_appointment(actor: Actor, appointment: Appointment) -> bool:
    """Whether the actor may manually override an appointment's status."""
    if isinstance(actor, (Admin, SubAdmin)):
        return True
    if isinstance(actor, Staff):
        return actor.department_id is not None and appointment.department_id == actor.department_id
    if isinstance(actor, DoctorActor):
        return actor.doctor_id is not None and appointment.doctor_id == actor.doctor_id
    if isinstance(actor, PatientActor):
        return False
    raise TypeError(f"unhandled actor {actor!r}")


def allowed_override_statuses(actor: Actor) -> set[str]:
    if isinstance(actor, (Admin, SubAdmin)):
        return {Appointment.STATUS_BOOKED, Appointment.STATUS_ATTENDED, Appointment.STATUS_MISSED}
    if isinstance(actor, (Staff, DoctorActor)):
        return {Appointment.STATUS_ATTENDED, Appointment.STATUS_MISSED}
    if isinstance(actor, PatientActor):
        return set()
    raise TypeError(f"unhandled actor {actor!r}")

"""
Structured form - nine typed sections with field-level patching.

Each wizard page owns one section of the registration form. A step
submission is applied with ``StructuredForm.patch``, which merges every
section independently, field by field:

- a field that is absent or ``null`` keeps its stored value
- any other value (including ``[]``, ``0`` and ``false``) replaces it;
  ``""`` replaces text fields but counts as not sent for numeric ones

so "not sent" and "explicitly cleared" stay distinguishable, and a later
step can never wipe an earlier section by omission. Unknown fields inside
a section are ignored; unknown section names are rejected.

Wire names are camelCase (``contactNumber``), Python names snake_case.
"""

import copy
from collections.abc import Mapping
from dataclasses import Field, dataclass, field, fields, replace
from functools import cache
from typing import Any, ClassVar, get_args, get_origin, get_type_hints

from .exceptions import ValidationError

HOME_COUNTRY = "IN"
HOME_STATE = "Kerala"

_SKIP = object()


def _wire_name(f: Field) -> str:
    if "wire" in f.metadata:
        return f.metadata["wire"]
    head, *rest = f.name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _count(value: Any, path: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{path} must be a whole number")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{path} must be a whole number")
    if value < 0:
        raise ValidationError(f"{path} cannot be negative")
    return value


@dataclass(frozen=True)
class MealSplit:
    """Head count of one age bracket, split by meal preference."""

    veg: int = 0
    non_veg: int = 0

    @property
    def total(self) -> int:
        return self.veg + self.non_veg

    @classmethod
    def from_wire(cls, value: Any, path: str) -> "MealSplit":
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise ValidationError(f"{path} must be an object")
        return cls(
            veg=_count(value.get("veg"), f"{path}.veg"),
            non_veg=_count(value.get("nonVeg"), f"{path}.nonVeg"),
        )

    def to_wire(self) -> dict[str, int]:
        return {"veg": self.veg, "nonVeg": self.non_veg}


@dataclass(frozen=True)
class AttendeeCounts:
    """Attendees per age bracket. Toddlers attend free of charge."""

    adults: MealSplit = field(default_factory=MealSplit)
    teens: MealSplit = field(default_factory=MealSplit)
    children: MealSplit = field(default_factory=MealSplit)
    toddlers: MealSplit = field(default_factory=MealSplit)

    @classmethod
    def from_wire(cls, value: Any, path: str = "attendees") -> "AttendeeCounts":
        if not isinstance(value, Mapping):
            raise ValidationError(f"{path} must be an object")
        return cls(
            **{
                f.name: MealSplit.from_wire(value.get(f.name), f"{path}.{f.name}")
                for f in fields(cls)
            }
        )

    def to_wire(self) -> dict[str, dict[str, int]]:
        return {f.name: getattr(self, f.name).to_wire() for f in fields(self)}


@cache
def _hints(cls: type) -> dict[str, Any]:
    return get_type_hints(cls)


def _coerce(value: Any, hint: Any, path: str) -> Any:
    """Check a wire value against a field annotation, returning the stored value."""
    allowed = tuple(arg for arg in get_args(hint) if arg is not type(None)) or (hint,)
    for kind in allowed:
        origin = get_origin(kind) or kind
        if origin is AttendeeCounts:
            return AttendeeCounts.from_wire(value, path)
        if origin is int:
            # Counts, amounts and years only; blank means "not provided"
            if value == "":
                return _SKIP
            if isinstance(value, bool):
                continue
            return _count(value, path)
        if origin is bool and isinstance(value, bool):
            return value
        if origin is str and isinstance(value, str):
            return value
        if origin is list and isinstance(value, list):
            return copy.deepcopy(value)
        if origin is dict and isinstance(value, Mapping):
            return copy.deepcopy(dict(value))
    raise ValidationError(f"{path} has an unexpected value type")


@dataclass(frozen=True)
class Section:
    """Base for the nine form sections."""

    name: ClassVar[str] = ""

    @classmethod
    def from_wire(cls, data: Mapping[str, Any] | None) -> "Section":
        return cls().patch(data or {})

    def patch(self, changes: Mapping[str, Any]) -> "Section":
        """Return a copy with every non-null field in ``changes`` applied."""
        if not isinstance(changes, Mapping):
            raise ValidationError(f"Section '{self.name}' must be an object")
        hints = _hints(type(self))
        updates = {}
        for f in fields(self):
            wire = _wire_name(f)
            value = changes.get(wire)
            if value is None:
                continue
            coerced = _coerce(value, hints[f.name], f"{self.name}.{wire}")
            if coerced is not _SKIP:
                updates[f.name] = coerced
        return replace(self, **updates) if updates else self

    def to_wire(self) -> dict[str, Any]:
        wire = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            wire[_wire_name(f)] = value.to_wire() if hasattr(value, "to_wire") else copy.deepcopy(value)
        return wire


@dataclass(frozen=True)
class VerificationSection(Section):
    name: ClassVar[str] = "verification"

    email_verified: bool | None = None
    captcha_verified: bool | None = None
    quiz_passed: bool | None = None
    email: str | None = None
    contact_number: str | None = None


@dataclass(frozen=True)
class PersonalInfo(Section):
    name: ClassVar[str] = "personalInfo"

    full_name: str | None = field(default=None, metadata={"wire": "name"})
    email: str | None = None
    contact_number: str | None = None
    whatsapp_number: str | None = None
    registration_type: str | None = None
    school: str | None = None
    year_of_passing: int | None = None
    country: str | None = None
    state_ut: str | None = field(default=None, metadata={"wire": "stateUT"})
    district: str | None = None
    blood_group: str | None = None

    def normalized(self) -> "PersonalInfo":
        """Drop region details that do not apply to the selected country/state."""
        state_ut, district = self.state_ut, self.district
        if self.country is not None and self.country != HOME_COUNTRY:
            state_ut = "" if state_ut is not None else None
            district = "" if district is not None else None
        if state_ut != HOME_STATE and district is not None:
            district = ""
        return replace(self, state_ut=state_ut, district=district)


@dataclass(frozen=True)
class Professional(Section):
    name: ClassVar[str] = "professional"

    profession: str | None = None
    professional_details: dict[str, Any] | str | None = None
    business_details: str | None = None
    area_of_expertise: str | None = None
    key_skills: str | None = None


@dataclass(frozen=True)
class EventAttendance(Section):
    name: ClassVar[str] = "eventAttendance"

    is_attending: bool | None = None
    attendees: AttendeeCounts | None = None
    event_participation: list[str] | None = None
    participation_details: str | None = None
    event_contribution: list[str] | None = None
    contribution_details: str | None = None


@dataclass(frozen=True)
class Sponsorship(Section):
    name: ClassVar[str] = "sponsorship"

    interested_in_sponsorship: bool | None = None
    can_refer_sponsorship: bool | None = None
    sponsorship_tier: str | None = None
    sponsorship_details: str | None = None


@dataclass(frozen=True)
class Transportation(Section):
    name: ClassVar[str] = "transportation"

    is_travelling: bool | None = None
    travel_consists_two_segments: str | None = None
    connect_with_navodayans_first_segment: str | None = None
    first_segment_starting_location: str | None = None
    first_segment_travel_date: str | None = None
    starting_location: str | None = None
    start_pincode: str | None = None
    pin_district: str | None = None
    pin_state: str | None = None
    pin_taluk: str | None = None
    nearest_landmark: str | None = None
    travel_date: str | None = None
    travel_time: str | None = None
    mode_of_transport: str | None = None
    need_parking: str | None = None
    connect_with_navodayans: str | None = None
    ready_for_ride_share: str | None = None
    vehicle_capacity: int | None = None
    group_size: int | None = None
    travel_special_requirements: str | None = None


@dataclass(frozen=True)
class Accommodation(Section):
    name: ClassVar[str] = "accommodation"

    plan_accommodation: bool | None = None
    accommodation: str | None = None
    accommodation_gender: str | None = None
    accommodation_needed: dict[str, Any] | None = None
    accommodation_pincode: str | None = None
    accommodation_district: str | None = None
    accommodation_state: str | None = None
    accommodation_taluk: str | None = None
    accommodation_landmark: str | None = None
    accommodation_sub_post_office: str | None = None
    accommodation_area: str | None = None
    accommodation_capacity: int | None = None
    accommodation_location: str | None = None
    accommodation_remarks: str | None = None
    hotel_requirements: dict[str, Any] | None = None


@dataclass(frozen=True)
class OptionalDetails(Section):
    name: ClassVar[str] = "optional"

    spouse_navodayan: str | None = None
    unma_family_groups: bool | str | None = None
    mentorship_options: list[str] | None = None
    training_options: list[str] | None = None
    seminar_options: list[str] | None = None
    tshirt_interest: bool | str | None = None
    tshirt_sizes: dict[str, Any] | None = None


@dataclass(frozen=True)
class Financial(Section):
    name: ClassVar[str] = "financial"

    will_contribute: bool | None = None
    contribution_amount: int | None = None  # Pledged amount, not the paid total
    proposed_amount: int | None = None
    payment_remarks: str | None = None


@dataclass(frozen=True)
class StructuredForm:
    """The registration's nine-section document."""

    verification: VerificationSection = field(default_factory=VerificationSection)
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    professional: Professional = field(default_factory=Professional)
    event_attendance: EventAttendance = field(default_factory=EventAttendance)
    sponsorship: Sponsorship = field(default_factory=Sponsorship)
    transportation: Transportation = field(default_factory=Transportation)
    accommodation: Accommodation = field(default_factory=Accommodation)
    optional: OptionalDetails = field(default_factory=OptionalDetails)
    financial: Financial = field(default_factory=Financial)

    @classmethod
    def section_names(cls) -> tuple[str, ...]:
        return tuple(_wire_name(f) for f in fields(cls))

    @classmethod
    def from_wire(cls, data: Mapping[str, Any] | None) -> "StructuredForm":
        return cls().patch(data or {})

    def patch(self, payload: Mapping[str, Any]) -> "StructuredForm":
        """Merge a sectioned payload, each section independently."""
        if not isinstance(payload, Mapping):
            raise ValidationError("Form data must be an object keyed by section")
        unknown = set(payload) - set(self.section_names())
        if unknown:
            raise ValidationError(f"Unknown form sections: {', '.join(sorted(unknown))}")

        updates = {}
        for f in fields(self):
            incoming = payload.get(_wire_name(f))
            if incoming is None:
                continue
            current = getattr(self, f.name)
            patched = current.patch(incoming)
            if patched != current:
                updates[f.name] = patched
        return replace(self, **updates) if updates else self

    def to_wire(self) -> dict[str, dict[str, Any]]:
        return {_wire_name(f): getattr(self, f.name).to_wire() for f in fields(self)}

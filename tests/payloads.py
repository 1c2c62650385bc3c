"""Wire payload builders shared by the test suites."""

from typing import Any

EMAIL = "a@x.com"
CONTACT = "+911234567890"


def personal_info(email: str = EMAIL, contact: str = CONTACT, **overrides: Any) -> dict[str, Any]:
    """A complete step-1 payload."""
    section = {
        "name": "Asha Nair",
        "email": email,
        "contactNumber": contact,
        "school": "JNV Kottayam",
        "yearOfPassing": "2010",
        "country": "IN",
        "stateUT": "Kerala",
        "district": "Kottayam",
    }
    section.update(overrides)
    return {"personalInfo": section}


def attendance(adults: int = 2, teens: int = 1, children: int = 0, attending: bool = True) -> dict[str, Any]:
    return {
        "eventAttendance": {
            "isAttending": attending,
            "attendees": {
                "adults": {"veg": adults, "nonVeg": 0},
                "teens": {"veg": 0, "nonVeg": teens},
                "children": {"veg": children, "nonVeg": 0},
                "toddlers": {"veg": 0, "nonVeg": 0},
            },
        }
    }


def financial(pledge: int, will_contribute: bool = True) -> dict[str, Any]:
    return {"financial": {"willContribute": will_contribute, "contributionAmount": pledge}}

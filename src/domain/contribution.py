"""
Contribution policy - Minimum suggested contribution and hardship rules.

Pure functions, no I/O. Rates are configuration; the formula is:

    recent graduate, adults >= 1:
        (adults - 1) * A + A' + (teens + children) * Y
    otherwise:
        adults * A + (teens + children) * Y

where A is the standard adult rate, A' the reduced rate charged for one
adult of a recent graduate, and Y the youth rate. Toddlers are free.
"""

from dataclasses import dataclass

from .models import Registration
from .ports import PaymentStatus, RegistrationStatus
from .sections import AttendeeCounts


@dataclass(frozen=True)
class ContributionRates:
    adult_rate: int = 500
    recent_graduate_adult_rate: int = 350
    youth_rate: int = 350
    recent_graduate_from_year: int = 2022
    recent_graduate_to_year: int = 2025


@dataclass(frozen=True)
class ContributionAssessment:
    minimum: int
    pledged: int
    paid: int
    is_attending: bool
    requires_hardship: bool
    satisfied: bool


def is_recent_graduate(year_of_passing: int | str | None, rates: ContributionRates) -> bool:
    try:
        year = int(year_of_passing)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return rates.recent_graduate_from_year <= year <= rates.recent_graduate_to_year


def minimum_contribution(
    attendees: AttendeeCounts,
    year_of_passing: int | str | None,
    rates: ContributionRates | None = None,
) -> int:
    """
    Compute the minimum suggested contribution for a party.

    Args:
        attendees: Head counts per age bracket
        year_of_passing: Graduation year of the registrant
        rates: Rate table, defaults to ContributionRates()

    Returns:
        Minimum amount in whole currency units
    """
    rates = rates or ContributionRates()
    adults = attendees.adults.total
    youth = attendees.teens.total + attendees.children.total

    if adults >= 1 and is_recent_graduate(year_of_passing, rates):
        adult_share = (adults - 1) * rates.adult_rate + rates.recent_graduate_adult_rate
    else:
        adult_share = adults * rates.adult_rate
    return adult_share + youth * rates.youth_rate


def requires_hardship_flow(proposed_amount: int, minimum: int, is_attending: bool) -> bool:
    """True iff an attending registrant proposes a positive amount below the minimum."""
    return bool(is_attending) and 0 < proposed_amount < minimum


def assess(registration: Registration, rates: ContributionRates | None = None) -> ContributionAssessment:
    """Evaluate a registration's pledge and payments against the policy."""
    minimum = minimum_contribution(registration.attendees, registration.year_of_passing, rates)
    pledged = registration.pledged_amount
    paid = registration.contribution_amount
    attending = registration.is_attending
    return ContributionAssessment(
        minimum=minimum,
        pledged=pledged,
        paid=paid,
        is_attending=attending,
        requires_hardship=requires_hardship_flow(pledged, minimum, attending),
        satisfied=not attending or max(pledged, paid) >= minimum,
    )


def terminal_status(registration: Registration, rates: ContributionRates | None = None) -> RegistrationStatus:
    """
    Decide the terminal split of a submitted registration.

    A declined contribution (financial difficulty) stays incomplete until
    reconciled; otherwise the registration is complete once the policy
    is satisfied.
    """
    if registration.payment_status == PaymentStatus.FINANCIAL_DIFFICULTY:
        return RegistrationStatus.INCOMPLETE
    if assess(registration, rates).satisfied:
        return RegistrationStatus.COMPLETE
    return RegistrationStatus.INCOMPLETE

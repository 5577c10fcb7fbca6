"""
Proportional Cost Allocation

A property shared by tenants of several companies has its monthly cost and
target rent split between those companies in proportion to head count:

    share(C, P) = round_half_up(amount(P) * tenants_of_C_in_P / tenants_in_P)

Each share is rounded on its own, so the shares of one property do not
necessarily add back up to the property's amount (e.g. 100 split 1/3 three
ways is 33 + 33 + 33). This is an accepted approximation; for a property with
a single company the share is always exact.
"""

from collections import Counter
from typing import Callable, NamedTuple

from estate_ledger.models.entities import Property, Tenant


class Allocation(NamedTuple):
    rent_cost: int
    rent_target: int


def round_half_up(numerator: int, denominator: int) -> int:
    """
    floor(numerator / denominator + 1/2) in exact integer arithmetic.

    Matches the usual spreadsheet rounding of positive amounts, and rounds
    exact negative halves toward +infinity. denominator must be positive.
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def allocate_property_costs(
    active_tenants: list[Tenant],
    properties: dict[int, Property],
    company_of: Callable[[Tenant], str],
) -> dict[str, Allocation]:
    """
    Allocate property cost and target rent to companies.

    Args:
        active_tenants: Tenants counted for occupancy (already filtered)
        properties: Property index by id. Tenants pointing at a property
            missing from the index contribute nothing.
        company_of: Company bucket of a tenant

    Returns:
        {company: Allocation} for every company among active_tenants
    """
    occupants = Counter(t.property_id for t in active_tenants)
    headcount = Counter((company_of(t), t.property_id) for t in active_tenants)

    cost: dict[str, int] = {}
    target: dict[str, int] = {}
    for (company, property_id), from_company in headcount.items():
        cost.setdefault(company, 0)
        target.setdefault(company, 0)

        prop = properties.get(property_id)
        if prop is None:
            continue

        total_in_property = max(1, occupants[property_id])
        cost[company] += round_half_up(prop.total_cost * from_company, total_in_property)
        target[company] += round_half_up(prop.target_rent * from_company, total_in_property)

    return {company: Allocation(cost[company], target[company]) for company in cost}

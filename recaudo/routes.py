"""
Payment Route Module

Builds a collector's daily collection route: every open credit with a next
unpaid due date, grouped by that date, with the amount to collect and the
late fee accrued. Route building only reads; running it twice over the same
data gives the same route.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .credits import Client, Credit, OPEN_STATES, Payment
from .late_fees import compute_late_charge
from .ledger import CreditLedger
from .providers import LateInterestConfig
from .repository import CreditRepository
from .money import ZERO, round_money
from .logging_config import get_logger

logger = get_logger("recaudo.routes")


@dataclass(frozen=True)
class RouteEntry:
    """One credit to visit"""
    credit_id: str
    client_id: str
    client_name: str
    client_address: str
    client_phone: str
    next_payment_date: date
    installment_amount: Decimal
    late_fee: Decimal
    days_late: int
    total_debt: Decimal
    commission: Decimal
    amount_due: Decimal
    is_paid_today: bool


@dataclass(frozen=True)
class RouteGroup:
    """Entries sharing a due date"""
    due_date: date
    is_overdue: bool
    entries: Tuple[RouteEntry, ...]


@dataclass(frozen=True)
class PaymentRoute:
    """A collector's route as of one date"""
    as_of: date
    groups: Tuple[RouteGroup, ...]
    daily_goal: Decimal
    collected_today: Decimal = ZERO
    until: Optional[date] = None

    @property
    def entries(self) -> List[RouteEntry]:
        return [entry for group in self.groups for entry in group.entries]

    @property
    def overdue_count(self) -> int:
        return sum(len(g.entries) for g in self.groups if g.is_overdue)


@dataclass
class RouteItem:
    """A credit with the data the route needs about it"""
    credit: Credit
    payments: List[Payment] = field(default_factory=list)
    client: Optional[Client] = None


def is_routable(credit: Credit) -> bool:
    """Open, fully scheduled, contract accepted, and something still due"""
    return (
        credit.state in OPEN_STATES
        and credit.has_complete_schedule
        and not credit.awaiting_acceptance
        and credit.next_due_date is not None
    )


class PaymentRouteBuilder:
    """Turns credits into a grouped, sorted collection route"""

    def __init__(self, ledger: Optional[CreditLedger] = None):
        self.ledger = ledger or CreditLedger()

    def build_entry(self, item: RouteItem, late_interest: LateInterestConfig, as_of: date) -> RouteEntry:
        credit = item.credit
        charge = compute_late_charge(credit, late_interest, as_of)
        installment = credit.installment_due
        late_fee = round_money(charge.late_fee)
        client = item.client

        return RouteEntry(
            credit_id=credit.id,
            client_id=credit.client_id,
            client_name=client.name if client else "N/A",
            client_address=client.address if client else "",
            client_phone=client.phone if client else "",
            next_payment_date=credit.next_due_date,
            installment_amount=installment,
            late_fee=late_fee,
            days_late=charge.days_late,
            total_debt=round_money(self.ledger.total_debt(credit, item.payments, late_interest, as_of)),
            commission=round_money(credit.commission_amount),
            amount_due=installment + late_fee,
            is_paid_today=any(p.payment_date == as_of for p in item.payments),
        )

    def build_route(
        self,
        items: Iterable[RouteItem],
        late_interest_by_provider: Mapping[str, LateInterestConfig],
        as_of: date,
        until: Optional[date] = None,
        collected_today: Decimal = ZERO
    ) -> PaymentRoute:
        """
        Build the route for ``as_of``.

        Args:
            items: Candidate credits; non-routable ones are skipped
            late_interest_by_provider: Late interest config keyed by provider id
                (missing providers accrue no late fee)
            as_of: Business date of the route
            until: Optional last due date to include
            collected_today: Amount the collector already collected on ``as_of``
        """
        by_date: Dict[date, List[RouteEntry]] = {}

        for item in items:
            credit = item.credit
            if not is_routable(credit):
                continue
            if until is not None and credit.next_due_date > until:
                continue

            late_interest = late_interest_by_provider.get(credit.provider_id, LateInterestConfig())
            entry = self.build_entry(item, late_interest, as_of)
            by_date.setdefault(entry.next_payment_date, []).append(entry)

        groups = []
        for due_date in sorted(by_date):
            entries = sorted(by_date[due_date], key=lambda e: (e.client_name.lower(), e.credit_id))
            groups.append(RouteGroup(due_date=due_date, is_overdue=due_date < as_of, entries=tuple(entries)))

        daily_goal = sum(
            (e.amount_due for g in groups if g.due_date == as_of for e in g.entries),
            ZERO
        )

        return PaymentRoute(
            as_of=as_of,
            groups=tuple(groups),
            daily_goal=daily_goal,
            collected_today=collected_today,
            until=until,
        )


def build_payment_route(repository: CreditRepository, collector_id: str, as_of: date,
                        until: Optional[date] = None,
                        builder: Optional[PaymentRouteBuilder] = None) -> PaymentRoute:
    """Load a collector's open credits from ``repository`` and build their route"""
    builder = builder or PaymentRouteBuilder()
    credits = repository.list_active_credits_by_collector(collector_id)

    # One scan of the collector's payments serves every credit on the route
    collector_payments = repository.list_payments_by_collector(collector_id)
    payments_by_credit = repository.group_payments_by_credit(collector_payments)

    items: List[RouteItem] = []
    late_interest: Dict[str, LateInterestConfig] = {}
    for credit in credits:
        if credit.provider_id not in late_interest:
            late_interest[credit.provider_id] = repository.get_provider_settings(credit.provider_id).late_interest
        items.append(RouteItem(
            credit=credit,
            payments=payments_by_credit.get(credit.id, []),
            client=repository.find_client(credit.client_id),
        ))

    collected = sum((p.amount for p in collector_payments if p.payment_date == as_of), ZERO)

    route = builder.build_route(items, late_interest, as_of, until=until, collected_today=collected)
    logger.debug(f"Route for collector {collector_id} on {as_of}: {len(route.entries)} entries")
    return route

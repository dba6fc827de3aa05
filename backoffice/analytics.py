"""Dashboard and reporting statistics derived from in-memory entity snapshots.

Every function here is pure: it reads an already-loaded snapshot of clients,
vehicles, policies, claims and payments and returns new derived structures.
Nothing touches the database and no input collection is mutated, so running
the same computation twice over the same snapshot yields the same output.

Nested relations (a policy's client, a claim's policy) are optional. When one
is missing the row is still counted and a placeholder label is used instead.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

DEFAULT_EXPIRY_WINDOW_DAYS = 30
DEFAULT_REPORT_MONTHS = 12
DEFAULT_TOP_CLIENTS = 10
DASHBOARD_LIST_LIMIT = 5

UNKNOWN_CATEGORY = "unknown"
UNKNOWN_CLIENT = "Unknown client"

T = TypeVar("T")


@dataclass(frozen=True)
class ClientRecord:
    id: int
    first_name: str
    last_name: str
    status: str
    phone: str = ""
    created_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class VehicleRecord:
    id: int
    client_id: int
    registration_number: str
    make: str
    model: str
    status: str
    vehicle_value: float = 0.0
    created_at: datetime | None = None


@dataclass(frozen=True)
class PolicyRecord:
    id: int
    policy_number: str
    client_id: int
    vehicle_id: int
    policy_type: str
    status: str
    premium_amount: float
    sum_insured: float
    start_date: date | None
    end_date: date | None
    created_at: datetime | None = None
    client: ClientRecord | None = None
    vehicle: VehicleRecord | None = None


@dataclass(frozen=True)
class ClaimRecord:
    id: int
    claim_number: str
    policy_id: int
    claim_type: str
    status: str
    claim_amount: float | None
    settled_amount: float | None
    incident_date: date | None
    created_at: datetime | None = None
    policy: PolicyRecord | None = None


@dataclass(frozen=True)
class PaymentRecord:
    id: int
    policy_id: int
    client_id: int
    amount: float
    payment_method: str
    status: str
    payment_date: date | None
    receipt_number: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Snapshot:
    clients: tuple[ClientRecord, ...] = ()
    vehicles: tuple[VehicleRecord, ...] = ()
    policies: tuple[PolicyRecord, ...] = ()
    claims: tuple[ClaimRecord, ...] = ()
    payments: tuple[PaymentRecord, ...] = ()


@dataclass(frozen=True)
class StatusCounts:
    total: int
    by_status: dict[str, int] = field(default_factory=dict)

    def get(self, status: str) -> int:
        return self.by_status.get(status, 0)

    @property
    def active(self) -> int:
        return self.get("active")

    @property
    def inactive(self) -> int:
        return self.get("inactive")


@dataclass(frozen=True)
class MonthBucket:
    month: str
    start: date
    revenue: float
    policies: int


@dataclass(frozen=True)
class CategoryGroup:
    category: str
    label: str
    count: int
    amount: float
    percentage: int


@dataclass(frozen=True)
class ClientRanking:
    client_id: int | None
    name: str
    policies: int
    premium: float


@dataclass(frozen=True)
class ExpiringPolicy:
    policy_id: int
    policy_number: str
    client_name: str
    registration_number: str
    premium_amount: float
    end_date: date
    days_remaining: int


@dataclass(frozen=True)
class RecentClaim:
    claim_id: int
    claim_number: str
    client_name: str
    registration_number: str
    claim_type: str
    status: str
    amount: float


@dataclass(frozen=True)
class AnalyticsReport:
    as_of: date
    total_clients: int
    total_vehicles: int
    total_policies: int
    total_claims: int
    total_payments: int
    completed_payments: int
    total_revenue: float
    monthly_revenue: list[MonthBucket]
    claims_by_type: list[CategoryGroup]
    policy_types: list[CategoryGroup]
    payment_methods: list[CategoryGroup]
    top_clients: list[ClientRanking]
    expiring_policies: int
    pending_claims: int


@dataclass(frozen=True)
class DashboardSummary:
    as_of: date
    clients: StatusCounts
    vehicles: StatusCounts
    policies: StatusCounts
    claims: StatusCounts
    payments: StatusCounts
    total_premium: float
    total_revenue: float
    settled_claims_value: float
    pending_claims: int
    expiring_soon: int
    expiring_policies: list[ExpiringPolicy]
    recent_claims: list[RecentClaim]


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _money(value: float) -> float:
    return round(value, 2)


def _created_key(row) -> datetime:
    return row.created_at or datetime.min


def humanize(category: str) -> str:
    return category.replace("_", " ")


def percentage(count: int, total: int) -> int:
    """Whole percent of ``count`` over ``total``, rounded half-up."""
    if total <= 0:
        return 0
    ratio = Decimal(count) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def count_by_status(rows: Iterable) -> StatusCounts:
    by_status: dict[str, int] = {}
    total = 0
    for row in rows:
        total += 1
        by_status[row.status] = by_status.get(row.status, 0) + 1
    return StatusCounts(total=total, by_status=by_status)


def count_where(rows: Iterable, status: str) -> int:
    return sum(1 for row in rows if row.status == status)


def summarize_counts(snapshot: Snapshot) -> dict[str, StatusCounts]:
    return {
        "clients": count_by_status(snapshot.clients),
        "vehicles": count_by_status(snapshot.vehicles),
        "policies": count_by_status(snapshot.policies),
        "claims": count_by_status(snapshot.claims),
        "payments": count_by_status(snapshot.payments),
    }


def is_expiring(
    policy: PolicyRecord,
    today: date | datetime,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> bool:
    """True for active policies ending strictly between today and today + window."""
    if policy.status != "active" or policy.end_date is None:
        return False
    today = _as_date(today)
    return today < policy.end_date < today + timedelta(days=window_days)


def expiring_policies(
    policies: Iterable[PolicyRecord],
    today: date | datetime,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
    limit: int | None = None,
) -> list[PolicyRecord]:
    """Active policies about to lapse, most recently created first.

    Both window bounds are exclusive: a policy ending today or exactly
    ``window_days`` from today is not selected. Equal creation times keep
    their input order.
    """
    selected = [policy for policy in policies if is_expiring(policy, today, window_days)]
    selected.sort(key=_created_key, reverse=True)
    if limit is not None:
        return selected[:limit]
    return selected


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def month_window(today: date | datetime, months: int = DEFAULT_REPORT_MONTHS) -> list[date]:
    """First day of each month in the trailing window, oldest first."""
    if months < 1:
        raise ValueError("months must be at least 1")
    today = _as_date(today)
    starts = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(today.year, today.month, -offset)
        starts.append(date(year, month, 1))
    return starts


def monthly_revenue(
    payments: Iterable[PaymentRecord],
    policies: Iterable[PolicyRecord],
    today: date | datetime,
    months: int = DEFAULT_REPORT_MONTHS,
) -> list[MonthBucket]:
    """Completed-payment revenue and new-policy counts per calendar month.

    Always returns exactly ``months`` buckets ending at the month of
    ``today``; months without activity are reported with zeros.
    """
    starts = month_window(today, months)
    positions = {(start.year, start.month): idx for idx, start in enumerate(starts)}
    revenue = [0.0] * len(starts)
    created = [0] * len(starts)

    for payment in payments:
        if payment.status != "completed" or payment.payment_date is None:
            continue
        idx = positions.get((payment.payment_date.year, payment.payment_date.month))
        if idx is not None:
            revenue[idx] += payment.amount

    for policy in policies:
        if policy.created_at is None:
            continue
        idx = positions.get((policy.created_at.year, policy.created_at.month))
        if idx is not None:
            created[idx] += 1

    return [
        MonthBucket(
            month=start.strftime("%b %Y"),
            start=start,
            revenue=_money(revenue[idx]),
            policies=created[idx],
        )
        for idx, start in enumerate(starts)
    ]


def group_by_category(
    rows: Iterable[T],
    category: Callable[[T], str | None],
    amount: Callable[[T], float | None],
) -> list[CategoryGroup]:
    """Roll rows up by an observed categorical value.

    Groups appear in first-seen order. Each carries the row count, the summed
    ``amount`` and its share of all rows as a whole percent (rounded half-up,
    so shares need not add up to exactly 100).
    """
    counts: dict[str, int] = {}
    sums: dict[str, float] = {}
    total = 0
    for row in rows:
        key = category(row) or UNKNOWN_CATEGORY
        counts[key] = counts.get(key, 0) + 1
        sums[key] = sums.get(key, 0.0) + (amount(row) or 0.0)
        total += 1

    return [
        CategoryGroup(
            category=key,
            label=humanize(key),
            count=count,
            amount=_money(sums[key]),
            percentage=percentage(count, total),
        )
        for key, count in counts.items()
    ]


def claim_value(claim: ClaimRecord) -> float:
    return claim.settled_amount or claim.claim_amount or 0.0


def claims_by_type(claims: Iterable[ClaimRecord]) -> list[CategoryGroup]:
    return group_by_category(claims, lambda claim: claim.claim_type, claim_value)


def policy_type_distribution(policies: Iterable[PolicyRecord]) -> list[CategoryGroup]:
    return group_by_category(policies, lambda policy: policy.policy_type, lambda policy: policy.premium_amount)


def payment_method_distribution(payments: Iterable[PaymentRecord]) -> list[CategoryGroup]:
    return group_by_category(payments, lambda payment: payment.payment_method, lambda payment: payment.amount)


def _client_lookup(clients: Iterable[ClientRecord] | None) -> dict[int, ClientRecord]:
    return {client.id: client for client in clients or ()}


def _policy_client(policy: PolicyRecord, lookup: dict[int, ClientRecord]) -> ClientRecord | None:
    if policy.client is not None:
        return policy.client
    return lookup.get(policy.client_id)


def top_clients(
    policies: Iterable[PolicyRecord],
    limit: int = DEFAULT_TOP_CLIENTS,
    clients: Iterable[ClientRecord] | None = None,
) -> list[ClientRanking]:
    """Clients ranked by total premium across their policies.

    Ties keep the order in which each client's first policy appeared.
    ``clients`` resolves names for policies that do not embed their client.
    """
    lookup = _client_lookup(clients)
    policy_counts: dict[int | None, int] = {}
    premiums: dict[int | None, float] = {}
    names: dict[int | None, str] = {}

    for policy in policies:
        key = policy.client_id
        if key not in names:
            client = _policy_client(policy, lookup)
            names[key] = client.full_name if client else UNKNOWN_CLIENT
        policy_counts[key] = policy_counts.get(key, 0) + 1
        premiums[key] = premiums.get(key, 0.0) + policy.premium_amount

    ranked = sorted(names, key=lambda key: premiums[key], reverse=True)
    return [
        ClientRanking(
            client_id=key,
            name=names[key],
            policies=policy_counts[key],
            premium=_money(premiums[key]),
        )
        for key in ranked[:limit]
    ]


def total_revenue(payments: Iterable[PaymentRecord]) -> float:
    return _money(sum(payment.amount for payment in payments if payment.status == "completed"))


def total_premium(policies: Iterable[PolicyRecord]) -> float:
    return _money(sum(policy.premium_amount for policy in policies))


def settled_claims_value(claims: Iterable[ClaimRecord]) -> float:
    return _money(sum(claim.settled_amount for claim in claims if claim.settled_amount))


def recent_claims(claims: Iterable[ClaimRecord], limit: int = DASHBOARD_LIST_LIMIT) -> list[RecentClaim]:
    ordered = sorted(claims, key=_created_key, reverse=True)[:limit]
    rows = []
    for claim in ordered:
        policy = claim.policy
        client = policy.client if policy else None
        vehicle = policy.vehicle if policy else None
        rows.append(
            RecentClaim(
                claim_id=claim.id,
                claim_number=claim.claim_number,
                client_name=client.full_name if client else UNKNOWN_CLIENT,
                registration_number=vehicle.registration_number if vehicle else "",
                claim_type=humanize(claim.claim_type),
                status=claim.status,
                amount=_money(claim_value(claim)),
            )
        )
    return rows


def _expiring_row(policy: PolicyRecord, today: date, lookup: dict[int, ClientRecord]) -> ExpiringPolicy:
    client = _policy_client(policy, lookup)
    return ExpiringPolicy(
        policy_id=policy.id,
        policy_number=policy.policy_number,
        client_name=client.full_name if client else UNKNOWN_CLIENT,
        registration_number=policy.vehicle.registration_number if policy.vehicle else "",
        premium_amount=policy.premium_amount,
        end_date=policy.end_date,
        days_remaining=(policy.end_date - today).days,
    )


def build_dashboard(
    snapshot: Snapshot,
    today: date | datetime,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
    list_limit: int = DASHBOARD_LIST_LIMIT,
) -> DashboardSummary:
    today = _as_date(today)
    counts = summarize_counts(snapshot)
    expiring = expiring_policies(snapshot.policies, today, window_days)
    lookup = _client_lookup(snapshot.clients)
    return DashboardSummary(
        as_of=today,
        clients=counts["clients"],
        vehicles=counts["vehicles"],
        policies=counts["policies"],
        claims=counts["claims"],
        payments=counts["payments"],
        total_premium=total_premium(snapshot.policies),
        total_revenue=total_revenue(snapshot.payments),
        settled_claims_value=settled_claims_value(snapshot.claims),
        pending_claims=counts["claims"].get("pending"),
        expiring_soon=len(expiring),
        expiring_policies=[_expiring_row(policy, today, lookup) for policy in expiring[:list_limit]],
        recent_claims=recent_claims(snapshot.claims, list_limit),
    )


def build_report(
    snapshot: Snapshot,
    today: date | datetime,
    months: int = DEFAULT_REPORT_MONTHS,
    top_n: int = DEFAULT_TOP_CLIENTS,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> AnalyticsReport:
    today = _as_date(today)
    completed: Sequence[PaymentRecord] = [
        payment for payment in snapshot.payments if payment.status == "completed"
    ]
    return AnalyticsReport(
        as_of=today,
        total_clients=len(snapshot.clients),
        total_vehicles=len(snapshot.vehicles),
        total_policies=len(snapshot.policies),
        total_claims=len(snapshot.claims),
        total_payments=len(snapshot.payments),
        completed_payments=len(completed),
        total_revenue=total_revenue(completed),
        monthly_revenue=monthly_revenue(completed, snapshot.policies, today, months),
        claims_by_type=claims_by_type(snapshot.claims),
        policy_types=policy_type_distribution(snapshot.policies),
        payment_methods=payment_method_distribution(completed),
        top_clients=top_clients(snapshot.policies, top_n, snapshot.clients),
        expiring_policies=len(expiring_policies(snapshot.policies, today, window_days)),
        pending_claims=count_where(snapshot.claims, "pending"),
    )

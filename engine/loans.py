"""engine.loans

Lifeline loans: credibility scoring, tiered offers, amortized repayment,
late penalties and the "sacrifice" attached to every offer.

One active loan per company. Accepting adds cash (clamped path) and takes
an immediate XP cut; a revenue / anomaly-chance sacrifice then runs for the
loan's full duration. Late penalties go through the unclamped cash path.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from content.repository import ContentRepository
from core.errors import (
    ACTIVE_LOAN_EXISTS,
    INSUFFICIENT_CASH,
    INVALID_AMOUNT,
    LOAN_NOT_ACTIVE,
    NOT_FOUND,
    Rejection,
    dead_company,
    reject,
)
from core.effects import adjust_cash, apply_effects
from core.progression import deduct_xp
from core.state import Company, Effects, Loan, LoanSacrifice, active_loans, clamp, total_skill_levels

from .anomalies import apply_activation, roll_contextual_anomaly

PAYMENT_PERIOD_DAYS = 30
MAX_PENALTY_RATE = 0.20
DAILY_PENALTY_RATE = 0.01
MAX_CREDIBILITY_LOSS_PER_DAY = 5
AUTO_PAY_MAX_OVERDUE = 7
MAX_EARLY_BONUS = 10
PENALTY_TRIGGERS = ("loan", "penalty")


@dataclass(frozen=True)
class LoanOffer:
    offer_id: str
    amount: float
    interest_rate: float
    duration_days: int
    sacrifice: LoanSacrifice

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "amount": float(self.amount),
            "interest_rate": float(self.interest_rate),
            "duration_days": int(self.duration_days),
            "total_owed": float(self.amount) * (1.0 + float(self.interest_rate)),
            "xp_penalty_percent": float(self.sacrifice.xp_penalty_percent),
            "revenue_multiplier": self.sacrifice.revenue_multiplier,
            "future_event_chance_increase": self.sacrifice.future_event_chance_increase,
        }


# (min score, offer) in presentation order; the last tier always applies.
OFFER_TIERS: Tuple[Tuple[int, LoanOffer], ...] = (
    (80, LoanOffer("prime-50k", 50_000, 0.05, 30, LoanSacrifice(5, 0.95))),
    (80, LoanOffer("prime-30k", 30_000, 0.04, 45, LoanSacrifice(3, 0.97))),
    (60, LoanOffer("standard-20k", 20_000, 0.07, 30, LoanSacrifice(10, 0.90, 0.05))),
    (60, LoanOffer("standard-15k", 15_000, 0.06, 45, LoanSacrifice(8, 0.92))),
    (40, LoanOffer("subprime-10k", 10_000, 0.10, 30, LoanSacrifice(15, 0.85, 0.10))),
    (40, LoanOffer("subprime-7500", 7_500, 0.09, 45, LoanSacrifice(12, 0.88))),
    (0, LoanOffer("lifeline-5k", 5_000, 0.15, 30, LoanSacrifice(20, 0.80, 0.15))),
)


@dataclass(frozen=True)
class LoanResult:
    company: Company
    loan: Optional[Loan] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class PaymentResult:
    company: Company
    loan: Optional[Loan] = None
    paid: float = 0.0
    fully_paid: bool = False
    credibility_bonus: int = 0
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


# -------------------------
# Scoring and offers
# -------------------------


def calculate_credibility_score(company: Company) -> int:
    score = 50.0
    score += int(company.day) * 2

    cash = float(company.cash)
    if cash > 10_000:
        score += 20
    elif cash > 5_000:
        score += 10
    elif cash < 1_000:
        score -= 20

    users = int(company.users)
    if users > 1_000:
        score += 15
    elif users > 500:
        score += 10
    elif users < 100:
        score -= 10

    score += math.floor(float(company.quality) / 10.0)
    score += math.floor(int(company.xp) / 100.0)
    score += total_skill_levels(company) * 2
    return int(clamp(score, 0, 100))


def generate_loan_offers(score: int) -> List[LoanOffer]:
    """Every tier the score qualifies for; the lifeline tier is always present."""
    return [offer for threshold, offer in OFFER_TIERS if int(score) >= threshold]


# -------------------------
# Payment math
# -------------------------


def calculate_monthly_payment(loan: Loan) -> float:
    """Standard amortization over the unpaid principal.

    Once the principal is covered, the remaining interest is due in one go.
    """
    principal = float(loan.amount) - float(loan.paid)
    if principal <= 0:
        return loan.remaining
    r = float(loan.interest_rate) / 12.0
    n = float(loan.duration_days) / PAYMENT_PERIOD_DAYS
    if n <= 0:
        return principal
    if r == 0:
        return principal / n
    growth = math.pow(1.0 + r, n)
    return principal * (r * growth) / (growth - 1.0)


def days_overdue(loan: Loan, day: int) -> int:
    return int(day) - int(loan.due_day)


def late_penalty(loan: Loan, overdue: int) -> float:
    if overdue <= 0:
        return 0.0
    return float(loan.amount) * min(MAX_PENALTY_RATE, overdue * DAILY_PENALTY_RATE)


def early_repayment_bonus(loan: Loan, day: int) -> int:
    days_remaining = int(loan.due_day) - int(day)
    if days_remaining <= 0:
        return 0
    return min(MAX_EARLY_BONUS, days_remaining // 3)


def payment_scheduled(loan: Loan, day: int) -> bool:
    """A payment falls due on each period anniversary and every day from the due date on."""
    elapsed = int(day) - int(loan.accepted_day)
    if elapsed <= 0:
        return False
    return elapsed % PAYMENT_PERIOD_DAYS == 0 or int(day) >= int(loan.due_day)


def _replace_loan(company: Company, loan: Loan) -> Company:
    return replace(company, loans=[loan if ln.loan_id == loan.loan_id else ln for ln in company.loans])


# -------------------------
# Player operations
# -------------------------


def accept_loan(company: Company, offer: LoanOffer) -> LoanResult:
    if not company.alive:
        return LoanResult(company, rejection=dead_company())
    current = active_loans(company)
    if current:
        return LoanResult(
            company,
            rejection=reject(ACTIVE_LOAN_EXISTS, "Repay the active loan first.", loan_id=current[0].loan_id),
        )

    day = int(company.day)
    loan = Loan(
        loan_id=f"loan-{company.company_id}-{day}-{len(company.loans) + 1}",
        amount=float(offer.amount),
        interest_rate=float(offer.interest_rate),
        duration_days=int(offer.duration_days),
        accepted_day=day,
        due_day=day + int(offer.duration_days),
        sacrifice=offer.sacrifice,
        credibility_score=calculate_credibility_score(company),
    )

    updated, _ = apply_effects(company, Effects(cash=float(offer.amount)))
    penalty = int(math.floor(int(updated.xp) * float(offer.sacrifice.xp_penalty_percent) / 100.0))
    updated = deduct_xp(updated, penalty)
    updated = replace(
        updated,
        loans=[*updated.loans, loan],
        loan_effect_duration=int(offer.duration_days) if offer.sacrifice.has_lasting_effect else 0,
        lifeline_used=True,
    )
    return LoanResult(updated, loan=loan)


def make_payment(company: Company, loan_id: str, amount: float) -> PaymentResult:
    if not company.alive:
        return PaymentResult(company, rejection=dead_company())
    loan = next((ln for ln in company.loans if ln.loan_id == loan_id), None)
    if loan is None:
        return PaymentResult(company, rejection=reject(NOT_FOUND, "Loan not found.", loan_id=loan_id))
    if float(amount) <= 0:
        return PaymentResult(company, loan=loan, rejection=reject(INVALID_AMOUNT, "Payment must be positive.", amount=amount))
    if loan.status != "active":
        return PaymentResult(company, loan=loan, rejection=reject(LOAN_NOT_ACTIVE, "Loan is not active.", status=loan.status))

    payment = min(float(amount), loan.remaining)
    if float(company.cash) < payment:
        return PaymentResult(
            company,
            loan=loan,
            rejection=reject(INSUFFICIENT_CASH, "Not enough cash.", required=payment, available=float(company.cash)),
        )

    updated_loan = replace(loan, paid=float(loan.paid) + payment)
    bonus = 0
    fully_paid = updated_loan.remaining <= 1e-9
    if fully_paid:
        bonus = early_repayment_bonus(loan, int(company.day))
        updated_loan = replace(
            updated_loan,
            status="paid",
            credibility_score=min(100, int(loan.credibility_score) + bonus),
        )

    updated = _replace_loan(adjust_cash(company, -payment), updated_loan)
    return PaymentResult(updated, loan=updated_loan, paid=payment, fully_paid=fully_paid, credibility_bonus=bonus)


# -------------------------
# Daily processing
# -------------------------


def process_daily_loans(
    company: Company,
    content: ContentRepository,
    rng: random.Random,
    penalty_anomaly_chance: float = 0.30,
) -> Tuple[Company, List[Dict[str, Any]]]:
    """Penalties, punitive anomalies and scheduled auto-payments for every active loan.

    Returns (company, loan_events).
    """
    if not company.alive:
        return company, []

    day = int(company.day)
    log: List[Dict[str, Any]] = []

    for loan in active_loans(company):
        overdue = days_overdue(loan, day)
        if overdue > 0:
            penalty = late_penalty(loan, overdue)
            company = adjust_cash(company, -penalty)
            entry: Dict[str, Any] = {
                "loan_id": loan.loan_id,
                "type": "late_penalty",
                "days_overdue": overdue,
                "penalty": penalty,
            }

            activation = roll_contextual_anomaly(company, content, rng, PENALTY_TRIGGERS, penalty_anomaly_chance)
            if activation is not None:
                company = apply_activation(company, activation, content)
                entry["anomaly"] = activation.to_dict()

            loan = replace(loan, credibility_score=max(0, int(loan.credibility_score) - min(MAX_CREDIBILITY_LOSS_PER_DAY, overdue)))
            company = _replace_loan(company, loan)
            log.append(entry)

        if overdue > AUTO_PAY_MAX_OVERDUE or not payment_scheduled(loan, day):
            continue
        due = calculate_monthly_payment(loan)
        if due <= 0 or float(company.cash) < due:
            continue
        result = make_payment(company, loan.loan_id, due)
        if result.ok:
            company = result.company
            log.append(
                {
                    "loan_id": loan.loan_id,
                    "type": "auto_payment",
                    "paid": result.paid,
                    "fully_paid": result.fully_paid,
                }
            )

    return company, log


def default_active_loans(company: Company) -> Company:
    """Bankruptcy: every active loan becomes defaulted."""
    if not active_loans(company):
        return company
    return replace(
        company,
        loans=[replace(ln, status="defaulted") if ln.status == "active" else ln for ln in company.loans],
    )

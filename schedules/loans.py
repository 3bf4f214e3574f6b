"""
Loan amortization schedules, derived on demand from a Loan record.

Timeline (period 1 = month after disbursement):
  1 .. G_i       interest grace: accrued interest is capitalised, nothing is paid
  G_i+1 .. G     principal grace: interest-only (G = max(G_p, G_i))
  G+1 .. term    amortization: the tranche B * (1 - balloon_pct) is repaid with a
                 level annuity over term - G months; the balloon tranche
                 B * balloon_pct pays interest only and falls due at term end.
B is the balance when amortization starts (principal + capitalised interest).

Fees and insurance are one upfront outflow at disbursement and are not part of
the schedule lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterator, Sequence

import numpy as np
import pandas as pd

from core.errors import InvalidLoanTerms
from core.utils import months_between
from data_prep.records import Loan

logger = logging.getLogger(__name__)


def level_payment(balance: float, monthly_rate: float, n_months: int) -> float:
    """Standard fully-amortizing level payment (PMT) with near-zero rate guard."""
    if n_months <= 0:
        return float(balance)
    if abs(monthly_rate) < 1e-12:
        return float(balance) / n_months
    return float(balance) * (monthly_rate * (1 + monthly_rate) ** n_months) / (
        (1 + monthly_rate) ** n_months - 1
    )


def validate_loan(loan: Loan) -> None:
    if loan.annual_rate < 0:
        raise InvalidLoanTerms(loan.id, f"annual_rate must be >= 0, got {loan.annual_rate}")
    if loan.term_months <= 0:
        raise InvalidLoanTerms(loan.id, f"term_months must be > 0, got {loan.term_months}")
    deferral = max(loan.grace_principal_months, loan.grace_interest_months)
    if deferral >= loan.term_months:
        raise InvalidLoanTerms(
            loan.id,
            f"grace period ({deferral} months) leaves no amortization month "
            f"in a {loan.term_months}-month term",
        )


@dataclass(frozen=True)
class LoanScheduleLine:
    period: int
    opening_balance: float
    interest: float               # accrued this month (expense)
    capitalized_interest: float   # part of `interest` added to the balance
    principal: float
    balloon: float
    remaining_balance: float
    payment: float                # cash paid: interest paid + principal + balloon

    @property
    def interest_paid(self) -> float:
        return self.interest - self.capitalized_interest


@dataclass(frozen=True)
class LoanSchedule:
    loan: Loan

    def __post_init__(self):
        validate_loan(self.loan)

    @property
    def monthly_rate(self) -> float:
        return self.loan.annual_rate / 12.0

    @property
    def deferral_months(self) -> int:
        return max(self.loan.grace_principal_months, self.loan.grace_interest_months)

    @property
    def upfront_costs(self) -> float:
        return self.loan.principal * (self.loan.fees_pct + self.loan.insurance_pct)

    def __len__(self) -> int:
        return int(self.loan.term_months)

    def __iter__(self) -> Iterator[LoanScheduleLine]:
        loan = self.loan
        r = self.monthly_rate
        term = int(loan.term_months)
        g_interest = int(loan.grace_interest_months)
        g_total = self.deferral_months
        n_amort = term - g_total

        balance = float(loan.principal)
        payment_amort = None
        amortizing = 0.0
        balloon_tranche = 0.0

        for k in range(1, term + 1):
            opening = balance
            interest = opening * r
            capitalized = 0.0
            principal = 0.0
            balloon = 0.0

            if k <= g_interest:
                capitalized = interest
                balance = opening + interest
            elif k <= g_total:
                balance = opening
            else:
                if payment_amort is None:
                    balloon_tranche = opening * loan.balloon_pct
                    amortizing = opening - balloon_tranche
                    payment_amort = level_payment(amortizing, r, n_amort)
                if k == term:
                    principal = amortizing
                    balloon = balloon_tranche
                else:
                    principal = min(max(payment_amort - amortizing * r, 0.0), amortizing)
                amortizing -= principal
                balance = 0.0 if k == term else opening - principal

            yield LoanScheduleLine(
                period=k,
                opening_balance=opening,
                interest=interest,
                capitalized_interest=capitalized,
                principal=principal,
                balloon=balloon,
                remaining_balance=balance,
                payment=interest - capitalized + principal + balloon,
            )

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "period": line.period,
                "opening_balance": line.opening_balance,
                "interest": line.interest,
                "capitalized_interest": line.capitalized_interest,
                "principal": line.principal,
                "balloon": line.balloon,
                "remaining_balance": line.remaining_balance,
                "payment": line.payment,
            }
            for line in self
        ]
        return pd.DataFrame(rows)


def loan_schedule(loan: Loan) -> LoanSchedule:
    """Validate a loan and return its (lazy, restartable) schedule."""
    return LoanSchedule(loan)


DEBT_COLUMNS = (
    "disbursement",
    "loan_fees",
    "interest_expense",
    "capitalized_interest",
    "interest_paid",
    "principal_repaid",
    "balloon",
    "debt_service",
    "debt_balance",
    "principal_due_12m",
)


def debt_by_period(loans: Sequence[Loan], start_date: date, n_months: int) -> pd.DataFrame:
    """
    Aggregate all loan schedules onto the projection calendar.

    Every loan is validated first, so one bad loan rejects the whole set before
    any schedule is generated.

    A loan disbursed before the start keeps its own timeline: no disbursement
    or fees are booked, only the schedule lines falling inside the horizon, and
    its outstanding balance is carried as opening debt.
    """
    schedules = [loan_schedule(loan) for loan in loans]
    cols = {c: np.zeros(n_months, dtype=float) for c in DEBT_COLUMNS}

    for sched in schedules:
        loan = sched.loan
        offset = months_between(start_date, loan.disbursement_date)
        if offset >= n_months:
            continue
        if offset >= 0:
            cols["disbursement"][offset] += loan.principal
            cols["loan_fees"][offset] += sched.upfront_costs

        term = len(sched)
        repay = np.zeros(term + 1, dtype=float)  # by loan-relative period
        balance = np.zeros(term + 1, dtype=float)
        balance[0] = loan.principal
        for line in sched:
            repay[line.period] = line.principal + line.balloon
            balance[line.period] = line.remaining_balance
            p = offset + line.period
            if p < 0 or p >= n_months:
                continue
            cols["interest_expense"][p] += line.interest
            cols["capitalized_interest"][p] += line.capitalized_interest
            cols["interest_paid"][p] += line.interest_paid
            cols["principal_repaid"][p] += line.principal
            cols["balloon"][p] += line.balloon
            cols["debt_service"][p] += line.payment

        cum = np.cumsum(repay)
        for rel in range(max(0, -offset), term + 1):
            p = offset + rel
            if p >= n_months:
                break
            cols["debt_balance"][p] += balance[rel]
            cols["principal_due_12m"][p] += cum[min(rel + 12, term)] - cum[rel]

        logger.debug(
            "loan %s: principal=%.2f term=%d deferral=%d offset=%d",
            loan.id, loan.principal, term, sched.deferral_months, offset,
        )

    return pd.DataFrame(cols)

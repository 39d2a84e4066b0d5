"""
Customer risk scoring.

Combines aggregate activity metrics with the flags raised for a customer
into a bounded 0-100 integer score.
"""

import math
from typing import Iterable, Mapping

from fraudwatch.anomaly.models import (
    UNKNOWN_ACTIVITY,
    CustomerActivity,
    CustomerTotals,
    FlagType,
    FraudFlag,
)


class RiskScorer:
    """
    Calculates customer risk scores.

    The score is the sum of volume, average-amount and ratio components,
    plus a fixed increment per flag raised for the customer, capped at 100.
    """

    # Score increments per flag occurrence
    FLAG_INCREMENTS = {
        FlagType.DR_CR_SAME_INTERVAL: 1,
        FlagType.HIGH_FREQUENCY: 2,
        FlagType.THRESHOLD_AVOIDANCE: 1,
        FlagType.UNUSUAL_RATIO: 1,
        FlagType.VOLUME_SPIKE: 0,  # Not attributed to a customer
        FlagType.REPEATED_AMOUNTS: 1,
    }

    MAX_SCORE = 100
    MAX_VOLUME_RISK = 30
    MAX_AMOUNT_RISK = 20
    RATIO_RISK = 15

    # Ratio outside (0.2, 5) adds RATIO_RISK
    RATIO_HIGH = 5
    RATIO_LOW = 0.2

    def volume_risk(self, total_transactions: int) -> int:
        return min(self.MAX_VOLUME_RISK, total_transactions // 10)

    def amount_risk(self, average_amount: float) -> int:
        return min(self.MAX_AMOUNT_RISK, math.floor(average_amount / 5000))

    def ratio_risk(self, dr_cr_ratio: float) -> int:
        if dr_cr_ratio > self.RATIO_HIGH or dr_cr_ratio < self.RATIO_LOW:
            return self.RATIO_RISK
        return 0

    def flag_risk(self, flags: Iterable[FraudFlag]) -> int:
        return sum(self.FLAG_INCREMENTS.get(f.flag_type, 0) for f in flags)

    def calculate_score(
        self,
        total_transactions: int,
        average_amount: float,
        dr_cr_ratio: float,
        flags: Iterable[FraudFlag] = (),
    ) -> int:
        """
        Calculate a customer's risk score.

        Args:
            total_transactions: Sum of the customer's transaction counts
            average_amount: Total amount divided by total transactions
            dr_cr_ratio: Debit amount divided by credit amount
            flags: Flags raised for this customer

        Returns:
            Integer score in [0, 100]
        """
        base = (
            self.volume_risk(total_transactions)
            + self.amount_risk(average_amount)
            + self.ratio_risk(dr_cr_ratio)
        )
        return max(0, min(self.MAX_SCORE, base + self.flag_risk(flags)))

    def score(self, activity: CustomerActivity, flags: Iterable[FraudFlag]) -> int:
        """Recompute a score from an activity record and its flags."""
        own_flags = [f for f in flags if f.customer_id == activity.customer_id]
        return self.calculate_score(
            activity.total_transactions,
            activity.average_amount,
            activity.dr_cr_ratio,
            own_flags,
        )

    def score_customers(
        self,
        customers: Mapping[str, CustomerTotals],
        flags: Iterable[FraudFlag],
    ) -> list[CustomerActivity]:
        """
        Build scored CustomerActivity records for every customer.

        Args:
            customers: Per-customer totals, in encounter order
            flags: All flags raised for the snapshot

        Returns:
            One CustomerActivity per customer, in encounter order
        """
        flags_by_customer: dict[str, list[FraudFlag]] = {}
        for flag in flags:
            if flag.flag_type is FlagType.VOLUME_SPIKE:
                continue
            flags_by_customer.setdefault(flag.customer_id, []).append(flag)

        activities = []
        for customer_id, totals in customers.items():
            average = totals.average_amount
            ratio = totals.dr_cr_ratio
            activities.append(
                CustomerActivity(
                    customer_id=customer_id,
                    customer_name=totals.customer_name,
                    total_transactions=totals.total_transactions,
                    total_amount=totals.total_amount,
                    average_amount=average,
                    last_activity=totals.last_activity or UNKNOWN_ACTIVITY,
                    dr_cr_ratio=ratio,
                    risk_score=self.calculate_score(
                        totals.total_transactions,
                        average,
                        ratio,
                        flags_by_customer.get(customer_id, []),
                    ),
                )
            )

        return activities

"""
Lead scoring for Arrest Lead.

Rules are applied in a fixed order and combined additively:
bond amount, bond type, custody status, completeness, disqualifying
charges. The scorer is pure: no I/O and no clock.
"""

from typing import Iterable, List, Optional, Tuple

from arrestlead.config import ScoringConfig
from arrestlead.model import (
    ArrestRecord,
    LeadScore,
    LeadTier,
    bond_types_text,
    charges_text,
    court_date_of,
    total_bond_amount,
)


class LeadScorer:
    """
    Scores ArrestRecords against the lead qualification rubric.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def bond_amount_rule(self, amount: Optional[float]) -> Tuple[int, str]:
        """
        Points and reason for a total bond amount.

        Args:
            amount: Total bond in dollars, None when not published

        Returns:
            Tuple of (points, reason)
        """
        cfg = self.config
        if amount is None or amount == 0:
            return cfg.no_bond_amount_points, "No bond amount"
        if cfg.ideal_bond_min <= amount <= cfg.ideal_bond_max:
            return cfg.ideal_bond_points, "Ideal bond amount ($500-$50K)"
        if cfg.ideal_bond_max < amount <= cfg.high_bond_max:
            return cfg.high_bond_points, "High bond amount ($50K-$100K)"
        if amount > cfg.high_bond_max:
            return cfg.very_high_bond_points, "Very high bond amount (>$100K)"
        return cfg.low_bond_points, "Low bond amount (<$500)"

    def bond_amount_contribution(self, amount: Optional[float]) -> int:
        """Return only the points a bond amount contributes."""
        return self.bond_amount_rule(amount)[0]

    def disqualifiers_for(self, county: str) -> List[str]:
        """Return the disqualifying charge terms for a county."""
        terms = list(self.config.disqualifying_charges)
        for name, extra in self.config.county_disqualifiers.items():
            if name.lower() == (county or "").lower():
                terms.extend(t for t in extra if t not in terms)
        return terms

    def tier_for(self, score: int) -> LeadTier:
        """
        Map a numeric score to a tier.

        Args:
            score: Total score

        Returns:
            Lead tier
        """
        if score < 0:
            return LeadTier.DISQUALIFIED
        if score >= self.config.hot_threshold:
            return LeadTier.HOT
        if score >= self.config.warm_threshold:
            return LeadTier.WARM
        return LeadTier.COLD

    def score(self, record: ArrestRecord) -> LeadScore:
        """
        Score one record.

        Args:
            record: Normalized arrest record

        Returns:
            Score, tier and reasons in rule order
        """
        cfg = self.config
        score = 0
        reasons: List[str] = []

        # Bond amount
        amount = total_bond_amount(record)
        points, reason = self.bond_amount_rule(amount)
        score += points
        reasons.append(reason)

        # Bond type; each marker group fires independently
        bond_type = bond_types_text(record).upper()
        if any(marker in bond_type for marker in cfg.bondable_types):
            score += cfg.bondable_type_points
            reasons.append("Bondable type (Cash/Surety)")
        if any(marker in bond_type for marker in cfg.unbondable_types):
            score += cfg.unbondable_type_points
            reasons.append("NOT BONDABLE (No Bond/Hold)")
        if any(marker in bond_type for marker in cfg.ror_types):
            score += cfg.ror_type_points
            reasons.append("Released on own recognizance")

        # Custody status
        status = str(record.get("status") or "").upper()
        if "IN CUSTODY" in status or "INCUSTODY" in status:
            score += cfg.in_custody_points
            reasons.append("Currently in custody")
        elif "RELEASED" in status:
            score += cfg.released_points
            reasons.append("Already released")

        # Completeness
        complete = (
            bool((record.get("full_name") or "").strip())
            and bool(record.get("charges"))
            and amount is not None
            and bool(court_date_of(record))
        )
        if complete:
            score += cfg.complete_points
            reasons.append("Complete data")
        else:
            score += cfg.incomplete_points
            reasons.append("Missing data")

        # Disqualifying charges, applied once
        charges = charges_text(record).upper()
        if any(term in charges for term in self.disqualifiers_for(record.get("county", ""))):
            score += cfg.disqualifying_charge_points
            reasons.append("DISQUALIFIED: Severe charge")

        return LeadScore(score, self.tier_for(score), reasons)

    def score_many(self, records: Iterable[ArrestRecord]) -> List[Tuple[ArrestRecord, LeadScore]]:
        """Score several records, keeping each score beside its record."""
        return [(record, self.score(record)) for record in records]


def score_record(record: ArrestRecord, config: Optional[ScoringConfig] = None) -> LeadScore:
    """
    Score one record with the given (or default) weights.

    Args:
        record: Normalized arrest record
        config: Scoring configuration

    Returns:
        Lead score
    """
    return LeadScorer(config).score(record)

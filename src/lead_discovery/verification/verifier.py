#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Lead Verifier

Assigns a 0-100 confidence score to an extracted lead based on which fields
are known and whether the lead came from an API-verified source.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lead_discovery.models.lead import SCORED_FIELDS, Lead, is_known
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

# Scoring policy
POINTS_PER_FIELD = 20
VERIFIED_SOURCE_BONUS = 20
MAX_CONFIDENCE = 100
VERIFIED_THRESHOLD = 70
HIGH_CONFIDENCE = 80
MEDIUM_CONFIDENCE = 60


@dataclass
class VerificationResult:
    """Outcome of verifying one lead."""
    lead: Lead
    confidence: int
    verified: bool = False
    error: Optional[str] = None


def calculate_confidence(lead: Lead) -> int:
    """
    Score a lead.

    Each of company, location, project type, budget and room count that is
    not ``UNKNOWN`` is worth 20 points; an API-verified source adds 20.
    The total is capped at 100.
    """
    score = sum(
        POINTS_PER_FIELD for name in SCORED_FIELDS if is_known(getattr(lead.fields, name))
    )
    if lead.verified_source:
        score += VERIFIED_SOURCE_BONUS
    return min(score, MAX_CONFIDENCE)


def confidence_band(confidence: int) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


class LeadVerifier:
    """
    Scores leads and keeps running verification statistics.

    Verification never raises: an internal failure passes the lead through
    unchanged with confidence 0 and is counted in the stats.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.stats = {
            "total_verified": 0,
            "verified": 0,
            "failed": 0,
            "confidence_sum": 0,
        }

    def _score(self, lead: Lead) -> int:
        confidence = calculate_confidence(lead)

        lead.completeness = {
            name: is_known(getattr(lead.fields, name)) for name in SCORED_FIELDS
        }
        lead.issues = [
            f"No {name.replace('_', ' ')} information" for name, known in lead.completeness.items()
            if not known
        ]
        if not lead.verified_source:
            lead.issues.append("Source is not API-verified")

        lead.confidence = confidence
        return confidence

    def verify(self, lead: Lead) -> VerificationResult:
        """
        Verify a single lead.

        Args:
            lead: Extracted lead

        Returns:
            VerificationResult: Lead with confidence and completeness filled in
        """
        try:
            confidence = self._score(lead)
        except Exception as e:
            logger.warning(f"Verification failed for '{getattr(lead, 'title', '?')}': {str(e)}")
            try:
                lead.confidence = 0
            except AttributeError:
                pass
            with self._lock:
                self.stats["total_verified"] += 1
                self.stats["failed"] += 1
            return VerificationResult(lead=lead, confidence=0, verified=False, error=str(e))

        verified = confidence >= VERIFIED_THRESHOLD
        with self._lock:
            self.stats["total_verified"] += 1
            self.stats["confidence_sum"] += confidence
            if verified:
                self.stats["verified"] += 1

        return VerificationResult(lead=lead, confidence=confidence, verified=verified)

    def verify_all(self, leads: List[Lead]) -> List[VerificationResult]:
        return [self.verify(lead) for lead in leads]

    def get_verification_stats(self) -> Dict[str, Any]:
        """
        Get lifetime verification statistics.

        Returns:
            Dict: Totals, failures and average confidence
        """
        with self._lock:
            total = self.stats["total_verified"]
            scored = total - self.stats["failed"]
            return {
                "total_verified": total,
                "verified": self.stats["verified"],
                "failed": self.stats["failed"],
                "average_confidence": round(self.stats["confidence_sum"] / scored) if scored else 0,
            }


def summarize_confidence(results: List[VerificationResult]) -> Dict[str, Any]:
    """Per-run high/medium/low distribution and average confidence."""
    summary = {
        "totalVerified": len(results),
        "highConfidence": 0,
        "mediumConfidence": 0,
        "lowConfidence": 0,
        "averageConfidence": 0,
    }
    for result in results:
        summary[f"{confidence_band(result.confidence)}Confidence"] += 1

    if results:
        summary["averageConfidence"] = round(sum(r.confidence for r in results) / len(results))
    return summary

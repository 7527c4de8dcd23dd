"""
Verification package: confidence scoring for extracted leads.
"""

from .verifier import LeadVerifier, VerificationResult, calculate_confidence

__all__ = ["LeadVerifier", "VerificationResult", "calculate_confidence"]

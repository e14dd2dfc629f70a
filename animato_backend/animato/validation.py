"""
Acceptance check for generated character portraits.

There is no vision model behind this: the default scorer compares the
attributes a provider says it depicted with the attributes that were
requested. The scorer and the threshold are both replaceable.
"""
import logging
from typing import Any, Callable, List, Optional, Tuple

from . import settings
from .models import Appearance, ProviderResult, ValidationResult

logger = logging.getLogger(__name__)

Scorer = Callable[[ProviderResult, Appearance], Tuple[float, List[str]]]

SCORED_ATTRIBUTES = ("gender", "ethnicity", "hair_color", "eye_color", "age")
MATCH_SCORE = 1.0
UNDECLARED_SCORE = 0.4
MISMATCH_SCORE = 0.0
AGE_TOLERANCE_YEARS = 5


def _same(attribute: str, depicted: Any, expected: Any) -> bool:
    if attribute == "age":
        try:
            return abs(int(depicted) - int(expected)) <= AGE_TOLERANCE_YEARS
        except (TypeError, ValueError):
            return False
    return str(depicted).strip().lower() == str(expected).strip().lower()


def attribute_scorer(candidate: ProviderResult, expected: Appearance) -> Tuple[float, List[str]]:
    scores = []
    mismatches = []
    for attribute in SCORED_ATTRIBUTES:
        depicted = candidate.depicted.get(attribute)
        if depicted in (None, ""):
            scores.append(UNDECLARED_SCORE)
            continue
        wanted = getattr(expected, attribute)
        if _same(attribute, depicted, wanted):
            scores.append(MATCH_SCORE)
        else:
            scores.append(MISMATCH_SCORE)
            mismatches.append(f"{attribute}: expected {wanted}, got {depicted}")
    return sum(scores) / len(scores), mismatches


class ValidationGate:
    def __init__(self, threshold: Optional[float] = None, scorer: Optional[Scorer] = None):
        self.threshold = settings.PHOTO_CONFIDENCE_THRESHOLD if threshold is None else threshold
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        self.scorer = scorer or attribute_scorer

    def validate(self, candidate: ProviderResult, expected: Appearance) -> ValidationResult:
        confidence, mismatches = self.scorer(candidate, expected)
        confidence = round(max(0.0, min(1.0, float(confidence))), 4)
        result = ValidationResult(
            is_valid=confidence >= self.threshold,
            confidence=confidence,
            mismatches=tuple(mismatches),
        )
        if not result.is_valid:
            logger.info(
                f"Candidate from {candidate.provider} below threshold "
                f"({confidence:.2f} < {self.threshold:.2f}): {list(result.mismatches)}"
            )
        return result

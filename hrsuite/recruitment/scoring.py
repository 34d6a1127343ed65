"""Interview scoring.

A stage's questions carry weights. Rating answers (1-5) earn a share of
their weight, "yes" answers earn all of it, free-text and
multiple-choice answers earn nothing until scored by hand. The result is
a whole-number percentage of the stage's total weight.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from hrsuite.common.constants import RATING_SCALE_MAX, QuestionType
from hrsuite.recruitment.schemas import Stage

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _leading_int(value: Any) -> int:
    """Integer prefix of *value* ("4", "4.5", "4 stars" → 4); 0 when none."""
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def calculate_interview_score(
    stage: Stage | Mapping[str, Any],
    answers: Mapping[str, Any],
) -> Optional[int]:
    """Weighted score for *answers* against *stage*, or ``None`` when scoring is off."""
    if not isinstance(stage, Stage):
        stage = Stage.model_validate(stage)
    if not stage.requirements.scoring.enabled:
        return None

    total_weight = Decimal("0")
    earned = Decimal("0")
    for question in stage.requirements.questions:
        weight = question.weight or Decimal("0")
        total_weight += weight

        answer = answers.get(question.id)
        if answer is None or answer == "":
            continue
        if question.type == QuestionType.rating:
            earned += Decimal(_leading_int(answer)) / RATING_SCALE_MAX * weight
        elif question.type == QuestionType.yes_no:
            earned += weight if answer == "yes" else Decimal("0")

    if total_weight == 0:
        return 0
    percentage = earned / total_weight * 100
    return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_passing(score: Optional[int], passing_score: Any = 0) -> bool:
    if score is None:
        return False
    return Decimal(score) >= Decimal(str(passing_score or 0))

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dealscope.core.models import RecordedDeal
from dealscope.core.quality import (
    assess_prediction_quality,
    average_completeness,
    deal_completeness_score,
    quality_grade,
)
from tests.test_supabase_client import _deal_row


def _deal(**kwargs) -> RecordedDeal:
    return RecordedDeal.model_validate(_deal_row(0, **kwargs))


def test_completeness_score_bounds():
    assert deal_completeness_score(_deal(complete=False)) == 34
    assert deal_completeness_score(_deal(complete=True)) == 90
    assert deal_completeness_score(_deal(complete=True, bom=True)) == 100


def test_average_completeness_rounds_and_handles_empty():
    deals = [_deal(complete=False), _deal(complete=True), _deal(complete=True, bom=True)]

    assert average_completeness(deals) == round((34 + 90 + 100) / 3)
    assert average_completeness([]) == 0


@pytest.mark.parametrize(
    "score, grade",
    [(95, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"), (45, "Fair"), (10, "Poor")],
)
def test_quality_grade(score, grade):
    assert quality_grade(score) == grade


def test_assess_prediction_quality_for_complete_deal():
    quality = assess_prediction_quality(_deal(complete=True, bom=True), confidence=1.0)

    assert quality.score == 100
    assert quality.grade == "Excellent"
    assert quality.missing_fields == []


def test_assess_prediction_quality_lists_first_five_missing_fields():
    quality = assess_prediction_quality(_deal(complete=False))

    assert quality.score == 22 + 10
    assert quality.grade == "Poor"
    assert quality.missing_fields == [
        "OEM vendor",
        "Price sensitivity (1-5)",
        "Deal urgency (1-5)",
        "Customer loyalty (1-5)",
        "Solution differentiation (1-5)",
    ]


def test_half_points_round_up():
    deals = [_deal(complete=False), _deal(complete=True), _deal(complete=True), _deal(complete=True, bom=True)]

    assert average_completeness(deals) == 79
    assert assess_prediction_quality(_deal(complete=False), confidence=0.5).score == 22 + 13

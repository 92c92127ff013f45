import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dealscope.core.ml.trainer import TrainerConfig
from dealscope.database.supabase_client import SupabaseClient
from dealscope.services.scoring_service import DealScoringService
from dealscope.services.training_service import TrainingService
from tests.test_supabase_client import _deal_row, _seeded_fake

HEURISTIC_RECOMMENDATION = {
    "suggested_margin_pct": 18.0,
    "win_probability": 0.62,
    "confidence": 0.4,
    "drivers": [
        {"name": "SMB base", "val": 0.03},
        {"name": "No registration benefit", "val": -0.02},
        {"name": "Services attached", "val": 0.01},
    ],
}


def _services(fake):
    db = SupabaseClient(client=fake)
    training = TrainingService(db, trainer_config=TrainerConfig(epochs=60, seed=5))
    return DealScoringService(db, phase_service=training.phases, training_service=training), training


def test_phase1_hides_suggested_margin_and_adds_guidance():
    fake = _seeded_fake(won=0, lost=0, phase=1)
    scoring, _ = _services(fake)
    live = _deal_row(2)

    response = scoring.score_deal("org-1", live, planned_margin_pct=17.0, recommendation=HEURISTIC_RECOMMENDATION)

    assert response["phase"] == 1
    assert response["source"] == "heuristic"
    assert response["suggested_margin_pct"] is None
    assert response["guidance"][0] == "Deal strengths: SMB segment pricing is working in your favor."
    assert response["guidance"][1] == "Watch out for: no deal registration is pulling the margin down."
    assert len(response["top_drivers"]) == 3
    assert 0 <= response["deal_score"] <= 100
    assert response["score_factors"]["margin_alignment"]["score"] == 36


def test_phase2_without_model_falls_back_to_heuristics():
    fake = _seeded_fake(won=0, lost=0, phase=2)
    scoring, _ = _services(fake)

    response = scoring.score_deal("org-1", _deal_row(1), planned_margin_pct=18.0, recommendation=HEURISTIC_RECOMMENDATION)

    assert response["source"] == "heuristic"
    assert response["suggested_margin_pct"] == 18.0
    assert "guidance" not in response


def test_phase2_with_model_uses_model_outputs():
    fake = _seeded_fake(won=60, lost=60, phase=1)
    scoring, training = _services(fake)
    assert training.train_model("cust-1")["phase"] == 2

    response = scoring.score_deal("org-1", _deal_row(3), planned_margin_pct=15.0, recommendation=HEURISTIC_RECOMMENDATION)

    assert response["phase"] == 2
    assert response["source"] == "ml_model"
    assert 5.0 <= response["suggested_margin_pct"] <= 35.0
    assert 0.1 <= response["confidence"] <= 0.95
    assert 1 <= len(response["top_drivers"]) <= 3
    assert "guidance" not in response


def test_unknown_org_scores_as_phase1():
    fake = _seeded_fake(won=0, lost=0, phase=3)
    scoring, _ = _services(fake)

    response = scoring.score_deal("org-unknown", _deal_row(0))

    assert response["phase"] == 1
    assert response["score_factors"]["margin_alignment"]["score"] == 20
    assert response["guidance"] == []

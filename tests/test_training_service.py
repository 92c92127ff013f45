import logging
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dealscope.core.ml.trainer import TrainerConfig
from dealscope.core.models import ModelPackage
from dealscope.database.supabase_client import SupabaseClient
from dealscope.services.training_service import TrainingService
from tests.test_supabase_client import FakeSupabase, _seeded_fake


def _service(fake: FakeSupabase, epochs: int = 60) -> TrainingService:
    return TrainingService(SupabaseClient(client=fake), trainer_config=TrainerConfig(epochs=epochs, seed=7))


def test_train_model_rejects_tenant_without_org():
    fake = FakeSupabase({"licenses": [{"customer_id": "cust-1", "org_id": None, "status": "active"}]})
    result = _service(fake).train_model("cust-1")

    assert result == {"success": False, "code": "no_org", "reason": "No active licenses with org_id found"}
    assert fake.writes == []


def test_train_model_rejects_small_dataset_with_counts(caplog):
    fake = _seeded_fake(won=35, lost=35)
    with caplog.at_level(logging.WARNING):
        result = _service(fake).train_model("cust-1")

    assert result["success"] is False
    assert result["code"] == "insufficient_deals"
    assert result["reason"] == "Need 30 more deals (35 won, 35 lost currently)"
    assert (result["deal_count"], result["won_count"], result["lost_count"]) == (70, 35, 35)
    assert fake.writes == []
    assert "Training refused" in caplog.text


def test_train_model_rejects_too_few_won():
    fake = _seeded_fake(won=15, lost=90)
    result = _service(fake).train_model("cust-1")

    assert result["code"] == "insufficient_won"
    assert "more won deals" in result["reason"]
    assert (result["deal_count"], result["won_count"], result["lost_count"]) == (105, 15, 90)
    assert fake.writes == []


def test_train_model_rejects_too_few_lost():
    fake = _seeded_fake(won=90, lost=15)
    result = _service(fake).train_model("cust-1")

    assert result["code"] == "insufficient_lost"
    assert (result["deal_count"], result["won_count"], result["lost_count"]) == (105, 90, 15)


def test_train_model_ignores_open_deals_when_counting():
    fake = _seeded_fake(won=50, lost=45)
    for row in fake.tables["recorded_deals"][:10]:
        row["status"] = "Open"
    result = _service(fake).train_model("cust-1")

    assert result["code"] == "insufficient_deals"
    assert result["deal_count"] == 85


def test_train_model_success_persists_package_and_promotes():
    fake = _seeded_fake(won=60, lost=60, phase=1)
    result = _service(fake).train_model("cust-1")

    assert result["success"] is True
    assert result["deal_count"] == 120
    assert result["synthetic_count"] == 120
    assert result["phase"] == 2
    assert 1 <= result["epochs_run"] <= 60
    assert len(result["top_features"]) == 10

    metrics = result["metrics"]
    assert 0.0 <= metrics["auc"] <= 1.0
    assert metrics["auc"] >= 0.6
    assert 0.0 <= metrics["accuracy"] <= 1.0
    assert metrics["logLoss"] >= 0.0
    assert metrics["n"] == 120

    weights = [item["absWeight"] for item in result["top_features"]]
    assert weights == sorted(weights, reverse=True)
    assert {"name", "weight", "absWeight", "direction"} <= set(result["top_features"][0])

    document = fake.config_row("cust-1")["ml_model"]
    assert set(document) == {
        "model", "normStats", "featureNames", "metrics", "importance", "dealCount", "trainedAt", "version",
    }
    assert document["version"] == 2
    assert document["dealCount"] == 120
    assert len(document["featureNames"]) == len(document["model"]["weights"])
    assert len(document["importance"]) == len(document["featureNames"])

    tables_written = [table for table, _ in fake.writes]
    assert tables_written == ["customer_config", "customer_config"]
    assert "ml_model" in fake.writes[0][1]
    assert fake.writes[1][1] == {"customer_id": "cust-1", "algorithm_phase": 2}


def test_train_model_never_lowers_an_existing_phase():
    fake = _seeded_fake(won=60, lost=60, phase=3)
    result = _service(fake).train_model("cust-1")

    assert result["success"] is True
    assert result["phase"] == 3
    assert [payload for _, payload in fake.writes if "algorithm_phase" in payload] == []


def test_train_model_skips_promotion_below_auc_threshold(monkeypatch):
    monkeypatch.setattr("dealscope.config.PROMOTION_MIN_AUC", 1.01)
    fake = _seeded_fake(won=60, lost=60)
    result = _service(fake).train_model("cust-1")

    assert result["success"] is True
    assert result["phase"] == 1
    assert fake.config_row("cust-1")["ml_model"] is not None
    assert fake.config_row("cust-1").get("algorithm_phase") is None


def test_failed_run_leaves_package_and_phase_untouched(monkeypatch):
    fake = _seeded_fake(won=60, lost=60, phase=1)

    def boom(self, deals):
        raise RuntimeError("fit diverged")

    monkeypatch.setattr("dealscope.core.ml.trainer.ModelTrainer.train", boom)

    with pytest.raises(RuntimeError, match="fit diverged"):
        _service(fake).train_model("cust-1")

    assert fake.writes == []
    assert fake.config_row("cust-1") == {"customer_id": "cust-1", "algorithm_phase": 1, "ml_model": None}


def test_failed_package_write_skips_promotion():
    fake = _seeded_fake(won=60, lost=60, phase=1)
    service = _service(fake)
    fake.fail_tables.add("customer_config")

    with pytest.raises(RuntimeError):
        service.train_model("cust-1")

    fake.fail_tables.clear()
    assert service.phases.get_phase("cust-1") == 1


def test_get_model_and_get_model_by_org_id():
    fake = _seeded_fake(won=60, lost=60)
    service = _service(fake)

    assert service.get_model("cust-1") is None
    assert service.get_model(None) is None
    assert service.get_model_by_org_id("") is None

    service.train_model("cust-1")
    package = service.get_model("cust-1")

    assert isinstance(package, ModelPackage)
    assert package.deal_count == 120
    assert service.get_model_by_org_id("org-1").feature_names == package.feature_names
    assert service.get_model_by_org_id("org-unknown") is None


def test_get_model_raises_on_malformed_document():
    fake = FakeSupabase({"customer_config": [{"customer_id": "cust-1", "ml_model": {"model": {}}}]})

    with pytest.raises(ValidationError):
        _service(fake).get_model("cust-1")


def test_same_tenant_shares_a_lock():
    service = _service(FakeSupabase())

    assert service._tenant_lock("cust-1") is service._tenant_lock("cust-1")
    assert service._tenant_lock("cust-1") is not service._tenant_lock("cust-2")


def test_train_model_on_150_deals_promotes_to_phase_2():
    fake = _seeded_fake(won=80, lost=70, phase=1)
    result = _service(fake).train_model("cust-1")

    assert result["success"] is True
    assert result["deal_count"] == 150
    assert result["synthetic_count"] == 150
    assert result["metrics"]["n"] == 150
    assert result["metrics"]["auc"] >= 0.6
    assert result["phase"] == 2
    assert fake.config_row("cust-1")["ml_model"]["dealCount"] == 150


def test_train_model_tolerates_a_malformed_row(caplog):
    fake = _seeded_fake(won=80, lost=70)
    bad = fake.tables["recorded_deals"][0]
    bad.update({"customer_loyalty": 0, "quarter_end": "sometimes", "oem_cost": "-5"})

    with caplog.at_level(logging.WARNING):
        result = _service(fake).train_model("cust-1")

    assert result["success"] is True
    assert result["deal_count"] == 150
    assert "customer_loyalty" in caplog.text

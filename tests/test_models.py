import logging
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dealscope.core.models import ModelPackage, RecordedDeal


def _package_doc(**overrides):
    doc = {
        "model": {"weights": [0.2, -0.1], "bias": 0.0},
        "normStats": {"means": {"a": 0.0, "b": 0.0}, "scales": {"a": 1.0, "b": 1.0}},
        "featureNames": ["a", "b"],
        "metrics": {"auc": 0.72, "logLoss": 0.6, "accuracy": 0.7, "n": 120},
        "importance": [],
        "dealCount": 120,
        "trainedAt": "2026-01-01T00:00:00+00:00",
        "version": 2,
    }
    doc.update(overrides)
    return doc


def test_recorded_deal_coerces_postgrest_values():
    deal = RecordedDeal.model_validate(
        {
            "org_id": "org-1",
            "segment": "  SMB ",
            "industry": "",
            "oem_cost": "$12,500.50",
            "achieved_margin": "0.1850",
            "customer_price_sensitivity": "4",
            "bom_line_count": "7",
            "is_new_logo": "TRUE",
            "services_attached": "no",
            "quarter_end": 1,
            "competitors": 5,
            "competitor_names": "Globex, , Initech",
            "status": "Won",
            "unexpected_column": "ignored",
        }
    )

    assert deal.segment == "SMB"
    assert deal.industry is None
    assert deal.oem_cost == pytest.approx(12500.50)
    assert deal.achieved_margin == pytest.approx(0.185)
    assert deal.customer_price_sensitivity == 4
    assert deal.is_new_logo is True
    assert deal.services_attached is False
    assert deal.quarter_end is True
    assert deal.competitors == "3+"
    assert deal.competitor_names == ["Globex", "Initech"]
    assert deal.is_won and deal.is_closed and deal.has_bom


@pytest.mark.parametrize(
    "field, value",
    [
        ("customer_loyalty", 0),
        ("customer_loyalty", 9),
        ("deal_urgency", "7"),
        ("customer_price_sensitivity", "high"),
        ("oem_cost", "-250"),
        ("oem_cost", "n/a"),
        ("bom_line_count", -3),
        ("achieved_margin", "abc"),
    ],
)
def test_recorded_deal_drops_untrusted_numbers(field, value, caplog):
    with caplog.at_level(logging.WARNING):
        deal = RecordedDeal.model_validate({"status": "Won", field: value})

    assert getattr(deal, field) is None
    assert deal.is_won
    assert field in caplog.text


def test_recorded_deal_drops_unrecognised_flag(caplog):
    with caplog.at_level(logging.WARNING):
        deal = RecordedDeal.model_validate({"quarter_end": "sometimes", "services_attached": "yes"})

    assert deal.quarter_end is None
    assert deal.services_attached is True
    assert "quarter_end" in caplog.text


def test_recorded_deal_keeps_scale_bounds():
    deal = RecordedDeal.model_validate({"customer_loyalty": 1, "deal_urgency": "5", "bom_line_count": 0})

    assert deal.customer_loyalty == 1
    assert deal.deal_urgency == 5
    assert deal.bom_line_count == 0


def test_open_deal_is_not_closed():
    deal = RecordedDeal(status="Open")

    assert not deal.is_closed
    assert not deal.is_won
    assert not deal.has_bom


def test_model_package_round_trips_stored_keys():
    package = ModelPackage.model_validate(_package_doc())

    assert package.feature_names == ["a", "b"]
    assert package.deal_count == 120
    assert package.auc == pytest.approx(0.72)
    assert package.to_document() == _package_doc()


def test_model_package_rejects_misaligned_weights():
    with pytest.raises(ValidationError, match="featureNames length"):
        ModelPackage.model_validate(_package_doc(featureNames=["a", "b", "c"]))


def test_model_package_requires_bias():
    with pytest.raises(ValidationError):
        ModelPackage.model_validate(_package_doc(model={"weights": [0.1, 0.2]}))

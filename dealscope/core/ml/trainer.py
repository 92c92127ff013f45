"""
Per-tenant win/loss model training pipeline.

This module provides the compute half of a training run:
- Feature encoding over categories observed at fit time
- One-to-one synthetic augmentation of the recorded deals
- Normalization statistics over the augmented set
- Logistic regression fitting with early stopping
- Evaluation on the real deals and feature-importance ranking
- Assembly of the versioned model package

Fetching deals, persisting the package and phase promotion live in
``TrainingService``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ... import config
from ..errors import ModelPackageError
from ..models import ModelPackage, RecordedDeal
from .augmentation import SyntheticDealGenerator
from .features import FeatureEncoder, apply_norm_stats, compute_norm_stats, deals_to_frame
from .logistic import LogisticModel
from .metrics import evaluate_classifier

logger = logging.getLogger(__name__)


@dataclass
class TrainerConfig:
    """Configuration for the training pipeline."""

    epochs: int = config.TRAINING_EPOCHS
    learning_rate: float = config.TRAINING_LEARNING_RATE
    l2: float = config.TRAINING_L2
    batch_size: int = config.TRAINING_BATCH_SIZE
    validation_split: float = config.TRAINING_VALIDATION_SPLIT
    early_stopping_patience: int = config.TRAINING_EARLY_STOPPING_PATIENCE
    seed: Optional[int] = config.TRAINING_RANDOM_SEED
    top_features: int = config.TOP_FEATURE_COUNT
    schema_version: int = config.MODEL_SCHEMA_VERSION


@dataclass
class TrainingOutcome:
    """Results of one fitted training run, before persistence."""

    package: ModelPackage
    metrics: Dict[str, Any]
    top_features: List[Dict[str, Any]]
    deal_count: int
    synthetic_count: int
    epochs_run: int
    config: Dict[str, Any] = field(default_factory=dict)


def rank_features(weights: Sequence[float], feature_names: Sequence[str]) -> List[Dict[str, Any]]:
    """All features sorted by |weight| descending."""
    if len(weights) != len(feature_names):
        raise ModelPackageError(
            f"featureNames length ({len(feature_names)}) != model weights length ({len(weights)})"
        )
    ranked = [
        {
            "name": name,
            "weight": float(weight),
            "absWeight": float(abs(weight)),
            "direction": "positive" if weight >= 0 else "negative",
        }
        for name, weight in zip(feature_names, weights)
    ]
    ranked.sort(key=lambda item: item["absWeight"], reverse=True)
    return ranked


class ModelTrainer:
    """Fits a tenant-specific logistic classifier on recorded Won/Lost deals."""

    def __init__(self, trainer_config: Optional[TrainerConfig] = None):
        self.config = trainer_config or TrainerConfig()

    def train(self, deals: Sequence[RecordedDeal]) -> TrainingOutcome:
        real = [deal for deal in deals if deal.is_closed]
        if not real:
            raise ValueError("No closed deals available for training.")
        labels = np.array([1 if deal.is_won else 0 for deal in real], dtype=float)
        if np.unique(labels).size < 2:
            raise ValueError("Training requires both Won and Lost deals.")

        # 1-2. Augment one-to-one, then encode real + synthetic together
        synthetic = SyntheticDealGenerator(seed=self.config.seed).generate(real)
        encoder = FeatureEncoder()
        combined = encoder.fit_transform(deals_to_frame([*real, *synthetic]))
        y = np.concatenate([labels, labels])

        # 3. Normalization over the augmented set
        norm_stats = compute_norm_stats(combined)
        X = apply_norm_stats(combined, norm_stats)

        # 4. Fit
        # Each synthetic copy shares its original's group so the validation
        # split never sees a deal whose twin it trained on
        groups = np.concatenate([np.arange(len(real)), np.arange(len(real))])
        model = LogisticModel(
            learning_rate=self.config.learning_rate,
            l2=self.config.l2,
            epochs=self.config.epochs,
            batch_size=self.config.batch_size,
            validation_split=self.config.validation_split,
            patience=self.config.early_stopping_patience,
            seed=self.config.seed,
        ).fit(X, y, groups=groups)

        # 5. Evaluate on the real deals only
        X_real = X[: len(real)]
        metrics = evaluate_classifier(labels, model.predict_proba(X_real))
        logger.info(
            "Training evaluation | n=%s | auc %.3f | log-loss %.3f | accuracy %.3f",
            metrics["n"],
            metrics["auc"],
            metrics["logLoss"],
            metrics["accuracy"],
        )

        # 6. Explainability
        importance = rank_features(model.weights, encoder.feature_names)

        package = ModelPackage(
            model=model.to_dict(),
            norm_stats=norm_stats,
            feature_names=encoder.feature_names,
            metrics=metrics,
            importance=importance,
            deal_count=len(real),
            trained_at=datetime.now(timezone.utc).isoformat(),
            version=self.config.schema_version,
        )

        return TrainingOutcome(
            package=package,
            metrics=metrics,
            top_features=importance[: self.config.top_features],
            deal_count=len(real),
            synthetic_count=len(synthetic),
            epochs_run=model.epochs_run,
            config=asdict(self.config),
        )


def encode_for_model(
    package: ModelPackage,
    deals: Sequence[Any],
    *,
    proposed_margin: Optional[float] = None,
) -> np.ndarray:
    """Rebuild normalized feature vectors for out-of-sample deals."""
    frame: pd.DataFrame = deals_to_frame(deals)
    encoder = FeatureEncoder(package.feature_names)
    matrix = encoder.transform(frame, proposed_margin=proposed_margin)
    return apply_norm_stats(matrix, package.norm_stats)

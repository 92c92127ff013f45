"""
Machine Learning Core Modules for per-tenant win/loss models.

Available modules:
- features: Deal feature encoding and normalization statistics
- augmentation: Label-preserving synthetic deal generation
- logistic: Logistic regression fitted by mini-batch gradient descent
- metrics: AUC, log-loss, accuracy and calibration helpers
- trainer: Training pipeline producing versioned model packages
- inference: Win probability, confidence and margin recommendations
"""

from .features import FeatureEncoder, CATEGORICAL_FEATURES, BINARY_FEATURES, NUMERIC_DEFAULTS
from .augmentation import SyntheticDealGenerator
from .logistic import LogisticModel
from .metrics import evaluate_classifier
from .trainer import ModelTrainer, TrainerConfig, TrainingOutcome, rank_features
from .inference import (
    compute_confidence,
    model_drivers,
    predict_win_probability,
    recommend_margin,
)

__all__ = [
    # Features
    "FeatureEncoder",
    "CATEGORICAL_FEATURES",
    "BINARY_FEATURES",
    "NUMERIC_DEFAULTS",
    "SyntheticDealGenerator",
    # Model
    "LogisticModel",
    "evaluate_classifier",
    # Training
    "ModelTrainer",
    "TrainerConfig",
    "TrainingOutcome",
    "rank_features",
    # Inference
    "compute_confidence",
    "model_drivers",
    "predict_win_probability",
    "recommend_margin",
]

from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
from sklearn.metrics import accuracy_score, log_loss, roc_auc_score


def compute_auc(y_true: np.ndarray, y_score: np.ndarray) -> float:
    """ROC AUC; 0.5 when only one class is present."""
    y_true = np.asarray(y_true)
    if y_true.size == 0 or np.unique(y_true).size < 2:
        return 0.5
    return float(roc_auc_score(y_true, y_score))


def calibration_table(y_true: np.ndarray, y_score: np.ndarray, n_bins: int = 10) -> List[Dict[str, Any]]:
    """Equal-width probability bins; the last bin includes 1.0. Empty bins are skipped."""
    y_true = np.asarray(y_true, dtype=float)
    y_score = np.asarray(y_score, dtype=float)
    bins: List[Dict[str, Any]] = []
    edges = np.linspace(0.0, 1.0, n_bins + 1)
    for idx in range(n_bins):
        lo, hi = edges[idx], edges[idx + 1]
        if idx < n_bins - 1:
            mask = (y_score >= lo) & (y_score < hi)
        else:
            mask = (y_score >= lo) & (y_score <= hi)
        count = int(mask.sum())
        if count == 0:
            continue
        bins.append(
            {
                "bucket": f"{lo:.1f}-{hi:.1f}",
                "predicted": float(y_score[mask].mean()),
                "actual": float(y_true[mask].mean()),
                "count": count,
            }
        )
    return bins


def evaluate_classifier(y_true: np.ndarray, y_score: np.ndarray, threshold: float = 0.5) -> Dict[str, Any]:
    """AUC, log-loss, accuracy at ``threshold``, calibration bins and sample size."""
    y_true = np.asarray(y_true, dtype=int)
    y_score = np.clip(np.asarray(y_score, dtype=float), 0.0, 1.0)
    n = int(y_true.size)
    if n == 0:
        return {"auc": 0.5, "logLoss": 0.0, "accuracy": 0.0, "calibration": [], "n": 0}
    predicted = (y_score >= threshold).astype(int)
    return {
        "auc": compute_auc(y_true, y_score),
        "logLoss": float(log_loss(y_true, np.clip(y_score, 1e-15, 1 - 1e-15), labels=[0, 1])),
        "accuracy": float(accuracy_score(y_true, predicted)),
        "calibration": calibration_table(y_true, y_score),
        "n": n,
    }

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

_EPS = 1e-15


def sigmoid(z: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-np.clip(z, -500.0, 500.0)))


def mean_log_loss(y: np.ndarray, p: np.ndarray) -> float:
    p = np.clip(p, _EPS, 1.0 - _EPS)
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


def validation_split_indices(
    groups: np.ndarray,
    validation_split: float,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split row indices into (train, validation) by whole groups.

    Rows sharing a group id (a real deal and its synthetic copy) always land
    on the same side. At least one group is held out; with a single group
    both sides use every row.
    """
    groups = np.asarray(groups)
    unique = rng.permutation(np.unique(groups))
    val_count = max(1, int(unique.size * validation_split))
    val_mask = np.isin(groups, unique[unique.size - val_count:])
    rows = np.arange(groups.shape[0])
    train_idx, val_idx = rows[~val_mask], rows[val_mask]
    if train_idx.size == 0:
        train_idx = val_idx
    return train_idx, val_idx


class LogisticModel:
    """
    Binary logistic regression fitted with mini-batch gradient descent and L2.

    A slice of the rows (whole groups when ``groups`` is given) is held out
    for early stopping; when validation loss stops improving for ``patience``
    epochs the best weights are restored.
    """

    def __init__(
        self,
        *,
        learning_rate: float = 0.05,
        l2: float = 0.01,
        epochs: int = 500,
        batch_size: int = 32,
        validation_split: float = 0.2,
        patience: int = 20,
        seed: Optional[int] = None,
    ) -> None:
        self.learning_rate = learning_rate
        self.l2 = l2
        self.epochs = max(1, int(epochs))
        self.batch_size = max(1, int(batch_size))
        self.validation_split = validation_split
        self.patience = max(1, int(patience))
        self.seed = seed
        self.weights: Optional[np.ndarray] = None
        self.bias: float = 0.0
        self.epochs_run = 0
        self.train_loss: Optional[float] = None
        self.val_loss: Optional[float] = None
        self.trained_at: Optional[str] = None

    @property
    def is_fitted(self) -> bool:
        return self.weights is not None

    @property
    def feature_count(self) -> int:
        return 0 if self.weights is None else int(self.weights.shape[0])

    # ------------------------------------------------------------------ #
    # Training
    # ------------------------------------------------------------------ #
    def fit(self, X: np.ndarray, y: np.ndarray, groups: Optional[np.ndarray] = None) -> "LogisticModel":
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] == 0:
            raise ValueError("X must be a non-empty 2-D matrix")
        if X.shape[0] != y.shape[0]:
            raise ValueError(f"X rows ({X.shape[0]}) != y length ({y.shape[0]})")
        if not np.isin(y, (0.0, 1.0)).all():
            raise ValueError("y must contain only 0/1 labels")

        if groups is None:
            groups = np.arange(X.shape[0])
        elif len(groups) != X.shape[0]:
            raise ValueError(f"groups length ({len(groups)}) != X rows ({X.shape[0]})")

        rng = np.random.default_rng(self.seed)
        train_idx, val_idx = validation_split_indices(groups, self.validation_split, rng)

        weights = np.zeros(X.shape[1])
        bias = 0.0
        best_weights, best_bias = weights.copy(), bias
        best_val = np.inf
        stale = 0

        for epoch in range(self.epochs):
            self.epochs_run = epoch + 1
            shuffled = rng.permutation(train_idx)
            for start in range(0, shuffled.size, self.batch_size):
                batch = shuffled[start:start + self.batch_size]
                xb, yb = X[batch], y[batch]
                err = sigmoid(xb @ weights + bias) - yb
                grad_w = xb.T @ err / batch.size + self.l2 * weights
                grad_b = float(err.mean())
                weights -= self.learning_rate * grad_w
                bias -= self.learning_rate * grad_b

            val_loss = mean_log_loss(y[val_idx], sigmoid(X[val_idx] @ weights + bias))
            if val_loss < best_val:
                best_val = val_loss
                best_weights, best_bias = weights.copy(), bias
                stale = 0
            else:
                stale += 1
                if stale >= self.patience:
                    logger.debug("Early stopping after %s epochs (best val loss %.4f)", self.epochs_run, best_val)
                    break

        self.weights = best_weights
        self.bias = float(best_bias)
        self.train_loss = mean_log_loss(y[train_idx], self.predict_proba(X[train_idx]))
        self.val_loss = mean_log_loss(y[val_idx], self.predict_proba(X[val_idx]))
        self.trained_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Logistic model fitted | %s rows | %s features | %s epochs | val loss %.4f",
            X.shape[0],
            X.shape[1],
            self.epochs_run,
            self.val_loss,
        )
        return self

    # ------------------------------------------------------------------ #
    # Prediction
    # ------------------------------------------------------------------ #
    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        if self.weights is None:
            raise RuntimeError("Model must be fitted before predicting.")
        X = np.atleast_2d(np.asarray(X, dtype=float))
        if X.shape[1] != self.weights.shape[0]:
            raise ValueError(f"Feature length mismatch: expected {self.weights.shape[0]}, got {X.shape[1]}")
        return sigmoid(X @ self.weights + self.bias)

    # ------------------------------------------------------------------ #
    # Serialization helpers
    # ------------------------------------------------------------------ #
    def to_dict(self) -> Dict[str, Any]:
        if self.weights is None:
            raise RuntimeError("Cannot serialize logistic model before fitting.")
        return {
            "weights": [float(w) for w in self.weights],
            "bias": self.bias,
            "featureCount": self.feature_count,
            "epochsRun": self.epochs_run,
            "trainLoss": self.train_loss,
            "valLoss": self.val_loss,
            "trainedAt": self.trained_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "LogisticModel":
        for key in ("weights", "bias"):
            if key not in payload:
                raise ValueError(f"Missing required field: {key}")
        model = cls()
        model.weights = np.asarray(payload["weights"], dtype=float)
        model.bias = float(payload["bias"])
        model.epochs_run = int(payload.get("epochsRun") or 0)
        model.train_loss = payload.get("trainLoss")
        model.val_loss = payload.get("valLoss")
        model.trained_at = payload.get("trainedAt")
        return model

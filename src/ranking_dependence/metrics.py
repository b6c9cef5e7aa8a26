import numpy as np


def ndcg_at_k(relevant: np.ndarray, retrieved: np.ndarray, k: int) -> float:
    """
    Computes binary-relevance NDCG at rank K.

    Args:
        relevant: 1D array of relevant document indices.
        retrieved: 1D array of ranked document indices.
        k: Top-k cutoff.

    Returns:
        NDCG at rank k (0.0 when there is nothing relevant).
    """
    if k <= 0 or relevant.size == 0:
        return 0.0
    discounts = 1.0 / np.log2(np.arange(2, k + 2))
    gains = np.isin(retrieved[:k], relevant).astype(float)
    dcg = float(np.sum(gains * discounts[: gains.size]))
    idcg = float(np.sum(discounts[: min(relevant.size, k)]))
    return dcg / idcg


def reciprocal_rank(relevant: np.ndarray, retrieved: np.ndarray) -> float:
    """
    Computes Reciprocal Rank (RR) for a single query.

    Returns 0.0 if no relevant document is retrieved.
    """
    hits = np.flatnonzero(np.isin(retrieved, relevant))
    return 1.0 / (hits[0] + 1) if hits.size else 0.0


def mean_of(values: list[float]) -> float:
    return float(np.mean(values)) if values else 0.0

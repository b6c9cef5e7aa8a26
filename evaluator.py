"""
Evaluate term dependence re-scoring on BRIGHT.

Ranks every query with BM25, re-scores the top candidates with a dependence
score modifier, and reports NDCG@k and MRR for both rankings.

Settings default to environment variables:
    BRIGHT_DOMAIN=biology            # BRIGHT split
    BRIGHT_SAMPLE_QUERIES=20         # Sample N queries (0 = all)
    BRIGHT_SEED=42
    BRIGHT_K=10                      # Cutoff for @k metrics
    BRIGHT_CANDIDATES=100            # BM25 candidates passed to the modifier
    PROXIMITY_*                      # see ranking_dependence.config

Run with:
    uv run python evaluator.py --dependency SD --function pbil
"""

import argparse
import json
import logging
import os
import random
from functools import cache

import numpy as np
from tqdm import tqdm

from datasets import load_dataset
from ranking_dependence.bm25 import BM25
from ranking_dependence.config import DependenceConfig, DependencyMode
from ranking_dependence.index import PositionalIndex, tokenize
from ranking_dependence.metrics import mean_of, ndcg_at_k, reciprocal_rank
from ranking_dependence.modifier import DependenceScoreModifier
from ranking_dependence.scoring import (
    BinomialRandomness,
    DirichletMRF,
    NormalisedBinomialRandomness,
    NormalisedCount,
)
from ranking_dependence.terms import MatchingQueryTerms

DEFAULT_DOMAIN = os.environ.get("BRIGHT_DOMAIN", "biology")
DEFAULT_SAMPLE_QUERIES = int(os.environ.get("BRIGHT_SAMPLE_QUERIES", "0")) or None
DEFAULT_SEED = int(os.environ.get("BRIGHT_SEED", "42"))
DEFAULT_K = int(os.environ.get("BRIGHT_K", "10"))
DEFAULT_CANDIDATES = int(os.environ.get("BRIGHT_CANDIDATES", "100"))

SCORING_FUNCTIONS = {
    "count": NormalisedCount,
    "pbil": BinomialRandomness,
    "pbil2": NormalisedBinomialRandomness,
    "mrf": DirichletMRF,
}


@cache
def _bright_raw(domain: str):
    """Load raw BRIGHT documents and examples for a given domain."""
    documents = load_dataset("xlangai/BRIGHT", "documents", split=domain)
    examples = load_dataset("xlangai/BRIGHT", "examples", split=domain)
    return documents, examples


def evaluate_with_options(
    domain: str = DEFAULT_DOMAIN,
    k: int = DEFAULT_K,
    candidates: int = DEFAULT_CANDIDATES,
    sample_queries: int | None = DEFAULT_SAMPLE_QUERIES,
    seed: int = DEFAULT_SEED,
    function: str = "pbil",
    config: DependenceConfig | None = None,
) -> dict[str, float]:
    """
    Compare BM25 with BM25 plus dependence re-scoring on one BRIGHT split.

    Args:
        domain: BRIGHT split name.
        k: Cutoff for @k metrics.
        candidates: Number of BM25 results re-scored per query.
        sample_queries: If set, randomly sample this many queries.
        seed: Seed for reproducible sampling.
        function: Key of SCORING_FUNCTIONS.
        config: Proximity settings; read from the environment when None.

    Returns:
        Dictionary with metrics for both runs.
    """
    config = config or DependenceConfig.from_env()
    if config.dependency is DependencyMode.UNSET:
        raise ValueError("Set PROXIMITY_DEPENDENCY_TYPE or pass --dependency SD/FD")

    print(f"Loading {domain} dataset...")
    documents, examples = _bright_raw(domain)
    index = PositionalIndex.from_huggingface_dataset(documents)
    print(f"Index built: {index.vocabulary_size:,} terms, {len(index):,} docs")

    raw_queries = [example["query"] for example in examples]
    gold_id_lists = [example["gold_ids"] for example in examples]
    if sample_queries is not None and sample_queries < len(raw_queries):
        rng = random.Random(seed)
        indices = rng.sample(range(len(raw_queries)), sample_queries)
        raw_queries = [raw_queries[i] for i in indices]
        gold_id_lists = [gold_id_lists[i] for i in indices]

    bm25 = BM25(index)
    modifier = DependenceScoreModifier(SCORING_FUNCTIONS[function](), config=config)

    baseline_ndcg, baseline_rr, dependence_ndcg, dependence_rr = [], [], [], []
    modified = 0
    for raw_query, gold_ids in tqdm(
        zip(raw_queries, gold_id_lists), total=len(raw_queries), desc=f"Evaluating {domain}", unit="query"
    ):
        query_tokens = tokenize(raw_query)
        relevant = np.array(index.id_to_idx(gold_ids), dtype=int)

        result_set = bm25.retrieve(query_tokens, top_k=candidates)
        baseline = result_set.docids.copy()
        baseline_ndcg.append(ndcg_at_k(relevant, baseline, k))
        baseline_rr.append(reciprocal_rank(relevant, baseline))

        if modifier.modify_scores(index, MatchingQueryTerms.from_tokens(query_tokens), result_set):
            modified += 1
        result_set.sort_by_score()
        dependence_ndcg.append(ndcg_at_k(relevant, result_set.docids, k))
        dependence_rr.append(reciprocal_rank(relevant, result_set.docids))

    return {
        "bm25_ndcg_at_k": mean_of(baseline_ndcg),
        "bm25_mrr": mean_of(baseline_rr),
        "dependence_ndcg_at_k": mean_of(dependence_ndcg),
        "dependence_mrr": mean_of(dependence_rr),
        "queries": len(raw_queries),
        "queries_modified": modified,
        "documents": len(index),
        "k": k,
        "dependency": config.dependency.value,
        "function": function,
    }


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Evaluate term dependence re-scoring on BRIGHT.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sequential dependence with pBiL on biology
  python evaluator.py --dependency SD --function pbil

  # Full dependence with MRF on a query sample
  python evaluator.py --dependency FD --function mrf --sample-queries 20
""",
    )
    parser.add_argument("--domain", type=str, default=DEFAULT_DOMAIN, help="BRIGHT split (default: biology).")
    parser.add_argument("--k", type=int, default=DEFAULT_K, help="Cutoff for @k metrics (default: 10).")
    parser.add_argument(
        "--candidates",
        type=int,
        default=DEFAULT_CANDIDATES,
        help="BM25 candidates re-scored per query (default: 100).",
    )
    parser.add_argument(
        "--sample-queries",
        type=int,
        default=0,
        help="Randomly sample this many queries (default: 0 = use all).",
    )
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for query sampling.")
    parser.add_argument(
        "--function",
        type=str,
        choices=sorted(SCORING_FUNCTIONS),
        default="pbil",
        help="Dependence scoring function (default: pbil).",
    )
    parser.add_argument(
        "--dependency",
        type=str,
        choices=["SD", "FD"],
        default=None,
        help="Dependence model; overrides PROXIMITY_DEPENDENCY_TYPE.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log modifier progress.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    env = dict(os.environ)
    if args.dependency:
        env["PROXIMITY_DEPENDENCY_TYPE"] = args.dependency

    results = evaluate_with_options(
        domain=args.domain,
        k=args.k,
        candidates=args.candidates,
        sample_queries=args.sample_queries if args.sample_queries > 0 else None,
        seed=args.seed,
        function=args.function,
        config=DependenceConfig.from_env(env),
    )
    print(json.dumps(results, indent=2))


if __name__ == "__main__":
    main()

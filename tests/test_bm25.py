import numpy as np
import pytest

from ranking_dependence.bm25 import BM25
from ranking_dependence.index import PositionalIndex


@pytest.mark.parametrize(
    "documents, query, expected_ranking",
    [
        (
            [
                "information retrieval is the activity of obtaining information system resources".split(),
                "BM25 ranks documents based on their relevance to a query".split(),
                "Python is widely used for text processing and ranking algorithms".split(),
            ],
            "information retrieval system".split(),
            [0, 1, 2],
        ),
    ],
)
def test_bm25(documents, query, expected_ranking):
    bm25 = BM25(PositionalIndex(documents))

    ranked_indices, _ = bm25.rank(query)
    assert np.array_equal(ranked_indices, expected_ranking), (
        f"Expected ranking {expected_ranking}, got {ranked_indices}"
    )


def test_bm25_ordering_regression() -> None:
    """
    Documents with repeated query terms should score higher than those with
    fewer matches; non-matching documents rank last.
    """
    documents = [
        "foo foo foo bar".split(),
        "foo bar baz".split(),
        "baz qux".split(),
    ]
    bm25 = BM25(PositionalIndex(documents), k1=1.5, b=0.75)

    ranked_indices, scores = bm25.rank(["foo", "bar"])

    assert list(ranked_indices) == [0, 1, 2]
    assert scores[0] > scores[1] > scores[2]
    assert scores[0] - scores[1] > 0.05
    assert np.isclose(scores[2], 0.0)


def test_retrieve_returns_matching_documents_only():
    documents = [
        "foo foo foo bar".split(),
        "baz qux".split(),
        "foo bar baz".split(),
    ]
    bm25 = BM25(PositionalIndex(documents))

    result_set = bm25.retrieve(["foo", "bar"])

    assert result_set.docids.tolist() == [0, 2]
    assert result_set.scores[0] > result_set.scores[1] > 0.0
    assert result_set.occurrences.tolist() == [2, 2]

    top = bm25.retrieve(["foo", "bar"], top_k=1)
    assert top.docids.tolist() == [0]


def test_unknown_terms_score_zero():
    bm25 = BM25(PositionalIndex([["a", "b"]]))
    assert bm25.idf("zzz") == 0.0
    assert len(bm25.retrieve(["zzz"])) == 0

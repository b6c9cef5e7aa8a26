import numpy as np
import pytest

from ranking_dependence.errors import MissingPositionDataError
from ranking_dependence.index import CollectionStatistics, PositionalIndex, PostingListManager, tokenize
from ranking_dependence.postings import EOL, Posting
from ranking_dependence.terms import MatchingQueryTerms, QueryTerm


@pytest.fixture
def index():
    documents = [
        "sea level rise threatens coastal cities".split(),
        "the level of the sea".split(),
        "coastal erosion and sea walls".split(),
        "car automobile vehicle".split(),
    ]
    return PositionalIndex(documents, ids=["d0", "d1", "d2", "d3"])


def test_average_ngram_document_length():
    stats = CollectionStatistics(num_documents=100, num_tokens=1000)
    assert stats.average_ngram_document_length(2) == pytest.approx(9.0)
    assert stats.average_ngram_document_length(1) == pytest.approx(10.0)
    assert stats.average_document_length == pytest.approx(10.0)
    assert CollectionStatistics(0, 0).average_ngram_document_length(2) == 0.0


def test_collection_statistics(index):
    stats = index.collection_statistics
    assert stats.num_documents == 4
    assert stats.num_tokens == 6 + 5 + 5 + 3
    assert index.id_to_idx(["d2", "unknown", "d0"]) == [2, 0]


def test_lexicon_entry(index):
    entry = index.lexicon_entry("sea")
    assert entry.document_frequency == 3
    assert entry.collection_frequency == 3
    assert index.lexicon_entry("the").collection_frequency == 2
    assert index.lexicon_entry("ocean") is None


def test_term_frequencies(index):
    docids, tfs = index.term_frequencies("the")
    assert docids.tolist() == [1]
    assert tfs.tolist() == [2]
    docids, tfs = index.term_frequencies("ocean")
    assert docids.size == 0 and tfs.size == 0


def test_stream_walks_postings_forward(index):
    stream = index.postings("sea")
    assert stream.docid == -1
    assert stream.next() == 0
    assert stream.positions.tolist() == [0]
    assert stream.doc_length == 6
    assert stream.next() == 1
    assert stream.positions.tolist() == [4]
    assert stream.posting().doc_length == 5
    assert stream.next() == 2
    assert stream.next() == EOL
    assert stream.next() == EOL
    with pytest.raises(ValueError):
        stream.positions


def test_closed_stream_cannot_advance(index):
    stream = index.postings("level")
    stream.close()
    assert stream.closed
    with pytest.raises(ValueError):
        stream.next()


def test_unknown_term_has_no_stream(index):
    assert index.postings("ocean") is None


def test_index_without_positions():
    index = PositionalIndex([["a", "b"], ["b", "a"]], positions=False)
    stream = index.postings("a")
    assert stream.next() == 0
    assert stream.doc_length == 2
    with pytest.raises(MissingPositionDataError, match="'a'"):
        stream.positions


def test_synonym_postings_merge_documents_and_positions(index):
    stream = index.synonym_postings(["walls", "coastal", "ocean"], name="#syn(coastal walls ocean)")
    assert stream.term == "#syn(coastal walls ocean)"
    assert stream.next() == 0
    assert stream.positions.tolist() == [4]
    assert stream.next() == 2
    assert stream.positions.tolist() == [0, 4]
    assert stream.next() == EOL
    assert index.synonym_postings(["ocean", "lake"]) is None


def test_from_texts_tokenizes():
    index = PositionalIndex.from_texts(["Sea-level RISE", "rise"])
    assert tokenize("Sea-level RISE") == ["sea", "level", "rise"]
    assert index.lexicon_entry("rise").document_frequency == 2


def test_posting_of():
    posting = Posting.of(3, [1, 4], 9)
    assert posting.positions.dtype == np.int64
    assert posting.positions.tolist() == [1, 4]


class TestPostingListManager:
    def test_drops_terms_missing_from_lexicon(self, index):
        terms = MatchingQueryTerms([QueryTerm("sea", 2.0), QueryTerm("ocean"), QueryTerm("level")])
        with PostingListManager(index, terms) as plm:
            assert plm.terms == ["sea", "level"]
            assert plm.weights == [2.0, 1.0]
            assert len(plm) == 2
            streams = list(plm.streams)
        assert all(stream.closed for stream in streams)

    def test_split_synonyms(self, index):
        terms = MatchingQueryTerms([QueryTerm.synonym(["car", "automobile"], 0.5), QueryTerm("vehicle")])
        with PostingListManager(index, terms, split_synonyms=True) as plm:
            assert plm.terms == ["car", "automobile", "vehicle"]
            assert plm.weights == [0.5, 0.5, 1.0]

    def test_merged_synonyms(self, index):
        terms = MatchingQueryTerms([QueryTerm.synonym(["car", "automobile"], 0.5), QueryTerm("vehicle")])
        with PostingListManager(index, terms, split_synonyms=False) as plm:
            assert plm.terms == ["#syn(car automobile)", "vehicle"]
            stream = plm.streams[0]
            assert stream.next() == 3
            assert stream.positions.tolist() == [0, 1]

    def test_split_synonym_overlapping_a_base_term_accumulates_weight(self, index):
        terms = MatchingQueryTerms([QueryTerm("car"), QueryTerm.synonym(["car", "vehicle"], 0.5)])
        with PostingListManager(index, terms) as plm:
            assert plm.terms == ["car", "vehicle"]
            assert plm.weights == [1.5, 0.5]

    def test_reopen_is_independent(self, index):
        with PostingListManager(index, MatchingQueryTerms.from_tokens(["sea", "level"])) as plm:
            plm.streams[0].next()
            plm.streams[0].next()
            fresh = plm.reopen(0)
            assert fresh.docid == -1
            assert fresh.next() == 0
            assert plm.streams[0].docid == 1
            fresh.close()

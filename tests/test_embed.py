"""Tests for pdfqa.embed — providers and the cache-aware EmbeddingService."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError

import pytest
from fakes import KeywordEmbedder, make_chunk

from pdfqa.config import PdfqaConfig
from pdfqa.embed.base import BaseEmbedder
from pdfqa.embed.chromadb_embed import ChromaDBEmbedder
from pdfqa.embed.ollama import OllamaEmbedder
from pdfqa.embed.openai_compat import OpenAICompatEmbedder
from pdfqa.embed.service import (
    DELAY_BETWEEN_CHUNKS,
    DELAY_BETWEEN_GROUPS,
    EmbeddingService,
    group_size_for,
)
from pdfqa.exceptions import EmbeddingError
from pdfqa.store.memory import InMemoryChunkStore

# --- Helpers ---


def _ollama_response(embeddings: list[list[float]]) -> bytes:
    """Build a mock Ollama /api/embed response body."""
    return json.dumps({"embeddings": embeddings}).encode("utf-8")


def _openai_response(embeddings: list[list[float]], reverse: bool = False) -> bytes:
    """Build a mock /v1/embeddings response body."""
    data = [{"object": "embedding", "index": i, "embedding": e} for i, e in enumerate(embeddings)]
    if reverse:
        data.reverse()
    return json.dumps({"object": "list", "data": data, "model": "test"}).encode("utf-8")


class _FakeResponse:
    """Minimal mock for urllib.request.urlopen return value."""

    def __init__(self, data: bytes, status: int = 200) -> None:
        self._data = data
        self.status = status

    def read(self) -> bytes:
        return self._data

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *args: object) -> None:
        pass


def _mock_ef(texts):
    """Mock ChromaDB DefaultEmbeddingFunction returning 384-dim vectors."""
    return [[0.1] * 384 for _ in texts]


def _chroma_embedder() -> ChromaDBEmbedder:
    with patch(
        "pdfqa.embed.chromadb_embed.DefaultEmbeddingFunction",
        return_value=MagicMock(side_effect=_mock_ef),
    ):
        return ChromaDBEmbedder(PdfqaConfig())


# --- ChromaDBEmbedder ---


class TestChromaDBEmbedder:
    def test_is_base_embedder(self):
        assert isinstance(_chroma_embedder(), BaseEmbedder)

    def test_warns_on_unsupported_model(self, caplog):
        config = PdfqaConfig()
        config.embedding.model = "bge-large-en"
        with patch(
            "pdfqa.embed.chromadb_embed.DefaultEmbeddingFunction",
            return_value=MagicMock(side_effect=_mock_ef),
        ):
            ChromaDBEmbedder(config)
        assert "ignoring model='bge-large-en'" in caplog.text

    def test_raises_on_init_failure(self):
        with (
            patch(
                "pdfqa.embed.chromadb_embed.DefaultEmbeddingFunction",
                side_effect=RuntimeError("ONNX not available"),
            ),
            pytest.raises(EmbeddingError, match="Failed to initialize"),
        ):
            ChromaDBEmbedder(PdfqaConfig())

    def test_embed_chunks_attaches_vectors(self):
        embedder = _chroma_embedder()
        chunk = make_chunk()
        result = embedder.embed_chunks([chunk])

        assert len(result) == 1
        assert result[0].chunk_id == chunk.chunk_id
        assert len(result[0].embedding) == 384
        assert isinstance(result[0].embedding, tuple)
        assert not chunk.has_embedding

    def test_embed_chunks_empty(self):
        assert _chroma_embedder().embed_chunks([]) == []

    def test_embed_query_and_dimension(self):
        embedder = _chroma_embedder()
        assert len(embedder.embed_query("refund policy")) == 384
        assert embedder.dimension == 384

    def test_failure_wrapped(self):
        with patch(
            "pdfqa.embed.chromadb_embed.DefaultEmbeddingFunction",
            return_value=MagicMock(side_effect=RuntimeError("boom")),
        ):
            embedder = ChromaDBEmbedder(PdfqaConfig())
        with pytest.raises(EmbeddingError, match="ChromaDB embedding failed"):
            embedder.embed_texts(["x"])

    def test_count_mismatch_raises(self):
        with patch(
            "pdfqa.embed.chromadb_embed.DefaultEmbeddingFunction",
            return_value=MagicMock(return_value=[[0.1, 0.2]]),
        ):
            embedder = ChromaDBEmbedder(PdfqaConfig())
        with pytest.raises(EmbeddingError, match="for 2 inputs"):
            embedder.embed_texts(["a", "b"])


# --- OllamaEmbedder ---


def _ollama_config(batch_size: int = 64) -> PdfqaConfig:
    config = PdfqaConfig()
    config.embedding.provider = "ollama"
    config.embedding.model = "nomic-embed-text"
    config.embedding.batch_size = batch_size
    return config


class TestOllamaEmbedder:
    def test_embed_query(self):
        response = _FakeResponse(_ollama_response([[0.1, 0.2, 0.3]]))
        with patch("pdfqa._http.urlopen", return_value=response):
            vector = OllamaEmbedder(_ollama_config()).embed_query("hello")
        assert vector == [0.1, 0.2, 0.3]

    def test_request_body_and_url(self):
        captured: list[object] = []

        def mock_urlopen(req, **kwargs):
            captured.append(req)
            return _FakeResponse(_ollama_response([[1.0]]))

        with patch("pdfqa._http.urlopen", side_effect=mock_urlopen):
            OllamaEmbedder(_ollama_config()).embed_query("hello")

        req = captured[0]
        assert req.full_url == "http://localhost:11434/api/embed"  # type: ignore[attr-defined]
        body = json.loads(req.data)  # type: ignore[attr-defined]
        assert body == {"model": "nomic-embed-text", "input": ["hello"]}

    def test_batches_by_batch_size(self):
        calls: list[int] = []

        def mock_urlopen(req, **kwargs):
            texts = json.loads(req.data)["input"]
            calls.append(len(texts))
            return _FakeResponse(_ollama_response([[float(len(t))] for t in texts]))

        with patch("pdfqa._http.urlopen", side_effect=mock_urlopen):
            vectors = OllamaEmbedder(_ollama_config(batch_size=2)).embed_texts(
                ["a", "bb", "ccc", "dddd", "eeeee"]
            )

        assert calls == [2, 2, 1]
        assert vectors == [[1.0], [2.0], [3.0], [4.0], [5.0]]

    def test_invalid_batch_size(self):
        with pytest.raises(EmbeddingError, match="batch_size"):
            OllamaEmbedder(_ollama_config(batch_size=0))

    def test_connection_error(self):
        with (
            patch("pdfqa._http.urlopen", side_effect=ConnectionError("Connection refused")),
            pytest.raises(EmbeddingError, match="not reachable"),
        ):
            OllamaEmbedder(_ollama_config()).embed_query("hello")

    def test_read_timeout(self):
        with (
            patch("pdfqa._http.urlopen", side_effect=TimeoutError("timed out")),
            pytest.raises(EmbeddingError, match="not reachable"),
        ):
            OllamaEmbedder(_ollama_config()).embed_query("hello")

    def test_http_error(self):
        err = HTTPError("http://localhost:11434/api/embed", 500, "Server Error", {}, None)
        with (
            patch("pdfqa._http.urlopen", side_effect=err),
            pytest.raises(EmbeddingError, match="HTTP 500"),
        ):
            OllamaEmbedder(_ollama_config()).embed_query("hello")

    def test_count_mismatch(self):
        response = _FakeResponse(_ollama_response([[0.1]]))
        with (
            patch("pdfqa._http.urlopen", return_value=response),
            pytest.raises(EmbeddingError, match="for 2 inputs"),
        ):
            OllamaEmbedder(_ollama_config()).embed_texts(["a", "b"])


# --- OpenAICompatEmbedder ---


def _openai_config() -> PdfqaConfig:
    config = PdfqaConfig()
    config.embedding.provider = "openai"
    config.embedding.model = "text-embedding-3-small"
    config.embedding.api_key_env = "PDFQA_TEST_EMBED_KEY"
    return config


class TestOpenAICompatEmbedder:
    def test_sends_bearer_key(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PDFQA_TEST_EMBED_KEY", "sk-test")
        captured: list[object] = []

        def mock_urlopen(req, **kwargs):
            captured.append(req)
            return _FakeResponse(_openai_response([[0.5, 0.5]]))

        with patch("pdfqa._http.urlopen", side_effect=mock_urlopen):
            vector = OpenAICompatEmbedder(_openai_config()).embed_query("hello")

        assert vector == [0.5, 0.5]
        req = captured[0]
        assert req.full_url == "https://api.openai.com/v1/embeddings"  # type: ignore[attr-defined]
        assert req.get_header("Authorization") == "Bearer sk-test"  # type: ignore[attr-defined]

    def test_reorders_by_index(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PDFQA_TEST_EMBED_KEY", "sk-test")
        response = _FakeResponse(_openai_response([[1.0], [2.0], [3.0]], reverse=True))
        with patch("pdfqa._http.urlopen", return_value=response):
            vectors = OpenAICompatEmbedder(_openai_config()).embed_texts(["a", "b", "c"])
        assert vectors == [[1.0], [2.0], [3.0]]

    def test_warns_without_key(self, monkeypatch: pytest.MonkeyPatch, caplog):
        monkeypatch.delenv("PDFQA_TEST_EMBED_KEY", raising=False)
        OpenAICompatEmbedder(_openai_config())
        assert "PDFQA_TEST_EMBED_KEY is not set" in caplog.text

    def test_malformed_response(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PDFQA_TEST_EMBED_KEY", "sk-test")
        body = json.dumps({"data": [{"index": 0}]}).encode("utf-8")
        with (
            patch("pdfqa._http.urlopen", return_value=_FakeResponse(body)),
            pytest.raises(EmbeddingError, match="missing 'embedding'"),
        ):
            OpenAICompatEmbedder(_openai_config()).embed_query("hello")

    def test_http_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PDFQA_TEST_EMBED_KEY", "sk-test")
        err = HTTPError("https://api.openai.com/v1/embeddings", 401, "Unauthorized", {}, None)
        with (
            patch("pdfqa._http.urlopen", side_effect=err),
            pytest.raises(EmbeddingError, match="HTTP 401"),
        ):
            OpenAICompatEmbedder(_openai_config()).embed_query("hello")

    def test_read_timeout(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PDFQA_TEST_EMBED_KEY", "sk-test")
        with (
            patch("pdfqa._http.urlopen", side_effect=TimeoutError("timed out")),
            pytest.raises(EmbeddingError, match="not reachable"),
        ):
            OpenAICompatEmbedder(_openai_config()).embed_query("hello")


# --- EmbeddingService ---


VOCAB = ["refund", "shipping", "order"]


def _service(
    store: InMemoryChunkStore, sleeps: list[float], fail_on: str | None = None
) -> tuple[EmbeddingService, KeywordEmbedder]:
    embedder = KeywordEmbedder(VOCAB, fail_on=fail_on)
    return EmbeddingService(embedder, store, sleep=sleeps.append), embedder


class TestGroupSize:
    @pytest.mark.parametrize(
        ("total", "expected"), [(1, 30), (50, 30), (51, 25), (100, 25), (101, 20)]
    )
    def test_group_size(self, total: int, expected: int):
        assert group_size_for(total) == expected


class TestEmbeddingService:
    def test_empty_input(self, chunk_store, sleeps):
        service, _ = _service(chunk_store, sleeps)
        result = service.get_or_create_embeddings([])
        assert result.chunks == []
        assert result.from_cache == 0
        assert result.newly_generated == 0

    def test_embeds_and_stores_new_chunks(self, chunk_store, sleeps):
        service, embedder = _service(chunk_store, sleeps)
        chunks = [
            make_chunk("c0", "refund details"),
            make_chunk("c1", "shipping details"),
        ]

        result = service.get_or_create_embeddings(chunks)

        assert result.newly_generated == 2
        assert result.from_cache == 0
        assert [c.chunk_id for c in result.chunks] == ["c0", "c1"]
        assert result.chunks[0].embedding == (1.0, 0.0, 0.0)
        assert not result.chunks[0].from_cache
        assert embedder.calls == ["refund details", "shipping details"]
        assert chunk_store.count() == 2

    def test_reuses_stored_embeddings(self, chunk_store, sleeps):
        cached = make_chunk("c0", "refund details", embedding=(9.0, 9.0, 9.0))
        chunk_store.upsert([cached])
        service, embedder = _service(chunk_store, sleeps)

        result = service.get_or_create_embeddings(
            [make_chunk("c0", "refund details"), make_chunk("c1", "order details")]
        )

        assert result.from_cache == 1
        assert result.newly_generated == 1
        assert result.chunks[0].embedding == (9.0, 9.0, 9.0)
        assert result.chunks[0].from_cache is True
        assert result.chunks[1].from_cache is False
        assert embedder.calls == ["order details"]

    def test_stored_chunk_without_vector_is_re_embedded(self, chunk_store, sleeps):
        chunk_store.upsert([make_chunk("c0", "refund details")])
        service, embedder = _service(chunk_store, sleeps)

        result = service.get_or_create_embeddings([make_chunk("c0", "refund details")])

        assert result.from_cache == 0
        assert result.newly_generated == 1
        assert embedder.calls == ["refund details"]

    def test_failed_chunk_kept_without_embedding(self, chunk_store, sleeps):
        service, _ = _service(chunk_store, sleeps, fail_on="broken")
        chunks = [
            make_chunk("c0", "refund details"),
            make_chunk("c1", "broken text"),
            make_chunk("c2", "order details"),
        ]

        result = service.get_or_create_embeddings(chunks)

        assert [c.chunk_id for c in result.chunks] == ["c0", "c1", "c2"]
        assert result.newly_generated == 2
        assert not result.chunks[1].has_embedding
        assert chunk_store.find_by_ids(["c1"]) == []

    def test_timed_out_chunk_kept_without_embedding(self, chunk_store, sleeps):
        def mock_urlopen(req, **kwargs):
            if json.loads(req.data)["input"] == ["slow text"]:
                raise TimeoutError("The read operation timed out")
            return _FakeResponse(_ollama_response([[0.5, 0.5]]))

        service = EmbeddingService(
            OllamaEmbedder(_ollama_config()), chunk_store, sleep=sleeps.append
        )
        chunks = [make_chunk("c0", "refund details"), make_chunk("c1", "slow text")]

        with patch("pdfqa._http.urlopen", side_effect=mock_urlopen):
            result = service.get_or_create_embeddings(chunks)

        assert result.newly_generated == 1
        assert result.chunks[0].embedding == (0.5, 0.5)
        assert not result.chunks[1].has_embedding

    def test_pacing_between_chunks_and_groups(self, chunk_store, sleeps):
        service, _ = _service(chunk_store, sleeps)
        chunks = [make_chunk(f"c{i:02d}", f"order {i}") for i in range(35)]

        result = service.get_or_create_embeddings(chunks)

        assert result.total_batches == 2
        assert result.batch_size == 30
        assert sleeps.count(DELAY_BETWEEN_GROUPS) == 1
        assert sleeps.count(DELAY_BETWEEN_CHUNKS) == 29 + 4

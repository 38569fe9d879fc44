# =============================================================================
# Unit Tests — Service Context
# =============================================================================

import pytest

from pdfmate.config import Settings
from pdfmate.context import build_context
from pdfmate.services.llm import AnthropicProvider
from pdfmate.services.pipeline import IngestionPipeline
from pdfmate.services.responder import QueryResponder
from pdfmate.services.vectorstore import ChromaVectorStore


def _settings(tmp_path, **overrides) -> Settings:
    values = {
        "vectorstore_type": "chroma",
        "chroma_url": None,
        "openai_api_key": "sk-test",
        "llm_provider": "anthropic",
        "llm_api_key": None,
        "anthropic_api_key": "",
        "upload_dir": str(tmp_path),
    }
    values.update(overrides)
    return Settings(**values)


class TestBuildContext:
    def test_without_llm_credentials(self, tmp_path):
        context = build_context(_settings(tmp_path))

        assert context.llm is None
        assert isinstance(context.vector_store, ChromaVectorStore)
        assert isinstance(context.pipeline(), IngestionPipeline)
        with pytest.raises(RuntimeError):
            context.responder()

    def test_with_llm_credentials(self, tmp_path):
        context = build_context(_settings(tmp_path, llm_api_key="sk-ant-test"))

        assert isinstance(context.llm, AnthropicProvider)
        assert isinstance(context.responder(), QueryResponder)

    def test_worker_context_skips_llm(self, tmp_path):
        context = build_context(_settings(tmp_path, llm_api_key="sk-ant-test"), with_llm=False)
        assert context.llm is None

    def test_missing_embedding_key(self, tmp_path):
        with pytest.raises(ValueError):
            build_context(_settings(tmp_path, openai_api_key=""))

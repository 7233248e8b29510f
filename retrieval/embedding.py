#!/usr/bin/env python3
"""
Embedding clients

Turn a chunk (or a search query) into a fixed-length dense vector. Two
backends are available:

- OpenAI embeddings API (default, 1536 dimensions)
- BGE-M3 through FlagEmbedding, run locally (1024 dimensions)

Failures are raised as EmbeddingError and left to the caller; retrying
is the job orchestrator's business.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

BGE_M3_DIMENSIONS = 1024


class EmbeddingError(RuntimeError):
    """Raised when the embedding backend fails or returns a malformed vector"""


def detect_device() -> str:
    """Pick the best available torch device"""
    import torch

    return "mps" if torch.backends.mps.is_available() else "cuda" if torch.cuda.is_available() else "cpu"


class EmbeddingClient(ABC):
    """Base class: one text in, one vector of ``dimensions`` floats out"""

    def __init__(self, dimensions: int):
        self.dimensions = dimensions

    @abstractmethod
    def _embed(self, text: str) -> Any:
        """Backend call; returns anything numpy can turn into a 1-D array"""
        pass

    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for text

        Raises:
            EmbeddingError: If the backend fails or the vector has the wrong length
        """
        try:
            raw = self._embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        vector = np.asarray(raw, dtype=np.float32).ravel()
        if vector.shape[0] != self.dimensions:
            raise EmbeddingError(
                f"Expected a {self.dimensions}-dimension embedding, got {vector.shape[0]}"
            )
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("Embedding contains non-finite values")
        return vector.tolist()


class OpenAIEmbeddingClient(EmbeddingClient):
    """Remote embeddings through the OpenAI API"""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        api_key: Optional[str] = None,
        client: Any = None,
    ):
        super().__init__(dimensions)
        self.model = model

        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required for the openai embedding backend")
            from openai import OpenAI

            client = OpenAI(api_key=api_key)
        self.client = client

    def _embed(self, text: str) -> Any:
        response = self.client.embeddings.create(
            model=self.model,
            input=text,
            dimensions=self.dimensions,
        )
        return response.data[0].embedding


class BGEM3EmbeddingClient(EmbeddingClient):
    """
    Local BGE-M3 dense embeddings

    The model is loaded on first use and cached; FP16 is used on GPU/MPS.
    """

    def __init__(self, model_name: str = "BAAI/bge-m3", device: Optional[str] = None):
        super().__init__(BGE_M3_DIMENSIONS)
        self.model_name = model_name
        self.device = device
        self.model = None

    def load_model(self):
        """Load BGE-M3 model (called once, lazily)"""
        if self.model is None:
            from FlagEmbedding import BGEM3FlagModel

            device = self.device or detect_device()
            use_fp16 = device in ['cuda', 'mps']
            logger.info("Loading %s on device %s (FP16: %s)", self.model_name, device, use_fp16)
            self.model = BGEM3FlagModel(self.model_name, use_fp16=use_fp16, device=device)
        return self.model

    def _embed(self, text: str) -> Any:
        output = self.load_model().encode(
            [text],
            return_dense=True,
            return_sparse=False,
            return_colbert_vecs=False,
        )
        dense_vec = output['dense_vecs'][0]
        if hasattr(dense_vec, 'cpu'):
            dense_vec = dense_vec.cpu().numpy()
        return dense_vec


def build_embedder(settings) -> EmbeddingClient:
    """
    Create the embedding client selected by EMBEDDING_BACKEND

    Raises:
        ValueError: On an unknown backend or missing credentials
    """
    backend = settings.embedding_backend.lower()
    if backend == "openai":
        return OpenAIEmbeddingClient(
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            api_key=settings.openai_api_key,
        )
    if backend in ("bge-m3", "local"):
        return BGEM3EmbeddingClient(settings.local_model_name)
    raise ValueError(f"Unknown embedding backend: {settings.embedding_backend}")

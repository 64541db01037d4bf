"""Ollama client wrapper.

This package provides the async model collaborator that talks to the Ollama API.
"""

from toolbridge.ollama.client import OllamaClient

__all__ = ["OllamaClient"]

"""Output sinks."""

from quire.infra.sinks.filesystem import GenerationCounter, GenerationSink

__all__ = ["GenerationCounter", "GenerationSink"]

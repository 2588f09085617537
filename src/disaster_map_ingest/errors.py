"""Exception types raised across the ingestion pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures that reach a caller."""


class StoreUnavailableError(PipelineError):
    """The store could not be reached before a run started."""


class CrawlerTransportError(PipelineError):
    """Transport-level fault while talking to the crawled site."""

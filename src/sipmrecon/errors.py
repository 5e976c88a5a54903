# src/sipmrecon/errors.py
from __future__ import annotations


class SchemaMismatch(KeyError):
    """A requested column or table is absent from a tabular store."""


class ModelInvocationError(RuntimeError):
    """The regression model failed on a batch; the whole inference run is aborted."""


class ResourceUnavailable(FileNotFoundError):
    """Model artifact, input directory or output directory unavailable at startup."""


class RunStateError(RuntimeError):
    """Lifecycle operation called in the wrong state (e.g. end_event after end_run)."""


# Diagnostic reasons. These conditions are counted, never raised.
INVALID_CHANNEL_ID = "invalid_channel_id"
INCOMPLETE_EVENT_DATA = "incomplete_event_data"

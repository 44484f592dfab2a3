from contextlib import asynccontextmanager
from typing import AsyncIterator

from entry_model import SubmissionInProgress


class SubmissionGuard:
    """
    Serializes submissions per form key (for example "user-1:expense").

    While a submission for a key is in flight, another one for the same key is
    rejected rather than queued: the UI equivalent is a disabled submit button.
    Different keys never block each other. Suitable for the single-process
    service; a multi-host deployment would need a shared store.
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    @asynccontextmanager
    async def hold(self, form_key: str) -> AsyncIterator[None]:
        # Check and claim must stay free of awaits to be atomic on the event loop.
        if form_key in self._in_flight:
            raise SubmissionInProgress(form_key)
        self._in_flight.add(form_key)
        try:
            yield
        finally:
            self._in_flight.discard(form_key)

    def is_busy(self, form_key: str) -> bool:
        return form_key in self._in_flight


def form_key(owner_id: str, form: str) -> str:
    return f"{owner_id}:{form}"

"""Sequential cursor walk over the mail source."""

import logging
import threading
from typing import Optional, Tuple

from ..email_processor import EmailProcessor
from ..models import MessageSummary

logger = logging.getLogger(__name__)


class CursorFetcher:
    """Walks the paginated mail source one message at a time.

    The fetcher is the only owner of the continuation token. Calls must not
    overlap; an overlapping call raises RuntimeError instead of racing on the
    token.
    """

    def __init__(self, email_processor: EmailProcessor):
        self.email_processor = email_processor
        self._token: Optional[str] = None
        self._exhausted = False
        self._pages = 0
        self._busy = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def pages_fetched(self) -> int:
        return self._pages

    def next(
        self, token: Optional[str]
    ) -> Tuple[Optional[MessageSummary], Optional[str]]:
        """Fetch the page after ``token``.

        Returns:
            Tuple of (summary, next_token); (None, None) means the source is exhausted.

        Raises:
            FetchError: If the mail source fails.
            RuntimeError: If another call is already in flight.
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("CursorFetcher.next called while another fetch is in flight")
        try:
            summary, next_token = self.email_processor.fetch_page(token)
            self._pages += 1
        finally:
            self._busy.release()
        return summary, next_token

    def advance(self) -> Optional[MessageSummary]:
        """Fetch the next message summary and move the cursor past it.

        Returns:
            The summary, or None when the page held no message.

        Raises:
            FetchError: If the mail source fails. The cursor is left unchanged.
        """
        if self._exhausted:
            return None

        summary, next_token = self.next(self._token)
        self._token = next_token
        if next_token is None:
            self._exhausted = True
            logger.info("Last page fetched, no more page tokens")
        return summary

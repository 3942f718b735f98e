"""Mail source backed by the Gmail API."""

import logging
import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup
from googleapiclient.discovery import Resource

from .config import GMAIL_QUERY
from .exceptions import ContentReadError, FetchError
from .gmail_utils import (
    HTML_TEXT,
    fetch_message_page,
    find_text_part,
    get_gmail_client,
    get_message_payload,
)
from .models import MessageSummary


class EmailProcessor:
    """Handles listing unread messages and reading their text."""

    def __init__(
        self,
        gmail_client: Optional[Resource] = None,
        query: str = GMAIL_QUERY,
        include_spam_trash: bool = False,
        lazy_init: bool = False,
    ):
        """Initialize email processor with Gmail client.

        Args:
            gmail_client: Optional Gmail API client. If not provided, creates a new client.
            query: Gmail search query used when listing messages.
            include_spam_trash: Whether spam and trash are listed too.
            lazy_init: If True, delay Gmail client initialization until first use.
        """
        self.gmail = gmail_client
        self.query = query
        self.include_spam_trash = include_spam_trash
        self._owns_gmail_client = gmail_client is None
        self._lazy_init = lazy_init
        if self._owns_gmail_client and not lazy_init:
            self.gmail = get_gmail_client(port=8080)

    def _ensure_gmail_client(self):
        """Ensure Gmail client is initialized (for lazy initialization)."""
        if self.gmail is None and self._owns_gmail_client:
            self.gmail = get_gmail_client(port=8080)

    def strip_html(self, html_content: str) -> str:
        """Remove HTML tags and extract text content."""
        soup = BeautifulSoup(html_content, "html.parser")
        text_content = soup.get_text(separator=" ", strip=True)
        text_content = re.sub(r"\s+", " ", text_content).strip()
        return text_content

    def fetch_page(
        self, page_token: Optional[str] = None
    ) -> Tuple[Optional[MessageSummary], Optional[str]]:
        """Fetch the next single message summary.

        Args:
            page_token: Continuation token from the previous page, None for the first page.

        Returns:
            Tuple of (summary, next_page_token). Both None once the listing is exhausted.

        Raises:
            FetchError: If the Gmail listing fails.
        """
        try:
            self._ensure_gmail_client()
            messages, next_page_token = fetch_message_page(
                self.gmail,
                query=self.query,
                page_token=page_token,
                include_spam_trash=self.include_spam_trash,
            )
        except Exception as e:
            raise FetchError(f"Failed to list messages: {e}") from e

        if not messages:
            return None, next_page_token
        if len(messages) > 1:
            logging.warning(f"Expected one message per page, got {len(messages)}; using the first")
        return MessageSummary(id=messages[0]["id"]), next_page_token

    def read_content(self, message_id: str) -> Optional[str]:
        """Read the plain text of a message.

        Returns the first text/plain part, or the visible text of the first
        text/html part, or None when the message has neither or only blank text.

        Raises:
            ContentReadError: If the message cannot be retrieved or decoded.
        """
        if not message_id:
            return None

        try:
            self._ensure_gmail_client()
            payload = get_message_payload(self.gmail, message_id)
            found = find_text_part(payload)
        except Exception as e:
            raise ContentReadError(f"Failed to read message {message_id}: {e}") from e

        if found is None:
            logging.info(f"No text part found in message {message_id}")
            return None

        mime_type, text = found
        if mime_type == HTML_TEXT:
            text = self.strip_html(text)

        if not text.strip():
            logging.info(f"Message {message_id} has an empty {mime_type} body")
            return None
        return text

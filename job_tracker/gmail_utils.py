"""
Gmail utility functions used by the mail source.
Wraps the Gmail API calls the tracker needs: OAuth bootstrap, listing one
message per page, fetching a full message and decoding its text parts.
"""

import base64
import binascii
import logging
import os
import os.path
from typing import Iterator, List, Optional, Tuple

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError

from .config import CREDENTIALS_FILE, TOKEN_FILE

# Gmail API Scopes
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

PLAIN_TEXT = "text/plain"
HTML_TEXT = "text/html"

logger = logging.getLogger(__name__)


def get_gmail_client(
    token_file: str = TOKEN_FILE,
    credentials_file: str = CREDENTIALS_FILE,
    scopes: Optional[List[str]] = None,
    port: int = 0,
) -> Resource:
    """
    Creates and returns an authenticated Gmail API client.

    Args:
        token_file: Path to the token file for storing credentials
        credentials_file: Path to the OAuth2 credentials file
        scopes: List of Gmail API scopes (defaults to SCOPES)
        port: Port for the local server during OAuth flow (0 for auto)

    Returns:
        Authenticated Gmail API client resource

    Raises:
        FileNotFoundError: If credentials file doesn't exist
    """
    if scopes is None:
        scopes = SCOPES

    if not os.path.exists(credentials_file):
        raise FileNotFoundError(f"Credentials file not found: {credentials_file}")

    creds = None

    if os.path.exists(token_file):
        try:
            creds = Credentials.from_authorized_user_file(token_file, scopes)
        except Exception as e:
            logger.warning(f"Failed to load credentials from {token_file}: {e}")
            creds = None

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
                logger.info("Credentials refreshed successfully")
            except Exception as e:
                logger.error(f"Failed to refresh credentials: {e}")
                creds = None

        if not creds:
            flow = InstalledAppFlow.from_client_secrets_file(credentials_file, scopes)
            creds = flow.run_local_server(port=port)
            logger.info("New credentials obtained successfully")

        with open(token_file, "w") as token:
            token.write(creds.to_json())
            logger.debug(f"Credentials saved to {token_file}")

    return build("gmail", "v1", credentials=creds)


def fetch_message_page(
    gmail: Resource,
    query: Optional[str] = None,
    page_token: Optional[str] = None,
    include_spam_trash: bool = False,
) -> Tuple[List[dict], Optional[str]]:
    """
    Lists a single message matching the query.

    One message per page lets every classification be throttled on its own
    instead of reading a whole batch up front.

    Args:
        gmail: Authenticated Gmail API client
        query: Gmail search query (e.g., "is:unread")
        page_token: Continuation token returned by the previous call
        include_spam_trash: Whether to include spam and trash messages

    Returns:
        Tuple of (messages, next_page_token); messages holds at most one
        dictionary with 'id' and 'threadId'

    Raises:
        HttpError: If the API request fails
    """
    request_params = {"userId": "me", "maxResults": 1, "includeSpamTrash": include_spam_trash}
    if query:
        request_params["q"] = query
    if page_token:
        request_params["pageToken"] = page_token

    try:
        results = gmail.users().messages().list(**request_params).execute()
    except HttpError as error:
        logger.error(f"Failed to list messages: {error}")
        raise

    messages = results.get("messages", []) or []
    next_page_token = results.get("nextPageToken")
    logger.debug(f"Listed {len(messages)} message(s), next page token: {next_page_token}")
    return messages, next_page_token


def get_message_payload(gmail: Resource, message_id: str) -> Optional[dict]:
    """
    Retrieves the MIME payload of a message.

    Args:
        gmail: Authenticated Gmail API client
        message_id: The ID of the message to retrieve

    Returns:
        The 'payload' portion of the message, or None if the message has none

    Raises:
        HttpError: If the API request fails
    """
    try:
        message = gmail.users().messages().get(userId="me", id=message_id, format="full").execute()
    except HttpError as error:
        logger.error(f"Failed to retrieve message {message_id}: {error}")
        raise

    if not message:
        return None
    return message.get("payload")


def decode_body_data(data: str) -> str:
    """
    Decodes a base64 message body into text.

    Gmail normally sends URL-safe base64 but some parts arrive in the standard
    alphabet, so the standard decoder is tried when the URL-safe one fails.
    Unpadded data is accepted.
    """
    data = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(data)
    except (binascii.Error, ValueError):
        raw = base64.b64decode(data)
    return raw.decode("utf-8", errors="ignore")


def iter_message_parts(payload: dict) -> Iterator[dict]:
    """Yields every part of a (possibly nested) payload depth first, root included."""
    stack = [payload]
    while stack:
        part = stack.pop()
        yield part
        # Reverse so the first child is visited first
        stack.extend(reversed(part.get("parts") or []))


def find_text_part(payload: Optional[dict]) -> Optional[Tuple[str, str]]:
    """
    Finds the best text part of a message payload.

    The first text/plain part anywhere in the tree wins; otherwise the first
    text/html part is used.

    Args:
        payload: The 'payload' portion of a Gmail message

    Returns:
        Tuple of (mime_type, decoded_text), or None if the message has no text part
    """
    if not payload:
        return None

    first_html = None
    for part in iter_message_parts(payload):
        mime_type = (part.get("mimeType") or "").lower()
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        if mime_type == PLAIN_TEXT:
            return PLAIN_TEXT, decode_body_data(data)
        if mime_type == HTML_TEXT and first_html is None:
            first_html = data

    if first_html is not None:
        return HTML_TEXT, decode_body_data(first_html)
    return None

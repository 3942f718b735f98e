"""LLM service for job application email classification."""

import json
import logging
import threading
import time
from datetime import datetime
from typing import Optional

from openai import OpenAI

from .config import (
    ERROR_LOG_FILE,
    IGNORE_MARKER,
    LLM_LOG_FILE,
    LLM_SERVICE,
    MAX_CONTENT_LENGTH,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    OPENAI_API_KEY,
    OPENAI_MODEL,
)
from .exceptions import ClassificationError
from .models import ClassificationResult, Status

SYSTEM_PROMPT = (
    "You classify emails about job applications. "
    "Always answer with a single line and nothing else."
)

USER_PROMPT_TEMPLATE = """Classify the content of this email into one of the following categories: Interview, Rejected, Waiting.

Instructions:
1. If the email clearly indicates a rejection ('sorry but', 'we will not be moving forward', 'your application was not successful', 'we are unable to offer you'), the category is REJECTED.
2. If the email invites you to an interview or discusses scheduling one ('interview invitation', 'we would like to schedule an interview', 'available times for an interview'), the category is INTERVIEW.
3. If the application is still under consideration or there will be further communication later without an interview invitation or rejection ('your application is under review', 'we will be in touch', 'your profile has been shortlisted'), the category is WAITING.
4. If the email is not related to a job application or the job search at all, return exactly: {ignore_marker}
5. Otherwise return exactly 'Company Name: CATEGORY', where Company Name is the company that sent the email and CATEGORY is one of INTERVIEW, REJECTED, WAITING.

Email content:
{email_content}"""

# Checked in order; a phrase mentioning both a rejection and an interview is a rejection
STATUS_KEYWORDS = (
    ("REJECT", Status.REJECTED),
    ("INTERVIEW", Status.INTERVIEW),
    ("WAIT", Status.WAITING),
)


def normalize_status(value: str) -> Optional[Status]:
    """Map a free-form status phrase to a Status, or None if it matches none."""
    value = value.upper()
    for keyword, status in STATUS_KEYWORDS:
        if keyword in value:
            return status
    return None


def is_ignore_response(response_text: Optional[str], ignore_marker: str = IGNORE_MARKER) -> bool:
    """Whether the classifier reported the email as unrelated to a job search."""
    if response_text is None:
        return True
    return response_text.strip().lower() == ignore_marker.lower()


def parse_classification(
    response_text: Optional[str], ignore_marker: str = IGNORE_MARKER
) -> Optional[ClassificationResult]:
    """Parse a 'Company: STATUS' response line.

    Returns None for the ignore marker and for malformed responses; malformed
    responses are logged as warnings.
    """
    if is_ignore_response(response_text, ignore_marker):
        logging.info("Classifier ignored email as unrelated to a job search")
        return None

    line = response_text.strip()
    company, separator, status_phrase = line.partition(":")
    if not separator:
        logging.warning(f"Classifier response not in 'Company: Status' format: {line!r}")
        return None

    company = company.strip()
    status_phrase = status_phrase.strip()
    if not company:
        logging.warning(f"Classifier response has no company name: {line!r}")
        return None

    status = normalize_status(status_phrase)
    if status is None:
        logging.warning(f"Classifier response has unknown status {status_phrase!r}: {line!r}")
        return None

    logging.debug(f"Classified as {company}: {status.value}")
    return ClassificationResult(company=company, status=status)


class LLMService:
    """Handles job application classification using an LLM (OpenAI or Ollama)."""

    def __init__(
        self,
        max_content_length: int = MAX_CONTENT_LENGTH,
        llm_client: OpenAI = None,
        model: str = None,
        lazy_init: bool = False,
        ignore_marker: str = IGNORE_MARKER,
        service: str = LLM_SERVICE,
    ):
        """Initialize the LLM client.

        Args:
            max_content_length: Maximum length of email content before truncation.
            llm_client: Optional OpenAI client instance. If not provided, creates based on config.
            model: Optional model name. If not provided, uses config defaults.
            lazy_init: If True, delay LLM client initialization until first use.
            ignore_marker: Response the model gives for unrelated email.
            service: LLM backend, "OpenAI" or "Ollama" (case-insensitive).
        """
        self.max_content_length = max_content_length
        self.ignore_marker = ignore_marker
        self._lazy_init = lazy_init
        self._log_lock = threading.Lock()
        self.service = "Ollama" if service.lower() == "ollama" else "OpenAI"
        default_model = OLLAMA_MODEL if self.service == "Ollama" else OPENAI_MODEL
        self.model = model or default_model
        if llm_client is not None:
            self.llm_client = llm_client
        elif not lazy_init:
            self.llm_client = self._get_llm_client()
        else:
            self.llm_client = None

    def _ensure_llm_client(self):
        """Ensure LLM client is initialized (for lazy initialization)."""
        if self.llm_client is None and self._lazy_init:
            self.llm_client = self._get_llm_client()

    def _get_llm_client(self) -> OpenAI:
        """Get the appropriate LLM client based on configuration."""
        if self.service == "Ollama":
            logging.info(f"Using Ollama at {OLLAMA_BASE_URL} with model {self.model}")
            return OpenAI(base_url=OLLAMA_BASE_URL, api_key="ollama")  # Dummy key for Ollama
        else:
            logging.info(f"Using OpenAI with model {self.model}")
            return OpenAI(api_key=OPENAI_API_KEY)

    def classify_email(self, email_content: str) -> str:
        """Send email content to the LLM and return its single-line answer.

        Raises:
            ClassificationError: If the remote call fails or returns no content.
        """
        self._ensure_llm_client()
        if len(email_content) > self.max_content_length:
            email_content = (
                email_content[: self.max_content_length] + "\n[Email truncated for processing]"
            )
            logging.debug(f"Truncated email content to {self.max_content_length} characters")

        messages = self._build_messages(email_content)

        try:
            response = self._call_llm(messages)
        except Exception as e:
            logging.error(f"Error in LLM classification with {self.model}: {e}")
            self._log_error(email_content, str(e))
            raise ClassificationError(f"Classifier call failed: {e}") from e

        if response is None:
            self._log_error(email_content, "Empty response")
            raise ClassificationError("Classifier returned no content")

        # Only the first line is meaningful
        response = response.strip().splitlines()[0] if response.strip() else ""
        logging.info(f"LLM response: {response[:200]}")
        return response

    def classify(self, email_content: str) -> Optional[ClassificationResult]:
        """Classify email content and parse the answer in one call."""
        return parse_classification(self.classify_email(email_content), self.ignore_marker)

    def _build_messages(self, email_content: str) -> list:
        """Build chat messages for the classification request."""
        user_prompt = USER_PROMPT_TEMPLATE.format(
            ignore_marker=self.ignore_marker, email_content=email_content
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    def _call_llm(self, messages: list) -> Optional[str]:
        """Make the API call to the LLM."""
        start_time = time.time()

        logging.debug(f"Calling {self.service} API with model {self.model}")
        response = self.llm_client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0,
            max_tokens=50,
        )

        end_time = time.time()
        content = response.choices[0].message.content

        self._log_interaction(start_time, end_time, content)
        return content

    def _log_interaction(self, start_time: float, end_time: float, response: Optional[str]):
        """Log the LLM interaction for debugging."""
        log_entry = {
            "request_timestamp": start_time,
            "response_timestamp": end_time,
            "duration": end_time - start_time,
            "model": self.model,
            "service": self.service,
            "response": response,
        }
        with self._log_lock, open(LLM_LOG_FILE, "a") as f:
            f.write(json.dumps(log_entry) + "\n")

    def _log_error(self, email_content: str, error: str):
        """Log classification errors for debugging."""
        error_entry = {
            "timestamp": datetime.now().isoformat(),
            "model": self.model,
            "error": error,
            "email_preview": email_content[:500] if email_content else "No content",
        }
        with self._log_lock, open(ERROR_LOG_FILE, "a") as f:
            f.write(json.dumps(error_entry) + "\n")

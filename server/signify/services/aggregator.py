"""Derived statistics for documents and verifications."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from bs4 import BeautifulSoup
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.errors import AggregationInconsistency, ValidationError
from signify.models import OwnerRef, PasteEvents, VerificationStatus
from signify.services.keystroke_service import keystroke_service
from signify.services.sequencer import field_errors

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

BLOCK_TAGS = [
    "p", "div", "li", "ul", "ol", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "table", "tr", "td", "th", "section", "article", "header", "footer",
]


@dataclass(frozen=True)
class DocumentStats:
    word_count: int
    reading_time_minutes: int
    keystroke_count: int

    def as_row(self) -> dict[str, int]:
        return {
            "word_count": self.word_count,
            "reading_time_minutes": self.reading_time_minutes,
            "keystroke_count": self.keystroke_count,
        }


class Aggregator:
    """Recomputes derived fields from content and the stored event log."""

    def strip_markup(self, text: Optional[str]) -> str:
        """Plain text of the markup.

        Inline tags join their neighbours (``un<em>believ</em>able`` stays one
        word); block boundaries and ``<br>`` become whitespace.
        """
        if not text:
            return ""
        soup = BeautifulSoup(text, "html.parser")
        for br in soup.find_all("br"):
            br.replace_with(" ")
        for block in soup.find_all(BLOCK_TAGS):
            block.insert(0, " ")
            block.append(" ")
        return soup.get_text()

    def compute_word_count(self, text: Optional[str]) -> int:
        """Whitespace-delimited tokens of the markup-free text."""
        return len(self.strip_markup(text).split())

    def compute_reading_minutes(self, word_count: int) -> int:
        if word_count < 0:
            raise AggregationInconsistency(f"negative word count: {word_count}")
        return math.ceil(word_count / WORDS_PER_MINUTE)

    async def compute_keystroke_count(self, session: AsyncSession, owner: OwnerRef) -> int:
        """Live count; there is deliberately no cached counter to drift."""
        return await keystroke_service.count(session, owner)

    def derive_verification_status(
        self,
        paste: Union[PasteEvents, Mapping[str, Any], None],
    ) -> VerificationStatus:
        """mixed when a paste occurred at least once, else human_written."""
        if paste is None:
            paste = PasteEvents()
        elif not isinstance(paste, PasteEvents):
            try:
                paste = PasteEvents.model_validate(paste)
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid paste metadata", field_errors(exc, prefix="paste")
                ) from exc

        if paste.occurred and paste.count > 0:
            return VerificationStatus.MIXED
        return VerificationStatus.HUMAN_WRITTEN

    async def document_stats(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        content: Optional[str],
    ) -> DocumentStats:
        """Compute every cached document statistic in one go.

        Runs before each document write, content change or not.
        """
        try:
            word_count = self.compute_word_count(content)
            reading = self.compute_reading_minutes(word_count)
        except AggregationInconsistency:
            logger.error("Aggregation failed for %s", owner)
            raise
        except Exception as exc:
            logger.exception("Could not derive statistics for %s", owner)
            raise AggregationInconsistency(f"could not derive statistics for {owner}") from exc

        keystrokes = await self.compute_keystroke_count(session, owner)
        return DocumentStats(
            word_count=word_count,
            reading_time_minutes=reading,
            keystroke_count=keystrokes,
        )


# Singleton instance
aggregator = Aggregator()

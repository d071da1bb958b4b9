"""Base interface for role-specific contract extractors.

Defines the Strategy pattern base class that every role strategy
implements. Shared logic (comment masking, error handling, duplicate
merging) lives here; role-specific scanning is delegated.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .comments import mask_js_comments
from .models import (
    Evidence,
    ExtractionFailure,
    ExtractionResult,
    RawContractMention,
    ShapeDescriptor,
    SourceFile,
)
from .scanning import line_of

logger = logging.getLogger(__name__)


class BaseRoleStrategy(ABC):
    """Abstract base for role-specific extractors.

    Subclasses implement:
    - get_role(): returns the file role this strategy handles
    - extract_mentions(): scans masked text and returns raw mentions
    - extract_literals(): optional, short string literals in the file
    """

    @abstractmethod
    def get_role(self) -> str:
        """Return the role identifier (e.g., 'bridge', 'markup')."""
        ...

    @abstractmethod
    def extract_mentions(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        """Extract contract mentions from comment-masked text.

        Args:
            masked: File text with comments blanked out (offsets preserved)
            original: Unmodified file text, used for exact evidence spans
            file_path: Relative file path

        Returns:
            List of RawContractMention objects, duplicates allowed
        """
        ...

    def extract_literals(self, masked: str) -> List[str]:
        return []

    def mask_comments(self, text: str) -> str:
        return mask_js_comments(text)

    def extract(self, source: SourceFile) -> ExtractionResult:
        """Extract contracts from one file.

        Never raises: a failure degrades to an empty mention list with an
        ``ExtractionFailure`` record.
        """
        errors: List[ExtractionFailure] = []
        text = source.text
        line_count = text.count("\n") + (1 if text and not text.endswith("\n") else 0)

        try:
            masked = self.mask_comments(text)
        except Exception as e:
            logger.warning(f"Comment masking failed for {source.path}, scanning raw text: {e}")
            masked = text
            errors.append(ExtractionFailure(file_path=source.path, line=0, message=f"Comment masking failed: {e}"))

        try:
            mentions = self.extract_mentions(masked, text, source.path)
        except Exception as e:
            logger.error(f"Failed to extract contracts from {source.path}: {e}")
            mentions = []
            errors.append(
                ExtractionFailure(
                    file_path=source.path, line=0, message=f"Contract extraction failed: {e}", severity="error"
                )
            )

        try:
            literals = self.extract_literals(masked)
        except Exception as e:
            logger.warning(f"Failed to collect literals from {source.path}: {e}")
            literals = []

        merged = merge_mentions(mentions)
        logger.debug(f"{source.path} ({self.get_role()}): {len(merged)} mention(s)")

        return ExtractionResult(
            file_path=source.path,
            role=self.get_role(),
            mentions=merged,
            literals=literals,
            line_count=line_count,
            errors=errors,
        )

    def _mention(
        self,
        original: str,
        file_path: str,
        endpoint: str,
        kind: str,
        start: int,
        end: int,
        side: Optional[str] = None,
        channel_kind: Optional[str] = None,
        shape: Optional[ShapeDescriptor] = None,
        attributes: Optional[Dict] = None,
        quote: str = "'",
        args_text: str = "",
        site_text: str = "",
    ) -> RawContractMention:
        line = line_of(original, start)
        return RawContractMention(
            endpoint=endpoint,
            file_path=file_path,
            role=self.get_role(),
            kind=kind,
            line=line,
            side=side,
            channel_kind=channel_kind,
            shape=shape,
            attributes=dict(attributes or {}),
            quote=quote,
            evidence=[
                Evidence(
                    line=line,
                    text=original[start:end],
                    start=start,
                    end=end,
                    args_text=args_text,
                    site_text=site_text,
                )
            ],
        )


def merge_mentions(mentions: List[RawContractMention]) -> List[RawContractMention]:
    """Merge same-endpoint, same-shape mentions, keeping every occurrence."""
    merged: Dict[tuple, RawContractMention] = {}
    for mention in mentions:
        key = mention.merge_key()
        existing = merged.get(key)
        if existing is None:
            merged[key] = mention
            continue
        existing.evidence.extend(mention.evidence)
        for attr_key, value in mention.attributes.items():
            existing.attributes.setdefault(attr_key, value)
    result = list(merged.values())
    for mention in result:
        mention.evidence.sort(key=lambda ev: ev.start)
        mention.line = mention.evidence[0].line
    return sorted(result, key=lambda m: (m.line, m.kind, m.endpoint))

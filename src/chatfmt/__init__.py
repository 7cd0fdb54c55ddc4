"""chatfmt: segmentation and normalization of LLM chat output for rendering."""

from chatfmt.core.message import FormattedMessage, Role, format_message
from chatfmt.core.segmentation import Segment, SegmentKind, segment

__all__ = ["FormattedMessage", "Role", "Segment", "SegmentKind", "format_message", "segment"]

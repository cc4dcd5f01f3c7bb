from typing import Any, Optional

from citecheck.models import VerificationContext


def _coerce_index(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def get_earlier_footnotes(context: Optional[VerificationContext], specific_index: Any = None) -> str:
    """Resolve "Id." / "supra note N" style references against earlier footnotes.

    A footnote number k is visible only when k <= current_position + 1; anything
    further into the document is refused with a message rather than an error.
    """
    if context is None:
        return "No document context available."

    if specific_index is None:
        return "Specify a footnote index to retrieve."

    index = _coerce_index(specific_index)
    if index is None:
        return f"Invalid footnote index: {specific_index!r}. Provide a footnote number."

    if not context.can_see(index):
        return f"Footnote {index} is not earlier than the current footnote."

    footnote = context.find(index)
    if footnote is None:
        return f"Footnote {index} not found."

    return (
        f"**Footnote {footnote.display_label}**:\n"
        f"Claim: {footnote.claim_text}\n"
        f"Citation: {footnote.citation_text}"
    )

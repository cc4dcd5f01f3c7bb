import math
from typing import Any, Dict, Iterable, List, Optional

from citecheck.config import LLM_CONFIG, logger
from citecheck.exceptions import ModelParseException
from citecheck.models import SourceResult, Verdict, Verification, unavailable
from citecheck.utils.parsing import excerpt, extract_json_block

# Relative strength used only to pick the weakest verdict among accessed sources.
SUPPORT_STRENGTH = {
    Verdict.CONTRADICTS: 0,
    Verdict.DOES_NOT_SUPPORT: 1,
    Verdict.PARTIALLY_SUPPORTS: 2,
    Verdict.SUPPORTS: 3,
}


def weakest_verdict(sources: Iterable[SourceResult]) -> Verdict:
    """Overall verdict for a multi-source citation.

    The weakest graded verdict among accessed sources wins. Accessed sources
    that are all not_applicable yield not_applicable; no accessed source at
    all yields source_unavailable.
    """
    accessed = [s for s in sources if s.accessed]
    graded = [s.verdict for s in accessed if s.verdict in SUPPORT_STRENGTH]
    if graded:
        return min(graded, key=SUPPORT_STRENGTH.__getitem__)
    if accessed and all(s.verdict == Verdict.NOT_APPLICABLE for s in accessed):
        return Verdict.NOT_APPLICABLE
    return Verdict.SOURCE_UNAVAILABLE


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return LLM_CONFIG.DEFAULT_CONFIDENCE
    if math.isnan(value):
        return LLM_CONFIG.DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, float(value)))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _parse_sources(raw_sources: Any) -> List[SourceResult]:
    if not isinstance(raw_sources, list):
        return []
    sources = []
    for raw in raw_sources:
        if not isinstance(raw, dict):
            continue
        sources.append(SourceResult(
            title=raw.get("title") or None,
            url=raw.get("url") or None,
            accessed=_coerce_bool(raw.get("accessed", False)),
            verdict=Verdict.coerce(raw.get("verdict")),
            explanation=str(raw.get("explanation") or ""),
        ))
    return sources


def load_verification_payload(text: Optional[str]) -> Dict[str, Any]:
    parsed = extract_json_block(text or "")
    if parsed is None:
        reason = "no JSON object found" if "{" not in (text or "") else "malformed JSON"
        raise ModelParseException(reason, excerpt(text or "", LLM_CONFIG.EXCERPT_CHARS))
    return parsed


def parse_verification_response(
    text: Optional[str],
    footnote_id: str,
    derive_overall: bool = True,
) -> Verification:
    """Turn the model's final reply into a Verification.

    With `derive_overall` off, the model's own overall verdict is kept unless
    some source is marked accessed, in which case the weakest-verdict rule
    still applies.

    Never raises: unparseable replies become source_unavailable with confidence 0
    and an excerpt of the raw text in the explanation.
    """
    try:
        parsed = load_verification_payload(text)
    except ModelParseException as e:
        logger.error("Failed to parse verification response for %s: %s", footnote_id, e.details)
        raw = e.details.get("excerpt") or "<empty response>"
        return unavailable(footnote_id, f"{e.message}. Raw response: {raw}")

    sources = _parse_sources(parsed.get("sources"))
    accessed_sources = [s for s in sources if s.accessed]
    model_verdict = Verdict.coerce(parsed.get("overall_verdict") or parsed.get("verdict"))
    if accessed_sources or (derive_overall and sources):
        verdict = weakest_verdict(sources)
        if verdict != model_verdict:
            logger.info(
                "Overall verdict for %s adjusted from %s to %s (weakest accessed source)",
                footnote_id, model_verdict.value, verdict.value,
            )
    else:
        verdict = model_verdict

    source_accessed = bool(accessed_sources) or _coerce_bool(parsed.get("source_accessed", False))
    primary_url = next((s.url for s in accessed_sources if s.url), None) or parsed.get("source_url") or None

    return Verification(
        footnote_id=footnote_id,
        verdict=verdict,
        confidence=_coerce_confidence(parsed.get("confidence")),
        explanation=str(parsed.get("explanation") or "Unable to parse explanation"),
        source_accessed=source_accessed,
        source_url=primary_url,
        sources=sources or None,
    )

from citecheck.models import Footnote, Verification, VERDICT_VALUES, unavailable
from citecheck.prompts import QUICK_VERIFY_PROMPT, VERIFICATION_RESPONSE_SCHEMA
from .llm import ChatModel
from .verdict_parser import parse_verification_response


async def quick_verify(footnote: Footnote, chat_model: ChatModel) -> Verification:
    """Single tool-free model call judging the claim from the citation text alone.

    Used when the full investigation times out. Exceptions propagate so the
    orchestrator can record why the fallback failed.
    """
    chat = chat_model.start_chat(response_schema=VERIFICATION_RESPONSE_SCHEMA)
    response = await chat.send_message(QUICK_VERIFY_PROMPT.format(
        claim=footnote.claim_text,
        citation=footnote.citation_text,
        verdicts=", ".join(VERDICT_VALUES),
    ))
    if not response.text:
        return unavailable(footnote.id, "Quick verification returned no answer.")

    verification = parse_verification_response(response.text, footnote.id, derive_overall=False)
    return verification.model_copy(update={
        "explanation": f"[Quick verification without source access] {verification.explanation}",
    })

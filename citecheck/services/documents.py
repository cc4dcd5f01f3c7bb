import json
from dataclasses import replace
from typing import List, Optional

from citecheck.config import Settings, logger
from citecheck.exceptions import ConfigurationException
from citecheck.models import DocumentResult, Footnote, ProgressUpdate, Verification, sort_footnotes
from .orchestration import OrchestratorOptions, verify_all_footnotes
from .progress import ProgressHub
from .storage import BlobStore, results_key


async def save_result(blob_store: BlobStore, result: DocumentResult) -> None:
    await blob_store.put(results_key(result.document_id), json.dumps(result.to_wire()))


async def load_result(blob_store: BlobStore, document_id: str) -> Optional[DocumentResult]:
    raw = await blob_store.get(results_key(document_id))
    if raw is None:
        return None
    return DocumentResult.model_validate_json(raw)


def require_model_key(settings: Settings) -> str:
    if not settings.GEMINI_API_KEY:
        raise ConfigurationException("GEMINI_API_KEY")
    return settings.GEMINI_API_KEY


async def _mark_failed(
    document_id: str,
    footnotes: List[Footnote],
    error: str,
    blob_store: BlobStore,
    hub: ProgressHub,
) -> DocumentResult:
    result = DocumentResult(document_id=document_id, status="failed", footnotes=footnotes, error=error)
    await hub.publish(document_id, ProgressUpdate(
        status="failed",
        footnote_count=len(footnotes),
        error=error,
    ))
    await save_result(blob_store, result)
    await hub.release(document_id)
    return result


async def process_document(
    document_id: str,
    footnotes: List[Footnote],
    settings: Settings,
    blob_store: BlobStore,
    hub: ProgressHub,
    options: Optional[OrchestratorOptions] = None,
) -> DocumentResult:
    """Verify every footnote of one document, streaming progress and storing the result.

    The stored result tracks the progress snapshot: it is written as
    `processing` before the first claim runs and rewritten after each one.
    Claim-level failures are recorded as verdicts. Only a missing model key or
    an unexpected error during orchestration marks the whole document failed.
    """
    footnotes = sort_footnotes(footnotes)
    options = options or OrchestratorOptions()

    try:
        if options.chat_model is None:
            require_model_key(settings)
    except ConfigurationException as e:
        logger.error("Cannot process document %s: %s", document_id, e.message)
        return await _mark_failed(document_id, footnotes, e.message, blob_store, hub)

    if not settings.LINKUP_API_KEY:
        logger.warning("LINKUP_API_KEY is not set; web_search is unavailable for document %s", document_id)

    total = len(footnotes)

    async def write_processing(completed: List[Verification]) -> None:
        await hub.publish(document_id, ProgressUpdate(
            status="processing",
            footnote_count=total,
            verifications=completed,
        ))
        try:
            await save_result(blob_store, DocumentResult(
                document_id=document_id,
                status="processing",
                footnotes=footnotes,
                verifications=completed,
            ))
        except Exception as e:
            logger.warning("Failed to store interim results for %s: %s", document_id, e)

    await write_processing([])

    async def on_progress(completed: List[Verification]) -> None:
        logger.info("Document %s: %d/%d footnotes verified", document_id, len(completed), total)
        await write_processing(completed)

    user_callback = options.on_progress
    if user_callback is None:
        options = replace(options, on_progress=on_progress)
    else:
        async def chained(completed: List[Verification]) -> None:
            await on_progress(completed)
            await user_callback(completed)
        options = replace(options, on_progress=chained)

    try:
        verifications = await verify_all_footnotes(
            footnotes,
            settings.GEMINI_API_KEY,
            settings.LINKUP_API_KEY,
            options,
        )
    except Exception as e:
        logger.exception("Verification run failed for document %s", document_id)
        return await _mark_failed(document_id, footnotes, str(e), blob_store, hub)

    result = DocumentResult(
        document_id=document_id,
        status="complete",
        footnotes=footnotes,
        verifications=verifications,
    )
    await hub.publish(document_id, ProgressUpdate(
        status="complete",
        footnote_count=total,
        verifications=verifications,
    ))
    await save_result(blob_store, result)
    await hub.release(document_id)
    logger.info("Document %s complete with %d verifications", document_id, len(verifications))
    return result

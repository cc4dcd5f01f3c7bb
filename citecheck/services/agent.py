import asyncio
import json
import time
import uuid
from typing import List, Optional

from citecheck.config import LLM_CONFIG, TOOL_LIMITS, logger
from citecheck.models import Footnote, ToolCallRecord, Verification, unavailable
from citecheck.prompts import (
    FINAL_ANSWER_PROMPT,
    SYSTEM_INSTRUCTION,
    VERIFICATION_PROMPT,
    VERIFICATION_RESPONSE_SCHEMA,
)
from citecheck.tools import TOOL_DEFINITIONS, ToolContext, dispatch_tool_call
from citecheck.utils.parsing import truncate
from .llm import ChatModel, ModelResponse, ToolCallRequest, ToolResult
from .verdict_parser import parse_verification_response


def build_verification_prompt(footnote: Footnote) -> str:
    return VERIFICATION_PROMPT.format(
        footnote_label=footnote.display_label,
        claim=footnote.claim_text,
        citation=footnote.citation_text,
    )


def build_final_answer_prompt(footnote: Footnote, gathered: List[ToolCallRecord]) -> str:
    """Digest of every tool result so far, for the single tool-free closing turn."""
    if gathered:
        sections = []
        for i, record in enumerate(gathered, start=1):
            output = truncate(record.output, LLM_CONFIG.FINAL_DIGEST_CHARS_PER_TOOL)
            sections.append(f"[{i}] {record.tool}({json.dumps(record.input, default=str)})\n{output}")
        digest = "\n\n---\n\n".join(sections)
    else:
        digest = "(no tool results were gathered)"
    return build_verification_prompt(footnote) + FINAL_ANSWER_PROMPT.format(
        footnote_label=footnote.display_label,
        gathered=digest,
    )


class ClaimVerifier:
    """Drives one tool-augmented conversation for one footnote.

    Start -> AwaitingModel -> (ToolsRequested -> ExecutingTools -> AwaitingModel)*
    -> FinalAnswer | IterationCapReached. Every exit returns a Verification.
    """

    def __init__(
        self,
        chat_model: ChatModel,
        max_iterations: int = LLM_CONFIG.MAX_ITERATIONS,
    ):
        self.chat_model = chat_model
        self.max_iterations = max_iterations

    async def _execute_tool_calls(
        self,
        calls: List[ToolCallRequest],
        context: ToolContext,
        trace: List[ToolCallRecord],
        gathered: List[ToolCallRecord],
    ) -> List[ToolResult]:
        outputs = await asyncio.gather(
            *(dispatch_tool_call(call.name, call.args, context) for call in calls)
        )

        results = []
        for call, output in zip(calls, outputs):
            gathered.append(ToolCallRecord(tool=call.name, input=dict(call.args), output=output))
            trace.append(ToolCallRecord(
                tool=call.name,
                input=dict(call.args),
                output=truncate(output, TOOL_LIMITS.MAX_TRACE_OUTPUT_CHARS),
            ))
            results.append(ToolResult(name=call.name, output=output, id=call.id or str(uuid.uuid4())))
        return results

    async def _final_answer(self, footnote: Footnote, gathered: List[ToolCallRecord]) -> Optional[str]:
        chat = self.chat_model.start_chat(
            system_instruction=SYSTEM_INSTRUCTION,
            tools=None,
            response_schema=VERIFICATION_RESPONSE_SCHEMA,
        )
        response = await chat.send_message(build_final_answer_prompt(footnote, gathered))
        return response.text

    async def verify(self, footnote: Footnote, context: ToolContext) -> Verification:
        trace: List[ToolCallRecord] = []
        gathered: List[ToolCallRecord] = []
        started_at = time.monotonic()

        try:
            chat = self.chat_model.start_chat(
                system_instruction=SYSTEM_INSTRUCTION,
                tools=TOOL_DEFINITIONS,
                response_schema=VERIFICATION_RESPONSE_SCHEMA,
            )
            response: ModelResponse = await chat.send_message(build_verification_prompt(footnote))

            iterations = 0
            while response.tool_calls:
                if iterations >= self.max_iterations:
                    logger.info(
                        "Max iterations (%d) reached for footnote %s", self.max_iterations, footnote.id
                    )
                    break
                results = await self._execute_tool_calls(response.tool_calls, context, trace, gathered)
                response = await chat.send_tool_results(results)
                iterations += 1

            text = response.text
            if not text and response.tool_calls:
                text = await self._final_answer(footnote, gathered)

            if not text:
                return unavailable(
                    footnote.id,
                    f"Model produced no final answer after {iterations} tool rounds.",
                    trace,
                )

            verification = parse_verification_response(text, footnote.id).with_trace(trace)
            logger.info(
                "Footnote %s verified as %s in %.1fs with %d tool calls",
                footnote.id,
                verification.verdict.value,
                time.monotonic() - started_at,
                len(trace),
            )
            return verification

        except Exception as e:
            logger.exception("Verification error for footnote %s", footnote.id)
            return unavailable(footnote.id, f"Verification error: {e}", trace)


async def verify_footnote(
    footnote: Footnote,
    context: ToolContext,
    chat_model: ChatModel,
    max_iterations: int = LLM_CONFIG.MAX_ITERATIONS,
) -> Verification:
    return await ClaimVerifier(chat_model, max_iterations).verify(footnote, context)

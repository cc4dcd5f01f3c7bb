import pytest
from unittest.mock import AsyncMock, patch

from citecheck.exceptions import LLMException
from citecheck.models import Verdict, VerificationContext
from citecheck.services.agent import ClaimVerifier, build_final_answer_prompt
from citecheck.services.llm import ToolCallRequest
from citecheck.services.quick_verify import quick_verify
from citecheck.tests.conftest import FakeChatModel, text_reply, tool_reply, verdict_json
from citecheck.tools import PdfCache, ToolContext
from citecheck.utils.rate_limiter import BackoffRateLimiter


def _tool_context(footnotes, position):
    return ToolContext(
        verification=VerificationContext(ordered_footnotes=tuple(footnotes), current_position=position),
        search_api_key="key",
        rate_limiter=BackoffRateLimiter(name="test"),
        pdf_cache=PdfCache(),
    )


@pytest.mark.asyncio
class TestClaimVerifier:
    """Tests for the per-footnote tool loop."""

    async def test_direct_answer(self, sample_footnotes):
        model = FakeChatModel([text_reply(verdict_json("supports", 0.92))])

        result = await ClaimVerifier(model).verify(sample_footnotes[0], _tool_context(sample_footnotes, 0))

        assert result.footnote_id == "fn-1"
        assert result.verdict == Verdict.SUPPORTS
        assert result.confidence == 0.92
        assert result.trace == []
        session = model.sessions[0]
        assert "Global temperatures rose 1.1C" in session.first_message
        assert "IPCC AR6" in session.first_message
        assert {tool["name"] for tool in session.tools} == {
            "web_search", "read_url", "read_pdf_page", "get_earlier_footnotes",
        }

    async def test_id_reference_uses_earlier_footnote_tool(self, sample_footnotes):
        model = FakeChatModel([
            tool_reply(ToolCallRequest("get_earlier_footnotes", {"specific_index": 4}, "c1")),
            text_reply(verdict_json("partially_supports", 0.6)),
        ])

        result = await ClaimVerifier(model).verify(sample_footnotes[4], _tool_context(sample_footnotes, 4))

        assert result.verdict == Verdict.PARTIALLY_SUPPORTS
        assert len(result.trace) == 1
        assert result.trace[0].tool == "get_earlier_footnotes"
        assert result.trace[0].input == {"specific_index": 4}
        assert "Smith, Polar Studies 12 (2019), p. 44." in result.trace[0].output

        tool_results = model.sessions[0].messages[1]
        assert tool_results[0].id == "c1"
        assert tool_results[0].output == result.trace[0].output

    async def test_parallel_tool_calls_keep_request_order(self, sample_footnotes):
        model = FakeChatModel([
            tool_reply(
                ToolCallRequest("read_url", {"url": "https://a.example"}),
                ToolCallRequest("web_search", {"query": "coral cover"}),
            ),
            text_reply(verdict_json()),
        ])

        async def fake_dispatch(name, args, context):
            return f"{name} output"

        with patch("citecheck.services.agent.dispatch_tool_call", side_effect=fake_dispatch):
            result = await ClaimVerifier(model).verify(sample_footnotes[1], _tool_context(sample_footnotes, 1))

        assert [record.tool for record in result.trace] == ["read_url", "web_search"]
        assert [r.output for r in model.sessions[0].messages[1]] == ["read_url output", "web_search output"]

    async def test_trace_output_is_truncated(self, sample_footnotes):
        model = FakeChatModel([
            tool_reply(ToolCallRequest("read_url", {"url": "https://a.example"})),
            text_reply(verdict_json()),
        ])

        with patch("citecheck.services.agent.dispatch_tool_call", new=AsyncMock(return_value="z" * 5000)):
            result = await ClaimVerifier(model).verify(sample_footnotes[2], _tool_context(sample_footnotes, 2))

        assert result.trace[0].output == "z" * 2000 + "..."
        assert model.sessions[0].messages[1][0].output == "z" * 5000

    async def test_iteration_cap_forces_final_answer(self, sample_footnotes):
        endless = [tool_reply(ToolCallRequest("web_search", {"query": f"q{i}"})) for i in range(3)]
        model = FakeChatModel(endless + [text_reply(verdict_json("does_not_support", 0.7))])

        with patch("citecheck.services.agent.dispatch_tool_call", new=AsyncMock(return_value="nothing useful")):
            result = await ClaimVerifier(model, max_iterations=2).verify(
                sample_footnotes[3], _tool_context(sample_footnotes, 3)
            )

        assert result.verdict == Verdict.DOES_NOT_SUPPORT
        assert len(result.trace) == 2
        assert len(model.sessions) == 2
        final_session = model.sessions[1]
        assert final_session.tools is None
        assert "Tool use is now disabled" in final_session.first_message
        assert "web_search" in final_session.first_message
        assert "nothing useful" in final_session.first_message

    async def test_no_final_text(self, sample_footnotes):
        model = FakeChatModel([
            tool_reply(ToolCallRequest("web_search", {"query": "q"})),
            tool_reply(ToolCallRequest("web_search", {"query": "q2"})),
            text_reply(""),
        ])

        with patch("citecheck.services.agent.dispatch_tool_call", new=AsyncMock(return_value="r")):
            result = await ClaimVerifier(model, max_iterations=1).verify(
                sample_footnotes[0], _tool_context(sample_footnotes, 0)
            )

        assert result.verdict == Verdict.SOURCE_UNAVAILABLE
        assert result.confidence == 0
        assert len(result.trace) == 1

    async def test_prose_answer_is_source_unavailable(self, sample_footnotes):
        model = FakeChatModel([text_reply("I believe the claim is probably right.")])

        result = await ClaimVerifier(model).verify(sample_footnotes[0], _tool_context(sample_footnotes, 0))

        assert result.verdict == Verdict.SOURCE_UNAVAILABLE
        assert result.confidence == 0
        assert "probably right" in result.explanation

    async def test_model_error_keeps_trace(self, sample_footnotes):
        model = FakeChatModel([
            tool_reply(ToolCallRequest("get_earlier_footnotes", {"specific_index": 1})),
            LLMException("HTTP 503"),
        ])

        result = await ClaimVerifier(model).verify(sample_footnotes[1], _tool_context(sample_footnotes, 1))

        assert result.verdict == Verdict.SOURCE_UNAVAILABLE
        assert result.confidence == 0
        assert result.explanation == "Verification error: LLM service error: HTTP 503"
        assert len(result.trace) == 1


class TestFinalAnswerPrompt:
    def test_digest_lists_every_tool_result(self, sample_footnotes):
        from citecheck.models import ToolCallRecord

        prompt = build_final_answer_prompt(sample_footnotes[0], [
            ToolCallRecord(tool="web_search", input={"query": "ipcc"}, output="result one"),
            ToolCallRecord(tool="read_url", input={"url": "https://ipcc.ch"}, output="result two"),
        ])

        assert "[1] web_search" in prompt
        assert "[2] read_url" in prompt
        assert "result one" in prompt and "result two" in prompt

    def test_empty_digest(self, sample_footnotes):
        assert "(no tool results were gathered)" in build_final_answer_prompt(sample_footnotes[0], [])


@pytest.mark.asyncio
class TestQuickVerify:
    """Tests for the tool-free fallback call."""

    async def test_model_verdict_kept_when_nothing_accessed(self, sample_footnotes):
        reply = verdict_json("partially_supports", 0.3, "Citation looks plausible.", sources=[
            {"title": "Polar Studies", "accessed": False, "verdict": "partially_supports", "explanation": "not read"},
        ])
        model = FakeChatModel([text_reply(reply)])

        result = await quick_verify(sample_footnotes[3], model)

        assert result.verdict == Verdict.PARTIALLY_SUPPORTS
        assert result.source_accessed is False
        assert result.explanation == "[Quick verification without source access] Citation looks plausible."
        session = model.sessions[0]
        assert session.system_instruction is None
        assert session.tools is None

    async def test_weakest_verdict_applies_to_accessed_sources(self, sample_footnotes):
        reply = verdict_json("supports", 0.7, "Mixed.", sources=[
            {"url": "https://a.example", "accessed": True, "verdict": "supports", "explanation": "a"},
            {"url": "https://b.example", "accessed": True, "verdict": "does_not_support", "explanation": "b"},
        ])

        result = await quick_verify(sample_footnotes[0], FakeChatModel([text_reply(reply)]))

        assert result.verdict == Verdict.DOES_NOT_SUPPORT
        assert result.source_url == "https://a.example"

    async def test_empty_reply(self, sample_footnotes):
        result = await quick_verify(sample_footnotes[0], FakeChatModel([text_reply("")]))

        assert result.verdict == Verdict.SOURCE_UNAVAILABLE
        assert result.explanation == "Quick verification returned no answer."

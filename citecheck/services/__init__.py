from .llm import (
    ChatModel,
    ChatSession,
    GeminiChatModel,
    GeminiChatSession,
    ModelResponse,
    ToolCallRequest,
    ToolResult,
    call_gemini,
)
from .verdict_parser import parse_verification_response, weakest_verdict
from .agent import ClaimVerifier, verify_footnote
from .quick_verify import quick_verify
from .orchestration import OrchestratorOptions, VerificationRun, verify_all_footnotes
from .storage import BlobStore, FileBlobStore, InMemoryBlobStore, results_key
from .progress import (
    KeyValueProgressStore,
    ProgressActor,
    ProgressHub,
    ProgressStore,
    SqliteProgressStore,
    build_store_factory,
)
from .documents import load_result, process_document, save_result

__all__ = [
    "ChatModel",
    "ChatSession",
    "GeminiChatModel",
    "GeminiChatSession",
    "ModelResponse",
    "ToolCallRequest",
    "ToolResult",
    "call_gemini",
    "parse_verification_response",
    "weakest_verdict",
    "ClaimVerifier",
    "verify_footnote",
    "quick_verify",
    "OrchestratorOptions",
    "VerificationRun",
    "verify_all_footnotes",
    "BlobStore",
    "FileBlobStore",
    "InMemoryBlobStore",
    "results_key",
    "KeyValueProgressStore",
    "ProgressActor",
    "ProgressHub",
    "ProgressStore",
    "SqliteProgressStore",
    "build_store_factory",
    "load_result",
    "process_document",
    "save_result",
]

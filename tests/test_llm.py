"""
Tests for the Bedrock client against a mocked boto3 runtime client.
"""

import json
from unittest.mock import MagicMock

import pytest

from prreview.errors import GenerationFailure
from prreview.llm import USAGE_HEADER, BedrockClient


def _event(payload: dict) -> dict:
    return {"chunk": {"bytes": json.dumps(payload).encode("utf-8")}}


def _stream(texts: list[str], stop_reason: str = "end_turn") -> dict:
    events = [_event({"type": "message_start", "message": {"usage": {"input_tokens": 120}}})]
    events += [
        _event({"type": "content_block_delta", "delta": {"type": "text_delta", "text": t}})
        for t in texts
    ]
    events.append(
        _event(
            {
                "type": "message_delta",
                "delta": {"stop_reason": stop_reason},
                "usage": {"output_tokens": 42},
            }
        )
    )
    return {"body": events}


@pytest.fixture
def boto_client() -> MagicMock:
    return MagicMock()


# =============================================================================
# STREAMING
# =============================================================================

class TestInvoke:
    """Streaming responses, usage accounting and failures."""

    def test_text_is_assembled(self, boto_client, settings):
        """Text deltas are concatenated and the stop reason returned."""
        boto_client.invoke_model_with_response_stream.return_value = _stream(
            ["Summary: ", "fine", "."]
        )
        client = BedrockClient(settings, client=boto_client)

        text, stop_reason = client.invoke("system", "review this", tool="review_chunk")

        assert text == "Summary: fine."
        assert stop_reason == "end_turn"

    def test_request_body(self, boto_client, settings):
        """Model, token limit, temperature and prompts are sent."""
        boto_client.invoke_model_with_response_stream.return_value = _stream(["ok"])

        BedrockClient(settings, client=boto_client).invoke("be strict", "diff here")

        kwargs = boto_client.invoke_model_with_response_stream.call_args.kwargs
        body = json.loads(kwargs["body"])
        assert kwargs["modelId"] == settings.model_id
        assert body["max_tokens"] == 2000
        assert body["temperature"] == 0.3
        assert body["system"] == "be strict"
        assert body["messages"] == [{"role": "user", "content": "diff here"}]

    def test_usage_row_is_written(self, boto_client, settings):
        """One TSV row per call, under a header."""
        boto_client.invoke_model_with_response_stream.return_value = _stream(["ok"])

        BedrockClient(settings, client=boto_client).invoke("s", "u", tool="review_chunk[1/2]")

        with open(settings.usage_log_path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines[0] == USAGE_HEADER
        row = lines[1].split("\t")
        assert row[1:6] == [settings.model_id, "review_chunk[1/2]", "120", "42", "162"]

    def test_truncated_response(self, boto_client, settings):
        """max_tokens is passed through as the stop reason."""
        boto_client.invoke_model_with_response_stream.return_value = _stream(
            ["partial"], stop_reason="max_tokens"
        )
        _, stop_reason = BedrockClient(settings, client=boto_client).invoke("s", "u")
        assert stop_reason == "max_tokens"

    def test_stream_error_event(self, boto_client, settings):
        """An error event in the stream raises GenerationFailure."""
        boto_client.invoke_model_with_response_stream.return_value = {
            "body": [{"throttlingException": {"message": "Too many requests"}}]
        }

        with pytest.raises(GenerationFailure) as exc_info:
            BedrockClient(settings, client=boto_client).invoke("s", "u")

        assert "Too many requests" in str(exc_info.value)
        assert exc_info.value.origin == "bedrock"

    def test_request_error_is_wrapped(self, boto_client, settings):
        """Client errors surface as GenerationFailure with the cause chained."""
        boto_client.invoke_model_with_response_stream.side_effect = ConnectionError("no route")

        with pytest.raises(GenerationFailure) as exc_info:
            BedrockClient(settings, client=boto_client).invoke("s", "u")

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_malformed_chunk_is_skipped(self, boto_client, settings):
        """Undecodable chunks are skipped, not fatal."""
        stream = _stream(["kept"])
        stream["body"].insert(1, {"chunk": {"bytes": b"{not json"}})
        boto_client.invoke_model_with_response_stream.return_value = stream

        text, _ = BedrockClient(settings, client=boto_client).invoke("s", "u")
        assert text == "kept"

    def test_progress_callback_errors_are_contained(self, boto_client, settings):
        """A failing progress callback does not abort the stream."""
        boto_client.invoke_model_with_response_stream.return_value = _stream(["x"] * 40)
        on_progress = MagicMock(side_effect=ValueError("closed"))

        text, _ = BedrockClient(settings, client=boto_client).invoke(
            "s", "u", on_progress=on_progress
        )

        assert text == "x" * 40
        assert on_progress.call_count == 2

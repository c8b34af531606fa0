"""Unit tests for the assistant wire models."""

import pydantic
import pytest

from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    DoneChunk,
    HistoryItem,
    ReferencedTransaction,
    ReferencesChunk,
    parse_stream_chunk,
)


class TestReferencedTransaction:
    """Tests for referenced transaction decoding."""

    def test_decodes_camel_case(self):
        """Test wire names map onto snake_case fields."""
        ref = ReferencedTransaction.model_validate(
            {
                "id": "t1",
                "time": 1714550400,
                "type": 3,
                "sourceAmount": 4200,
                "destinationAmount": 0,
                "categoryName": "Groceries",
                "sourceAccountName": "Checking",
                "similarityScore": 0.5,
            }
        )

        assert ref.source_amount == 4200
        assert ref.destination_amount == 0
        assert ref.category_name == "Groceries"
        assert ref.similarity_score == 0.5
        assert ref.comment is None

    def test_unknown_fields_ignored(self):
        """Test newer server fields do not break decoding."""
        ref = ReferencedTransaction.model_validate(
            {"id": "t1", "time": 1, "type": 2, "sourceAmount": 10, "tagNames": ["food"]}
        )

        assert ref.id == "t1"

    @pytest.mark.parametrize("missing", ["id", "time", "type", "sourceAmount"])
    def test_required_fields(self, missing):
        """Test identity, time, type and amount are required."""
        payload = {"id": "t1", "time": 1, "type": 2, "sourceAmount": 10}
        del payload[missing]

        with pytest.raises(pydantic.ValidationError):
            ReferencedTransaction.model_validate(payload)

    def test_immutable(self, grocery_reference):
        """Test references cannot be changed after decoding."""
        with pytest.raises(pydantic.ValidationError):
            grocery_reference.source_amount = 1


class TestAssistantChatRequest:
    """Tests for request validation and encoding."""

    def test_payload_uses_wire_names(self):
        """Test the payload omits unset fields."""
        request = AssistantChatRequest(
            message="hi",
            history=[HistoryItem(role="assistant", content="Hello")],
        )

        assert request.to_payload() == {
            "mode": "chat",
            "message": "hi",
            "history": [{"role": "assistant", "content": "Hello"}],
        }

    @pytest.mark.parametrize("message", [None, "", "   "])
    def test_chat_requires_message(self, message):
        """Test chat requests need a non-blank message."""
        with pytest.raises(pydantic.ValidationError, match="message for ai assistant is empty"):
            AssistantChatRequest(mode="chat", message=message)

    def test_summary_without_message(self):
        """Test summary requests may omit the message."""
        request = AssistantChatRequest(mode="summary")

        assert request.to_payload() == {"mode": "summary"}

    def test_history_limit(self):
        """Test the server's history limit is enforced."""
        history = [HistoryItem(role="user", content=str(i)) for i in range(21)]

        with pytest.raises(pydantic.ValidationError):
            AssistantChatRequest(message="hi", history=history)

    def test_unknown_mode_rejected(self):
        """Test only chat and summary modes exist."""
        with pytest.raises(pydantic.ValidationError):
            AssistantChatRequest(mode="translate", message="hi")


class TestAssistantChatResponse:
    """Tests for direct reply decoding."""

    def test_without_references(self):
        """Test references are optional."""
        response = AssistantChatResponse.model_validate({"mode": "summary", "reply": "All good."})

        assert response.references is None


class TestParseStreamChunk:
    """Tests for stream chunk decoding."""

    def test_reply_delta(self):
        """Test reply deltas decode."""
        chunk = parse_stream_chunk({"type": "reply_delta", "delta": "Hi"})

        assert chunk.type == "reply_delta"
        assert chunk.delta == "Hi"

    def test_missing_delta_defaults_empty(self):
        """Test a delta chunk without text contributes nothing."""
        chunk = parse_stream_chunk({"type": "thinking_delta"})

        assert chunk.delta == ""

    def test_references(self):
        """Test references chunks decode their transactions."""
        chunk = parse_stream_chunk(
            {
                "type": "references",
                "references": [{"id": "t1", "time": 1, "type": 2, "sourceAmount": 10}],
            }
        )

        assert isinstance(chunk, ReferencesChunk)
        assert chunk.references[0].source_amount == 10

    def test_done(self):
        """Test done chunks decode their final text."""
        chunk = parse_stream_chunk({"type": "done", "mode": "chat", "reply": "Final"})

        assert isinstance(chunk, DoneChunk)
        assert chunk.reply == "Final"
        assert chunk.thinking is None

    @pytest.mark.parametrize("payload", [{"type": "heartbeat"}, {"delta": "x"}, {}])
    def test_unknown_type(self, payload):
        """Test unknown or missing chunk types are not decoded."""
        assert parse_stream_chunk(payload) is None

    def test_malformed_known_type(self):
        """Test a recognized chunk with bad data raises."""
        with pytest.raises(pydantic.ValidationError):
            parse_stream_chunk({"type": "reply_delta", "delta": ["not", "text"]})

"""
Unit tests for queue errors.
"""

from sqlalchemy.exc import SQLAlchemyError

from docqueue.errors import QueueError, StoreError, UnidentifiedAckError, ValidationError


class TestErrors:
    """Tests for the error types."""

    def test_unidentified_ack_message(self):
        """Test the error message names the operation and token."""
        error = UnidentifiedAckError("ping", "abc123")

        assert str(error) == "Queue.ping(): Unidentified ack : abc123"
        assert error.operation == "ping"
        assert error.ack == "abc123"

    def test_hierarchy(self):
        """Test that queue errors share a base class."""
        assert issubclass(UnidentifiedAckError, QueueError)
        assert issubclass(ValidationError, QueueError)
        assert issubclass(ValidationError, ValueError)

    def test_store_error_is_sqlalchemy_error(self):
        """Test that store failures are plain SQLAlchemy errors."""
        assert StoreError is SQLAlchemyError
        assert not issubclass(StoreError, QueueError)

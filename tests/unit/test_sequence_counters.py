"""Tests for durable sequence counters."""

from commerce_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("sales.invoice") == 1

    def test_values_increase(self, session):
        sequences = SequenceService(session)

        values = [sequences.next_value("sales.invoice") for _ in range(3)]

        assert values == [1, 2, 3]

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("sales.invoice")
        sequences.next_value("sales.invoice")

        assert sequences.next_value("purchase.order") == 1
        assert sequences.current_value("sales.invoice") == 2

    def test_current_value_of_unused_sequence(self, session):
        assert SequenceService(session).current_value("sales.credit") is None

    def test_committed_values_survive_new_session_instances(self, session):
        SequenceService(session).next_value("inventory.transfer")
        session.commit()

        assert SequenceService(session).next_value("inventory.transfer") == 2

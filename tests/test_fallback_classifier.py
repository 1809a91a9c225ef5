"""Tests for the keyword fallback classifier."""

from helpdesk.config import Priority
from helpdesk.triage.domain import (
    NOTES_MANUAL_REVIEW,
    SUMMARY_UNAVAILABLE,
    FallbackClassifier,
)


class TestFallbackClassifier:

    def setup_method(self):
        self.classifier = FallbackClassifier()

    def test_printer_ticket_maps_to_hardware(self):
        result = self.classifier.classify("Printer broken", "Paper jam on floor 3")

        assert result.skills == ("hardware",)
        assert result.priority == Priority.MEDIUM

    def test_outage_escalates_to_high(self):
        result = self.classifier.classify("VPN down", "The whole office network is down, urgent")

        assert result.priority == Priority.HIGH
        assert "networking" in result.skills

    def test_login_blocker_is_high(self):
        result = self.classifier.classify("Locked out", "I cannot log in to my account")

        assert result.priority == Priority.HIGH
        assert result.skills == ("account management",)

    def test_skills_are_sorted(self):
        result = self.classifier.classify(
            "Invoice email", "The billing email never reached my Outlook inbox"
        )

        assert result.skills == ("billing", "email")

    def test_unmatched_text_has_no_skills(self):
        result = self.classifier.classify("Question", "How do I change my desk?")

        assert result.skills == ()
        assert result.priority == Priority.MEDIUM

    def test_result_carries_sentinels(self):
        result = self.classifier.classify("Printer broken", "jam")

        assert result.summary == SUMMARY_UNAVAILABLE
        assert result.notes == NOTES_MANUAL_REVIEW

    def test_deterministic(self):
        first = self.classifier.classify("Server crash", "API returns 500 error after deploy")
        second = self.classifier.classify("Server crash", "API returns 500 error after deploy")

        assert first == second
        assert first.priority == Priority.HIGH
        assert first.skills == ("backend",)

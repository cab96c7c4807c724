"""Unit tests for the inbox processing pipeline."""

from datetime import datetime, timedelta, timezone

import pytest

from inbox_agent.config import settings
from inbox_agent.core.exceptions import ConfigurationError
from inbox_agent.core.models import Action, ClassificationResult, LogStatus, UserCredentials
from inbox_agent.processors.inbox import InboxProcessor
from inbox_agent.tests.conftest import activities, logged, make_raw_message


@pytest.fixture
def processor(mock_store, mock_mail, mock_classifier) -> InboxProcessor:
    return InboxProcessor(store=mock_store, mail=mock_mail, classifier=mock_classifier)


class TestAgentInactive:
    """Runs for users without an active agent do nothing."""

    def test_inactive_agent_makes_no_calls(self, processor, mock_store, mock_mail, sample_credentials):
        sample_credentials.agent_active = False

        stats = processor.process_new_emails("user-1")

        assert stats["fetched"] == 0
        mock_mail.list_unseen.assert_not_called()
        mock_store.append_log.assert_not_called()
        mock_store.append_activity.assert_not_called()

    def test_missing_credentials_makes_no_calls(self, processor, mock_store, mock_mail):
        mock_store.get_credentials.return_value = None

        processor.process_new_emails("user-1")

        mock_mail.list_unseen.assert_not_called()
        mock_store.append_log.assert_not_called()
        mock_store.append_activity.assert_not_called()


class TestRunLevelFailures:
    def test_list_failure_aborts_run_quietly(self, processor, mock_store, mock_mail):
        mock_mail.list_unseen.side_effect = ConfigurationError("Gmail not connected")

        stats = processor.process_new_emails("user-1")

        assert stats["errors"] == 1
        mock_store.append_log.assert_not_called()

    def test_credential_lookup_failure_aborts_run_quietly(self, processor, mock_store, mock_mail):
        mock_store.get_credentials.side_effect = RuntimeError("db down")

        stats = processor.process_new_emails("user-1")

        assert stats["errors"] == 1
        mock_mail.list_unseen.assert_not_called()

    def test_uses_configured_query_and_batch_cap(self, processor, mock_mail):
        processor.process_new_emails("user-1")

        mock_mail.list_unseen.assert_called_once_with(
            "user-1",
            settings.mail_query,
            settings.max_emails_per_run,
        )


class TestIdempotency:
    def test_already_processed_message_is_skipped(self, processor, mock_store, mock_classifier):
        mock_store.get_processed_message_ids.return_value = {"msg-1"}

        stats = processor.process_new_emails("user-1")

        assert stats["skipped"] == 1
        mock_classifier.classify.assert_not_called()
        mock_store.append_log.assert_not_called()
        mock_store.append_activity.assert_not_called()

    def test_duplicate_in_same_batch_processed_once(self, processor, mock_store, mock_mail, raw_message):
        mock_mail.list_unseen.return_value = [raw_message, raw_message]

        stats = processor.process_new_emails("user-1")

        assert stats["processed"] == 1
        assert stats["skipped"] == 1
        assert len(activities(mock_store)) == 1

    def test_process_email_loads_ids_when_not_given(self, processor, mock_store, raw_message):
        mock_store.get_processed_message_ids.return_value = {"msg-1"}

        assert processor.process_email("user-1", raw_message) is None
        mock_store.get_processed_message_ids.assert_called_once()

    def test_retry_threshold_passes_cutoff(self, processor, mock_store, monkeypatch):
        monkeypatch.setattr(settings, "pending_retry_after_minutes", 30)

        processor.process_new_emails("user-1")

        cutoff = mock_store.get_processed_message_ids.call_args.kwargs["retry_pending_before"]
        expected = datetime.now(timezone.utc) - timedelta(minutes=30)
        assert abs((cutoff - expected).total_seconds()) < 5

    def test_no_retry_threshold_by_default(self, processor, mock_store, monkeypatch):
        monkeypatch.setattr(settings, "pending_retry_after_minutes", None)

        processor.process_new_emails("user-1")

        assert mock_store.get_processed_message_ids.call_args.kwargs["retry_pending_before"] is None


class TestReplyScenario:
    """Recruiter asks for a resume."""

    def test_reply_success(self, processor, mock_store, mock_mail):
        stats = processor.process_new_emails("user-1")

        pending, sent = logged(mock_store)
        assert pending.status == LogStatus.PENDING
        assert pending.action == Action.REPLY
        assert pending.subject == "Software Engineer role"
        assert pending.from_email == "Recruiter <recruiter@acme.com>"
        assert sent.status == LogStatus.SENT
        assert sent.response_text

        [activity] = activities(mock_store)
        assert activity.type == "email_reply"
        assert activity.description == "Email replied to: Software Engineer role"
        assert activity.metadata == {
            "from": "Recruiter <recruiter@acme.com>",
            "subject": "Software Engineer role",
            "action": "reply",
            "confidence": 0.9,
        }

        mock_mail.send.assert_called_once()
        assert stats["processed"] == 1
        assert stats["replied"] == 1
        assert stats["failed"] == 0

    def test_reply_send_failure(self, processor, mock_store, mock_mail):
        mock_mail.send.side_effect = RuntimeError("send failed")

        stats = processor.process_new_emails("user-1")

        pending, failed = logged(mock_store)
        assert pending.status == LogStatus.PENDING
        assert failed.status == LogStatus.FAILED
        assert failed.subject == "Reply failed"

        [activity] = activities(mock_store)
        assert activity.type == "email_reply"
        assert stats["failed"] == 1

    def test_sent_row_write_failure_still_records_activity(self, processor, mock_store, mock_mail):
        append_log = mock_store.append_log.side_effect

        def fail_on_sent(entry):
            if entry.status == LogStatus.SENT:
                raise RuntimeError("connection lost")
            return append_log(entry)

        mock_store.append_log.side_effect = fail_on_sent

        stats = processor.process_new_emails("user-1")

        mock_mail.send.assert_called_once()
        [activity] = activities(mock_store)
        assert activity.type == "email_reply"
        assert stats["replied"] == 1
        assert stats["failed"] == 0

    def test_pending_row_written_before_dispatch(self, processor, mock_store, mock_mail):
        seen_at_send = []
        mock_mail.send.side_effect = lambda *a, **kw: seen_at_send.extend(e.status for e in logged(mock_store))

        processor.process_new_emails("user-1")

        assert seen_at_send == [LogStatus.PENDING]
        assert len(logged(mock_store)) == 2


class TestStarScenario:
    """Recruiter says the user made the next round."""

    def test_star(self, processor, mock_store, mock_mail, mock_classifier):
        mock_mail.list_unseen.return_value = [make_raw_message(
            message_id="msg-2",
            subject="Next steps",
            body="Congratulations, you're selected for the next round",
        )]
        mock_classifier.classify.return_value = ClassificationResult(action=Action.STAR, confidence=0.95)

        stats = processor.process_new_emails("user-1")

        mock_mail.flag.assert_called_once_with("user-1", "msg-2")
        mock_mail.send.assert_not_called()
        pending, sent = logged(mock_store)
        assert pending.action == Action.STAR
        assert sent.status == LogStatus.SENT
        [activity] = activities(mock_store)
        assert activity.type == "email_star"
        assert activity.description == "Email starred: Next steps"
        assert stats["starred"] == 1


class TestIgnoreScenario:
    def test_ignore_writes_pending_row_and_activity_only(self, processor, mock_store, mock_mail, mock_classifier):
        mock_classifier.classify.return_value = ClassificationResult(action=Action.IGNORE, confidence=0.7)

        stats = processor.process_new_emails("user-1")

        [entry] = logged(mock_store)
        assert entry.action == Action.IGNORE
        assert entry.status == LogStatus.PENDING
        [activity] = activities(mock_store)
        assert activity.type == "email_ignore"
        assert activity.description == "Email processed: Software Engineer role"
        mock_mail.send.assert_not_called()
        mock_mail.flag.assert_not_called()
        assert stats["ignored"] == 1


class TestFailureIsolation:
    def test_one_bad_message_does_not_stop_batch(self, processor, mock_store, mock_mail, mock_classifier, reply_classification):
        mock_mail.list_unseen.return_value = [
            make_raw_message(message_id="bad"),
            make_raw_message(message_id="good"),
        ]
        mock_classifier.classify.side_effect = [RuntimeError("model overloaded"), reply_classification]

        stats = processor.process_new_emails("user-1")

        assert stats["errors"] == 1
        assert stats["processed"] == 1
        assert {e.message_id for e in logged(mock_store)} == {"good"}

    def test_classification_failure_leaves_message_unlogged(self, processor, mock_store, mock_classifier):
        mock_classifier.classify.side_effect = ConfigurationError("Classifier API key not configured")

        result = processor.process_email("user-1", make_raw_message(), set())

        assert result.success is False
        assert result.action is None
        mock_store.append_log.assert_not_called()

    def test_activity_failure_is_contained(self, processor, mock_store):
        mock_store.append_activity.side_effect = RuntimeError("db down")

        stats = processor.process_new_emails("user-1")

        assert stats["errors"] == 1
        assert len(logged(mock_store)) == 2


class TestDefaults:
    def test_process_delegates(self, processor, mock_mail):
        processor.process("user-1")
        mock_mail.list_unseen.assert_called_once()

    def test_inactive_record_from_store(self, processor, mock_store, mock_mail):
        mock_store.get_credentials.return_value = UserCredentials(user_id="user-1")

        processor.process_new_emails("user-1")

        mock_mail.list_unseen.assert_not_called()

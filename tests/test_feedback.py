import json
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from mission_coach.core.errors import PersistenceError
from mission_coach.models.conversation import ConversationFeedback
from mission_coach.services.feedback import ConversationData, FeedbackCollector, FeedbackEntry


def _data():
    return ConversationData(
        transcript='Texte',
        conversation=[
            {'role': 'ai', 'content': 'Bonjour !', 'timestamp': '2024-05-01T10:00:00', 'feedback': 'negative'},
        ],
        upload_date=datetime(2024, 5, 1),
        transcript_title='entretien',
        session_duration_ms=1500,
        last_feedback=FeedbackEntry(
            message_id='m1',
            type='negative',
            message_content='Bonjour !',
            transcript_context='Texte',
            detailed_feedback='Trop vague',
        ),
        session_id='s1',
    )


def test_saves_snapshot(session_factory):
    row_id = FeedbackCollector(session_factory).save_conversation_data(_data())

    db = session_factory()
    row = db.get(ConversationFeedback, row_id)
    assert row.message_id == 'm1'
    assert row.feedback_type == 'negative'
    assert row.detail == 'Trop vague'
    assert row.transcript_context == 'Texte'
    assert row.session_duration_ms == 1500
    assert json.loads(row.conversation_json)[0]['role'] == 'ai'
    db.close()


def test_database_failure_raises(session_factory):
    def broken_factory():
        db = session_factory()

        def broken_commit():
            raise OperationalError('COMMIT', {}, Exception('locked'))

        db.commit = broken_commit
        return db

    with pytest.raises(PersistenceError):
        FeedbackCollector(broken_factory).save_conversation_data(_data())

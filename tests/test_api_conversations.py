from mission_coach.api import deps
from mission_coach.core.errors import PersistenceError

PAYLOAD = {
    'title': 'Entretien du lundi',
    'messages': [
        {'content': 'Bonjour !', 'sender': 'ai', 'timestamp': '2024-05-01T10:00:00'},
        {'content': 'Salut', 'sender': 'user', 'timestamp': '2024-05-01T10:00:05', 'feedback': 'none'},
    ],
    'transcript': {'title': 'entretien', 'content': 'Texte', 'uploadDate': '2024-05-01T09:59:00'},
}


def _create(api, **overrides):
    r = api.post('/api/db', json={**PAYLOAD, **overrides})
    assert r.status_code == 201
    return r.json()['conversationId']


def test_create_and_read(api):
    conversation_id = _create(api)

    r = api.get('/api/db', params={'conversationId': conversation_id})
    assert r.status_code == 200
    body = r.json()
    assert body['title'] == 'Entretien du lundi'
    assert body['user_id'] == 1
    assert [m['content'] for m in body['messages']] == ['Bonjour !', 'Salut']
    assert body['transcript']['content'] == 'Texte'


def test_list_by_user(api):
    _create(api)
    _create(api, userId=2, title='Autre')

    r = api.get('/api/db', params={'userId': 2})
    assert r.status_code == 200
    assert [c['title'] for c in r.json()] == ['Autre']
    assert r.json()[0]['message_count'] == 2

    # userId defaults to 1
    assert [c['title'] for c in api.get('/api/db').json()] == ['Entretien du lundi']


def test_unknown_conversation_is_404(api):
    assert api.get('/api/db', params={'conversationId': 999}).status_code == 404


def test_rename_and_favorite(api):
    conversation_id = _create(api)

    r = api.put('/api/db', params={'conversationId': conversation_id, 'action': 'title'}, json={'title': 'Nouveau'})
    assert r.status_code == 200
    assert r.json() == {'success': True}

    r = api.put('/api/db', params={'conversationId': conversation_id, 'action': 'favorite'})
    assert r.json() == {'success': True}

    body = api.get('/api/db', params={'conversationId': conversation_id}).json()
    assert body['title'] == 'Nouveau'
    assert body['is_favorite'] is True


def test_rename_requires_title(api):
    conversation_id = _create(api)
    r = api.put('/api/db', params={'conversationId': conversation_id, 'action': 'title'})
    assert r.status_code == 400


def test_unknown_action_is_rejected(api):
    conversation_id = _create(api)
    r = api.put('/api/db', params={'conversationId': conversation_id, 'action': 'archive'})
    assert r.status_code == 422


def test_update_unknown_conversation_is_404(api):
    r = api.put('/api/db', params={'conversationId': 999, 'action': 'favorite'})
    assert r.status_code == 404


def test_delete(api):
    conversation_id = _create(api)
    r = api.delete('/api/db', params={'conversationId': conversation_id})
    assert r.json() == {'success': True}
    assert api.delete('/api/db', params={'conversationId': conversation_id}).status_code == 404


def test_unsupported_method_is_405(api):
    assert api.patch('/api/db').status_code == 405


def test_storage_failure_is_generic_500(api):
    from main import app

    class BrokenStore:
        def get_conversations(self, user_id):
            raise PersistenceError('get_conversations failed')

    app.dependency_overrides[deps.get_conversation_store] = lambda: BrokenStore()
    r = api.get('/api/db')
    assert r.status_code == 500
    assert r.json() == {'error': 'Internal Server Error'}

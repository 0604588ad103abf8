"""Quick smoke test against a running server (COACH_PROVIDER=stub recommended)."""
import httpx

base = 'http://127.0.0.1:8000'

# 1. Provider diagnostics
r = httpx.get(f'{base}/api/coach/debug')
print(f'1. Debug: {r.status_code} — provider={r.json().get("provider")}')

# 2. Upload a transcript
transcript = (
    "Coach: Qu'est-ce qui te motive le plus dans ton travail?\n"
    "Client: J'aime aider les autres à progresser.\n"
)
r = httpx.post(
    f'{base}/api/coach/sessions',
    files={'file': ('entretien.txt', transcript.encode('utf-8'), 'text/plain')},
    timeout=60,
)
print(f'2. Upload: {r.status_code}')
if r.status_code != 201:
    print(f'   {r.text[:200]}')
    raise SystemExit(1)
session = r.json()
session_id = session['sessionId']
print(f'   session={session_id[:8]} messages={len(session["messages"])}')

# 3. Configure two steps
r = httpx.put(f'{base}/api/coach/sessions/{session_id}/settings', json={
    'coachingSteps': {
        'valeurs': {'title': 'Valeurs', 'questions': ['Quelles sont tes valeurs?']},
        'forces': {'title': 'Forces', 'questions': ['Quelles sont tes forces?']},
    },
    'stepOrder': ['valeurs', 'forces'],
})
print(f'3. Settings: {r.status_code}')

# 4. Chat
r = httpx.post(
    f'{base}/api/coach/sessions/{session_id}/messages',
    json={'message': "J'ai terminé cette étape"},
    timeout=60,
)
print(f'4. Message: {r.status_code} — stepCompleted={r.json().get("stepCompleted")}')

# 5. Next step
r = httpx.post(f'{base}/api/coach/sessions/{session_id}/next-step')
print(f'5. Next step: {r.status_code} — {r.json().get("progress", {}).get("currentStep")}')

# 6. Persist the conversation
r = httpx.post(f'{base}/api/db', json={
    'title': session['title'],
    'messages': [
        {'content': m['content'], 'sender': m['sender'], 'timestamp': m['timestamp']}
        for m in session['messages']
    ],
    'transcript': {'title': session['title'], 'content': transcript},
})
print(f'6. Save: {r.status_code} — {r.text}')
conversation_id = r.json()['conversationId']

# 7. List and delete
r = httpx.get(f'{base}/api/db', params={'userId': 1})
print(f'7. List: {r.status_code} — count={len(r.json())}')
r = httpx.delete(f'{base}/api/db', params={'conversationId': conversation_id})
print(f'8. Delete: {r.status_code}')

print('\n=== ALL SMOKE TESTS PASSED ===')

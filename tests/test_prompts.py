from mission_coach.services.ai_coach.prompts import (
    BOLD_RULES,
    COMPLETION_MARKER,
    LENGTH_GUIDANCE,
    OFF_TOPIC_REPLY,
    build_messages,
    build_step_context,
    build_system_prompt,
    has_completion_marker,
    strip_completion_marker,
)
from mission_coach.services.coaching.settings import AISettings
from mission_coach.services.coaching.steps import CoachingStepData


def test_system_prompt_sections_in_order():
    settings = AISettings(custom_instructions='Tu es un coach.', tonality='Calme')
    prompt = build_system_prompt(settings, 'La transcription', 'CONTEXTE ÉTAPE')

    sections = [
        'Tu es un coach.',
        'Règles de Communication IMPORTANTES',
        'RÈGLES DE MISE EN GRAS',
        'Longueur des réponses',
        'Tonalité à adopter: Calme',
        'CONTEXTE ÉTAPE',
        'Voici la transcription à analyser: La transcription',
    ]
    positions = [prompt.index(s) for s in sections]
    assert positions == sorted(positions)
    assert prompt.endswith('Voici la transcription à analyser: La transcription')


def test_tutoiement_and_vouvoiement_rules():
    tu = build_system_prompt(AISettings(use_tutoiement=True), 'T')
    vous = build_system_prompt(AISettings(use_tutoiement=False), 'T')
    assert 'EXCLUSIVEMENT le tutoiement' in tu
    assert 'EXCLUSIVEMENT le vouvoiement' in vous
    assert OFF_TOPIC_REPLY in tu


def test_bold_rules_are_optional():
    assert BOLD_RULES in build_system_prompt(AISettings(bold_words=True), 'T')
    assert BOLD_RULES not in build_system_prompt(AISettings(bold_words=False), 'T')


def test_length_guidance_matches_setting():
    prompt = build_system_prompt(AISettings(response_length='detailed'), 'T')
    assert LENGTH_GUIDANCE['detailed'] in prompt
    assert LENGTH_GUIDANCE['concise'] not in prompt


def test_no_step_context_by_default():
    prompt = build_system_prompt(AISettings(), 'T')
    assert COMPLETION_MARKER not in prompt


def test_step_context_mentions_marker_and_follow_ups():
    step = CoachingStepData(
        title='Valeurs',
        description='Identifier tes valeurs.',
        questions=['Quelles sont tes valeurs?', 'Pourquoi celle-ci?', 'Un exemple?'],
    )
    context = build_step_context(step, max_follow_ups=1)

    assert '"Valeurs"' in context
    assert 'Identifier tes valeurs.' in context
    assert 'Question actuelle : Quelles sont tes valeurs?' in context
    assert '- Pourquoi celle-ci?' in context
    assert 'Un exemple?' not in context
    assert COMPLETION_MARKER in context


def test_build_messages():
    assert build_messages('sys', 'user') == [
        {'role': 'system', 'content': 'sys'},
        {'role': 'user', 'content': 'user'},
    ]


def test_completion_marker_helpers():
    text = f'Bravo, étape finie.\n\n{COMPLETION_MARKER}'
    assert has_completion_marker(text)
    assert strip_completion_marker(text) == 'Bravo, étape finie.'
    assert not has_completion_marker('Rien ici')

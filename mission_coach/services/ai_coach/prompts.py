"""
Prompt assembly for the coaching assistant.

The system message is built from the session's AISettings: custom
instructions, the fixed communication rules, optional bold-keyword rules,
response-length guidance, tonality, the current coaching step (if any) and
finally the sanitised transcript.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from mission_coach.services.coaching.settings import AISettings
from mission_coach.services.coaching.steps import CoachingStepData

COMPLETION_MARKER = '[ÉTAPE_COMPLÉTÉE]'

INITIAL_ANALYSIS_PROMPT = (
    "Analyse cette transcription et commence notre conversation en partageant tes "
    "observations sur les valeurs et motivations qui ressortent. Aide-moi à explorer ce "
    "qui me motive vraiment, en te basant sur la réalité de mes actions et de mes choix "
    "quotidiens."
)

OFF_TOPIC_REPLY = (
    "Je suis désolé, mais je ne peux répondre qu'aux questions en lien avec la "
    "transcription fournie. Pourrais-tu me poser une question sur le contenu de la "
    "transcription ?"
)

_TUTOIEMENT_RULE = 'Utilise EXCLUSIVEMENT le tutoiement (tu, ton, ta, tes), JAMAIS le vouvoiement'
_VOUVOIEMENT_RULE = 'Utilise EXCLUSIVEMENT le vouvoiement (vous, votre, vos), JAMAIS le tutoiement'

COMMUNICATION_RULES = """\
Règles de Communication IMPORTANTES:
- {address_rule}
- Pour la PREMIÈRE réponse uniquement: commence par "Bonjour !" de manière chaleureuse
- Pour TOUTES les autres réponses: NE commence PAS par des salutations, entre directement dans le sujet
- Structure tes réponses avec des sauts de ligne pour une meilleure lisibilité
- Évite les listes numérotées formelles, préfère une discussion fluide
- Pose des questions ouvertes et encourageantes
- Reformule les idées de manière empathique
- RÈGLE CRUCIALE: Réponds UNIQUEMENT aux questions en lien avec la transcription fournie. Si la question n'est pas liée à la transcription, réponds poliment: "{off_topic}\""""

BOLD_RULES = """\
RÈGLES DE MISE EN GRAS IMPORTANTES:
Utilise le format markdown **texte** pour mettre en gras de manière modérée:
1. Les valeurs et qualités principales:
   - Les valeurs personnelles importantes (ex: "**l'authenticité**")
   - Les qualités marquantes (ex: "**ta capacité d'adaptation**")

2. Les moments clés:
   - Les événements significatifs (ex: "**quand tu as pris cette décision**")
   - Les réalisations importantes (ex: "**lorsque tu as accompli**")

3. Les insights majeurs:
   - Les découvertes importantes (ex: "**je remarque que**")
   - Les conclusions significatives (ex: "**ce qui montre**")

4. Les questions essentielles:
   - Les questions de réflexion clés (ex: "**qu'est-ce qui te motive vraiment ?**")

5. Les émotions significatives:
   - Les émotions importantes (ex: "**tu sembles enthousiaste**")

IMPORTANT: Utilise le gras avec modération, en visant 1-2 éléments par paragraphe pour une meilleure lisibilité."""

LENGTH_GUIDANCE: Dict[str, str] = {
    'concise': (
        "- Sois bref et direct, va droit à l'essentiel\n"
        "- Limite-toi à 2-3 phrases par point\n"
        "- Évite les détails non essentiels"
    ),
    'balanced': (
        "- Maintiens un équilibre entre concision et détail\n"
        "- Fournis suffisamment de contexte sans être verbeux\n"
        "- Reste pertinent et informatif"
    ),
    'detailed': (
        "- Fournis des explications détaillées et approfondies\n"
        "- Développe chaque point avec des exemples\n"
        "- Explore les nuances et les implications"
    ),
}


def build_step_context(step: CoachingStepData, max_follow_ups: int = 0) -> str:
    """Describe the active coaching step and how to signal its completion."""
    lines = [
        f'Nous sommes à l\'étape "{step.title}" du processus de coaching.',
    ]
    if step.description:
        lines.append(step.description)
    lines.append(f'Question actuelle : {step.main_question}')

    follow_ups = [q for q in step.follow_up_questions[:max_follow_ups] if q.strip()]
    if follow_ups:
        lines.append('Questions de suivi possibles :')
        lines.extend(f'- {q}' for q in follow_ups)

    lines.extend([
        '',
        'Règles importantes:',
        "1. Reste concentré sur l'objectif de cette étape",
        "2. Ne passe pas à l'étape suivante tant que celle-ci n'est pas complétée",
        f'3. Quand l\'étape est complétée, termine ta réponse par la phrase exacte: "{COMPLETION_MARKER}"',
    ])
    return '\n'.join(lines)


def build_system_prompt(
    settings: AISettings,
    transcript: str,
    step_context: Optional[str] = None,
) -> str:
    sections: List[str] = [settings.custom_instructions or '']

    address_rule = _TUTOIEMENT_RULE if settings.use_tutoiement else _VOUVOIEMENT_RULE
    sections.append(COMMUNICATION_RULES.format(address_rule=address_rule, off_topic=OFF_TOPIC_REPLY))

    if settings.bold_words:
        sections.append(BOLD_RULES)

    sections.append('Longueur des réponses:\n' + LENGTH_GUIDANCE[settings.response_length])
    sections.append(f'Tonalité à adopter: {settings.tonality or "Empathique et encourageant"}')

    if step_context:
        sections.append(step_context)

    sections.append(f'Voici la transcription à analyser: {transcript}')
    return '\n\n'.join(sections)


def build_messages(system_prompt: str, user_message: str) -> List[Dict[str, str]]:
    return [
        {'role': 'system', 'content': system_prompt},
        {'role': 'user', 'content': user_message},
    ]


def has_completion_marker(text: str) -> bool:
    return COMPLETION_MARKER in text


def strip_completion_marker(text: str) -> str:
    return text.replace(COMPLETION_MARKER, '').strip()

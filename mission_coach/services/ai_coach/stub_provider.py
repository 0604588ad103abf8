"""
StubProvider — deterministic provider for offline development and tests.

Selected with ``COACH_PROVIDER=stub``.  Replies in French, greets only on
the opening analysis, and emits the step-completion marker once the user
says they are done with a step.
"""
from __future__ import annotations

from typing import Dict, List

from mission_coach.services.ai_coach.base import CoachProvider, CompletionResult
from mission_coach.services.ai_coach.prompts import COMPLETION_MARKER, INITIAL_ANALYSIS_PROMPT

_OPENING_PREFIX = INITIAL_ANALYSIS_PROMPT.split(' en ')[0]
_DONE_KEYWORDS = ('terminé', 'termine', 'fini', 'étape suivante', 'etape suivante')

_OPENING_REPLY = """\
Bonjour ! Merci d'avoir partagé cette transcription.

En la parcourant, je remarque plusieurs moments où tes choix semblent guidés par **l'envie d'être utile aux autres**.

Qu'est-ce qui, dans ces moments-là, te donnait le plus d'énergie ?"""

_FOLLOW_UP_REPLY = """\
Ce que tu décris est intéressant.

Si je reformule, il semble que **{echo}** compte beaucoup pour toi.

Peux-tu me donner un exemple concret où cela s'est manifesté ?"""

_STEP_DONE_REPLY = """\
Merci, tu as bien exploré cette étape et ce que tu as partagé est très riche.

Nous pouvons passer à la suite quand tu le souhaites.

{marker}"""


class StubProvider(CoachProvider):
    """Deterministic fallback provider — no API key required."""

    name = 'stub'

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        user_text = messages[-1]['content'] if messages else ''

        if user_text.startswith(_OPENING_PREFIX):
            reply = _OPENING_REPLY
        elif any(kw in user_text.lower() for kw in _DONE_KEYWORDS):
            reply = _STEP_DONE_REPLY.format(marker=COMPLETION_MARKER)
        else:
            echo = ' '.join(user_text.split()[:6]) or 'ce sujet'
            reply = _FOLLOW_UP_REPLY.format(echo=echo)

        return CompletionResult(
            content=reply,
            model_name='stub',
            provider_name=self.name,
        )

"""
Text Generation Module - Tutoring Center Engagement Core

Client for the external service that writes periodic progress messages to
guardians. The prompt is rendered from a Jinja2 template and sent to the
Gemini ``generateContent`` REST endpoint. Every failure surfaces as
GenerationFailure; the report generator turns that into fallback text.
"""

import logging
from typing import Optional

import httpx
from jinja2 import Template

GEMINI_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'

PROMPT_TEMPLATE = """
You are the personal assistant of the teacher "{{ issuer_name }}".
Task: write a short, friendly WhatsApp message to the guardian of the student "{{ student_name }}".

Report type: {{ period_label }}.

Data:
- Tasks completed in this period: {{ task_count }}
- Average score: {{ avg_score }}%
- Attendance: {% if attendance_indicator %}attended and took part{% else %}absent or little participation{% endif %}
- Fees: {% if is_paid %}paid{% else %}outstanding balance{% endif %}

{{ tone }}

Writing rules:
1. Start with "Hello, guardian of {{ student_name }}".
2. Avoid technical terms.
3. Use a few emojis.
4. Keep it brief.
"""


class GenerationFailure(Exception):
    """The text-generation service failed or returned nothing usable."""


def tone_instruction(avg_score: float) -> str:
    if avg_score >= 85:
        return 'Tone: proud, strongly encouraging, congratulating.'
    if avg_score >= 70:
        return 'Tone: positive, motivating to keep going.'
    if avg_score >= 50:
        return 'Tone: calm, a gentle heads-up inviting follow-up.'
    return 'Tone: firm but polite, caring, asking for urgent cooperation.'


def build_prompt(name: str, task_count: int, avg_score: float, is_paid: bool,
                 issuer_name: str, period_label: str, attendance_indicator: int) -> str:
    return Template(PROMPT_TEMPLATE).render(
        student_name=name,
        task_count=task_count,
        avg_score=avg_score,
        is_paid=is_paid,
        issuer_name=issuer_name,
        period_label=period_label,
        attendance_indicator=attendance_indicator,
        tone=tone_instruction(avg_score)
    ).strip()


class GeminiReportWriter:
    """
    Text-generation service backed by the Gemini REST API.
    """

    def __init__(self, api_key: Optional[str], model: str = 'gemini-1.5-flash',
                 timeout: float = 30.0, temperature: float = 0.7,
                 client: Optional[httpx.Client] = None):
        """
        Args:
            api_key (str): Gemini API key
            model (str): Model name used in the endpoint path
            timeout (float): Request timeout in seconds
            temperature (float): Sampling temperature
            client (httpx.Client): Pre-built client (tests inject a mock transport)
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.client = client or httpx.Client(timeout=timeout)
        self.logger = logging.getLogger(__name__)

    def generate(self, name: str, task_count: int, avg_score: float, is_paid: bool,
                 issuer_name: str, period_label: str, attendance_indicator: int) -> str:
        if not self.api_key:
            raise GenerationFailure('GEMINI_API_KEY not configured')

        prompt = build_prompt(name, task_count, avg_score, is_paid,
                              issuer_name, period_label, attendance_indicator)
        payload = {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {'temperature': self.temperature}
        }

        try:
            response = self.client.post(
                GEMINI_URL.format(model=self.model),
                params={'key': self.api_key},
                json=payload
            )
        except httpx.HTTPError as e:
            raise GenerationFailure(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            self.logger.warning(f"Gemini API error: {response.status_code} - {response.text}")
            raise GenerationFailure(f"Gemini returned HTTP {response.status_code}")

        try:
            result = response.json()
            text = result.get('candidates', [{}])[0].get('content', {}).get('parts', [{}])[0].get('text', '')
        except (ValueError, IndexError, AttributeError) as e:
            raise GenerationFailure(f"Unexpected Gemini response: {e}") from e

        text = (text or '').strip()
        if not text:
            raise GenerationFailure('Gemini returned an empty message')
        return text

    def close(self) -> None:
        self.client.close()

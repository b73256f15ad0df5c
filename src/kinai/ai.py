"""AI assistant for progress summaries and clinical terminology suggestions.

Both calls are async and never raise: a failed request yields a fallback
message (summaries) or an empty list (suggestions).
"""

from __future__ import annotations

import asyncio
import os
import sys
from abc import ABC, abstractmethod

from kinai.models import Patient, Session

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-3-flash-preview"

SUMMARY_EMPTY = "No se pudo generar el análisis en este momento."
SUMMARY_ERROR = "Error al conectar con el asistente de IA clínico."

MAX_SUGGESTIONS = 6

SUMMARY_PROMPT = """\
Actúa como un Kinesiólogo experto con 20 años de experiencia en rehabilitación física y razonamiento clínico.
Analiza el progreso del siguiente paciente:

PACIENTE:
Nombre: {name}
Diagnóstico inicial: {diagnosis}
Antecedentes: {history}

HISTORIAL DE SESIONES:
{sessions}

TAREA:
1. Realiza un resumen clínico conciso del progreso funcional.
2. Identifica banderas rojas (red flags) o áreas de estancamiento terapéutico.
3. Sugiere 3 enfoques terapéuticos basados en la evidencia (EBP) para las próximas sesiones, priorizando la recuperación funcional.

Usa un lenguaje profesional, académico y preciso.
"""

TERMINOLOGY_PROMPT = """\
Actúa como un experto en Semiología Kinésica y Terminología Médica de alta precisión.
Transforma descripciones coloquiales de síntomas o estados en términos clínicos técnicos, específicos y amplios.

REGLAS:
1. Proporciona una mezcla de términos específicos (diagnósticos directos) y amplios (descripciones funcionales).
2. Cubre áreas como traumatología, neurología, deportología y respiratorio si es pertinente.
3. Devuelve únicamente la lista de términos separados por comas. Máximo 6 términos.

EJEMPLOS:
- Entrada: "Le duele la rodilla cuando sube escaleras"
- Salida: Gonalgia mecánica, Disfunción femoropatelar, Déficit de fuerza en cuádriceps, Estrés patelofemoral.

- Entrada: "Siente hormigueo que le baja por la pierna"
- Salida: Radiculopatía, Parestesias en dermatoma, Ciatalgia, Neuropatía por atrapamiento.

Entrada: "{text}"
Salida:
"""


def build_summary_prompt(patient: Patient, sessions: list[Session]) -> str:
    """Render the progress-summary prompt with sessions in chronological order."""
    ordered = sorted(sessions, key=lambda s: s.date)
    lines = "\n".join(
        f"- Fecha: {s.date}\n  Objetivo: {s.objective}\n  Evolución: {s.evolution}"
        for s in ordered
    )
    return SUMMARY_PROMPT.format(
        name=patient.full_name,
        diagnosis=patient.diagnosis,
        history=patient.medical_history,
        sessions=lines,
    )


def build_terminology_prompt(text: str) -> str:
    return TERMINOLOGY_PROMPT.format(text=text)


def parse_terms(raw: str) -> list[str]:
    """Split a comma-separated model answer into at most MAX_SUGGESTIONS terms."""
    cleaned = raw.replace("`", "")
    stripped = cleaned.strip()
    if stripped.lower().startswith("salida:"):
        stripped = stripped[len("salida:"):]
    terms = [t.strip().rstrip(".").strip() for t in stripped.split(",")]
    return [t for t in terms if t][:MAX_SUGGESTIONS]


class AITextService(ABC):
    @abstractmethod
    async def summarize_progress(self, patient: Patient, sessions: list[Session]) -> str:
        pass

    @abstractmethod
    async def suggest_terminology(self, text: str) -> list[str]:
        pass


class GeminiClient(AITextService):
    """Calls the Gemini generateContent REST endpoint."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, timeout: float = 30):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.url = f"{GEMINI_BASE_URL}/{model}:generateContent"

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the response text ("" when the model gave none).

        Raises on transport errors and non-200 responses.
        """
        import aiohttp

        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self.url, headers=headers, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"Gemini API error {response.status}: {error_text}")
                result = await response.json()

        candidates = result.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)

    async def summarize_progress(self, patient: Patient, sessions: list[Session]) -> str:
        try:
            text = await self.generate(build_summary_prompt(patient, sessions))
        except Exception as e:
            print(f"Gemini API error: {e}", file=sys.stderr)
            return SUMMARY_ERROR
        return text or SUMMARY_EMPTY

    async def suggest_terminology(self, text: str) -> list[str]:
        if not text.strip():
            return []
        try:
            raw = await self.generate(build_terminology_prompt(text))
        except Exception as e:
            print(f"Gemini suggestion error: {e}", file=sys.stderr)
            return []
        return parse_terms(raw)


class MockAIClient(AITextService):
    """Offline stand-in returning canned answers."""

    def __init__(self, delay: float = 0):
        self.delay = delay

    async def summarize_progress(self, patient: Patient, sessions: list[Session]) -> str:
        await asyncio.sleep(self.delay)
        if not sessions:
            return f"{patient.full_name}: sin sesiones registradas para analizar."
        ordered = sorted(sessions, key=lambda s: s.date)
        first, last = ordered[0], ordered[-1]
        return (
            f"{patient.full_name}: {len(sessions)} sesiones entre {first.date} y {last.date}. "
            f"Dolor EVA {first.pain_level}/10 -> {last.pain_level}/10."
        )

    async def suggest_terminology(self, text: str) -> list[str]:
        await asyncio.sleep(self.delay)
        if not text.strip():
            return []
        lowered = text.lower()
        if "rodilla" in lowered:
            return ["Gonalgia mecánica", "Disfunción femoropatelar", "Estrés patelofemoral"]
        if "hormigueo" in lowered:
            return ["Parestesias en dermatoma", "Radiculopatía"]
        return ["Dolor de características mecánicas"]


def build_ai_client(config: dict) -> AITextService:
    """Create the configured AI client, falling back to the mock when no key is set."""
    ai_config = config.get("ai", {})
    provider = ai_config.get("provider", "gemini")
    if provider == "mock":
        return MockAIClient()
    if provider != "gemini":
        print(f"Warning: unknown AI provider '{provider}', using mock.", file=sys.stderr)
        return MockAIClient()

    key_env = ai_config.get("api_key_env", "GEMINI_API_KEY")
    api_key = os.environ.get(key_env, "")
    if not api_key:
        print(f"Warning: {key_env} is not set, using mock AI responses.", file=sys.stderr)
        return MockAIClient()
    return GeminiClient(
        api_key,
        model=ai_config.get("model", DEFAULT_MODEL),
        timeout=ai_config.get("timeout_seconds", 30),
    )

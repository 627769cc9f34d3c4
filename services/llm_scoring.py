import json
import logging
import re
from typing import Iterable, Protocol

import openai
from openai import OpenAI
from pydantic import ValidationError

from config import Settings
from models import ScoreResult
from services.errors import ScoreParseError, ScoringConfigError, UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert hackathon judge. Always respond with valid JSON only, no markdown or extra text."

_FENCE_RE = re.compile(r"```(?:json)?\n?")


def build_prompt(team_name: str, content: str, theme: str) -> str:
    return (
        "You are an expert hackathon judge evaluating a team's presentation/proposal.\n"
        "Analyze the following submission and provide scores.\n"
        "\n"
        f"**Hackathon Theme:** {theme}\n"
        f"**Team Name:** {team_name}\n"
        "\n"
        "**Submission Content:**\n"
        f"{content}\n"
        "\n"
        "**Evaluation Criteria (Score each out of 10):**\n"
        "\n"
        "1. **Idea (Innovation of the Concept)** - How novel and creative is the idea? "
        "Does it bring something new to the table?\n"
        "2. **Solution Relevance** - How well does the proposed solution address the hackathon theme "
        f'"{theme}"? Is it directly relevant to the problem statement?\n'
        "3. **Novelty** - How unique is the approach compared to existing solutions? "
        "Does it stand out from conventional approaches?\n"
        "4. **Feasibility** - How practical and implementable is the solution? "
        "Can it realistically be built and deployed?\n"
        "5. **Innovation** - How innovative are the technical approaches, methodologies, or technologies used?\n"
        "\n"
        "**IMPORTANT: Respond ONLY in the following JSON format, no other text:**\n"
        "{\n"
        '    "scores": {\n'
        '        "idea": <number 1-10>,\n'
        '        "solution_relevance": <number 1-10>,\n'
        '        "novelty": <number 1-10>,\n'
        '        "feasibility": <number 1-10>,\n'
        '        "innovation": <number 1-10>\n'
        "    },\n"
        '    "total_score": <sum of all scores out of 50>,\n'
        '    "normalized_score": <total_score / 5, rounded to 1 decimal>,\n'
        '    "strengths": ["<strength 1>", "<strength 2>", "<strength 3>"],\n'
        '    "weaknesses": ["<weakness 1>", "<weakness 2>"],\n'
        '    "summary": "<2-3 sentence overall evaluation>",\n'
        '    "recommendation": "<SHORTLIST / MAYBE / REJECT>"\n'
        "}"
    )


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_score_response(text: str) -> ScoreResult:
    """
    Parse backend output into a ScoreResult.
    Raises ScoreParseError for non-JSON output and for JSON that misses the rubric shape.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse scoring response: %s", cleaned[:500])
        raise ScoreParseError("AI response was not valid JSON", raw_text=cleaned) from e
    try:
        return ScoreResult.model_validate(data)
    except ValidationError as e:
        raise ScoreParseError(f"AI response did not match the scoring schema: {e}", raw_text=cleaned) from e


class ScoringBackend(Protocol):
    name: str

    @property
    def configured(self) -> bool: ...

    def score(self, prompt: str) -> str: ...


class NvidiaBackend:
    """NVIDIA NIM through its OpenAI-compatible chat completions API."""

    name = "NVIDIA NIM"

    def __init__(self, api_key: str, model: str, base_url: str, temperature: float = 0.3, max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def score(self, prompt: str) -> str:
        client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(self.name, e.status_code, e.response.text) from e
        except openai.APIConnectionError as e:
            raise UpstreamError(self.name, None, str(e)) from e
        if not resp.choices:
            raise UpstreamError(self.name, None, "response contained no choices")
        return resp.choices[0].message.content or ""


class GeminiBackend:
    name = "Gemini"

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def score(self, prompt: str) -> str:
        import google.generativeai as genai
        from google.api_core.exceptions import GoogleAPICallError

        genai.configure(api_key=self.api_key)
        gen_model = genai.GenerativeModel(self.model)
        try:
            response = gen_model.generate_content(prompt)
        except GoogleAPICallError as e:
            raise UpstreamError(self.name, e.code, e.message) from e
        try:
            return response.text
        except ValueError as e:
            # blocked by safety filters or a candidate with no parts
            raise UpstreamError(self.name, None, f"empty or blocked response: {e}") from e


def default_backends(settings: Settings) -> list[ScoringBackend]:
    # priority order: first configured wins
    return [
        NvidiaBackend(settings.nvidia_api_key, settings.nvidia_model, settings.nvidia_base_url),
        GeminiBackend(settings.gemini_api_key, settings.gemini_model),
    ]


def select_backend(backends: Iterable[ScoringBackend]) -> ScoringBackend:
    for backend in backends:
        if backend.configured:
            return backend
    raise ScoringConfigError("No AI API key configured. Set NVIDIA_API_KEY or GEMINI_API_KEY in .env")

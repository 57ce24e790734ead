"""
Content Generator — the external capability the optimization loop leans on.

Two operations:
    analyze_patterns(winners)  → PatternAnalysis(patterns, recommendations)
    generate_variants(seed_winners, patterns, product_context, count) → [VariantDraft]

`winners` is a list of {'content': {...copy fields...}, 'metrics': {...}} dicts.

Implementations:
    OpenAIContentGenerator — GPT chat completions (JSON mode) behind the
                             'openai' circuit breaker.
    MockContentGenerator   — deterministic canned output for local dev/tests.

Callers receive the generator as an argument; get_content_generator() picks
the right one from config.
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import yaml

from adloop.errors import GeneratorError
from adloop.models.campaign import ProductContext
from adloop.services.circuit_breaker import CircuitOpenError, get_breaker

logger = logging.getLogger('services.content_generator')


@dataclass
class PatternAnalysis:
    patterns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class VariantDraft:
    """A freshly generated, not yet persisted variant."""
    hook: str
    problem_agitation: str
    solution: str
    cta: str
    visual_direction: Optional[str] = None
    audio_notes: Optional[str] = None
    estimated_duration: Optional[int] = None
    generation_notes: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Optional['VariantDraft']:
        """Build from model output; camelCase keys are accepted. None if copy is missing."""
        if not isinstance(d, dict):
            return None

        def pick(snake, camel=None):
            value = d.get(snake)
            if value is None and camel:
                value = d.get(camel)
            return value

        values = {
            'hook': pick('hook'),
            'problem_agitation': pick('problem_agitation', 'problemAgitation'),
            'solution': pick('solution'),
            'cta': pick('cta'),
        }
        if not all(isinstance(v, str) and v.strip() for v in values.values()):
            return None

        duration = pick('estimated_duration', 'estimatedDuration')
        try:
            duration = int(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration = None

        return cls(
            visual_direction=pick('visual_direction', 'visualDirection'),
            audio_notes=pick('audio_notes', 'audioNotes'),
            estimated_duration=duration,
            generation_notes=pick('generation_notes', 'generationNotes'),
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContentGenerator(ABC):
    """Interface consumed by the winner selector and the iteration generator."""
    name: str = ''

    @abstractmethod
    def analyze_patterns(self, winners: List[Dict[str, Any]]) -> PatternAnalysis:
        ...

    @abstractmethod
    def generate_variants(
        self,
        seed_winners: List[Dict[str, Any]],
        patterns: List[str],
        product_context: ProductContext,
        count: int,
    ) -> List[VariantDraft]:
        ...


# ── Generator config (YAML with hardcoded fallback) ──────────────────────────

_generator_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'model': 'gpt-4o',
        'tasks': {
            'analyze_patterns': {
                'temperature': 0.5,
                'system_prompt': 'You are an expert performance marketing analyst.',
            },
            'generate_variants': {
                'temperature': 0.85,
                'system_prompt': 'You are an expert UGC creative director focused on iterative optimization.',
            },
        },
    }


def load_generator_config():
    """Load generator config from YAML, with in-memory cache and hardcoded fallback."""
    global _generator_config
    if _generator_config is not None:
        return _generator_config

    config_path = os.path.join(os.path.dirname(__file__), 'generator_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _generator_config = yaml.safe_load(f)
        logger.info("Generator config loaded from YAML (version=%s)", _generator_config.get('version', '?'))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Generator config not loadable (%s), using defaults", e)
        _generator_config = _default_config()

    return _generator_config


# ── Prompt builders ──────────────────────────────────────────────────────────

def _fmt_ratio(value, suffix=''):
    return f"{value:.2f}{suffix}" if value is not None else 'N/A'


def build_pattern_prompt(winners: List[Dict[str, Any]]) -> str:
    blocks = []
    for idx, winner in enumerate(winners, 1):
        content = winner.get('content', {})
        metrics = winner.get('metrics', {})
        blocks.append(
            f"Angle {idx} (CTR: {_fmt_ratio(metrics.get('ctr'), '%')}, "
            f"ROAS: {_fmt_ratio(metrics.get('roas'))}, "
            f"Conversions: {metrics.get('conversions', 0)}):\n"
            f"Hook: {content.get('hook', '')}\n"
            f"Problem: {content.get('problem_agitation', '')}\n"
            f"Solution: {content.get('solution', '')}\n"
            f"CTA: {content.get('cta', '')}"
        )

    return f"""Analyze these top-performing UGC ad angles and identify patterns:

{chr(10).join(blocks)}

Identify:
1. Common patterns in successful hooks
2. Structural similarities in messaging
3. Tone and language patterns
4. Recommendations for next iteration

Respond with JSON:
{{
  "patterns": ["pattern 1", "pattern 2"],
  "recommendations": ["recommendation 1", "recommendation 2"]
}}"""


def build_iteration_prompt(
    seed_winners: List[Dict[str, Any]],
    patterns: List[str],
    product_context: ProductContext,
    count: int,
) -> str:
    pattern_lines = '\n'.join(f"- {p}" for p in patterns) or '- (none identified)'
    winner_blocks = []
    for idx, content in enumerate(seed_winners, 1):
        winner_blocks.append(
            f"Winner {idx}:\n"
            f"Hook: {content.get('hook', '')}\n"
            f"Problem: {content.get('problem_agitation', '')}\n"
            f"Solution: {content.get('solution', '')}\n"
            f"CTA: {content.get('cta', '')}"
        )

    return f"""Generate {count} new UGC ad angles based on these winning patterns:

Winning Patterns:
{pattern_lines}

Top Performing Angles for Reference:
{chr(10).join(winner_blocks)}

Product: {product_context.product_name}
Description: {product_context.product_description}
Target Audience: {product_context.target_audience}

Create new angles that:
1. Apply the winning patterns identified
2. Maintain what worked but test new variations
3. Push creative boundaries while staying on-brand

Respond with JSON:
{{
  "variants": [
    {{
      "hook": "...",
      "problem_agitation": "...",
      "solution": "...",
      "cta": "...",
      "visual_direction": "...",
      "audio_notes": "...",
      "estimated_duration": 30,
      "generation_notes": "Explain how this applies winning patterns"
    }}
  ]
}}"""


def _string_list(value, key):
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise GeneratorError(f"Generator response field '{key}' must be a list of strings")
    return value


# ── OpenAI implementation ────────────────────────────────────────────────────

class OpenAIContentGenerator(ContentGenerator):
    name = 'openai'

    def __init__(self, client=None, breaker=None, config=None):
        if client is None:
            from adloop.extensions import openai_client
            client = openai_client
        self.client = client
        self.breaker = breaker or get_breaker('openai')
        self.config = config or load_generator_config()

    def _complete(self, task: str, prompt: str) -> Dict[str, Any]:
        """Run one JSON-mode chat completion and return the parsed object."""
        if self.client is None:
            raise GeneratorError('OpenAI client not initialized')

        task_cfg = self.config.get('tasks', {}).get(task, {})
        try:
            response = self.breaker.call(
                self.client.chat.completions.create,
                model=self.config.get('model', 'gpt-4o'),
                messages=[
                    {'role': 'system', 'content': task_cfg.get('system_prompt', '')},
                    {'role': 'user', 'content': prompt},
                ],
                temperature=task_cfg.get('temperature', 0.7),
                response_format={'type': 'json_object'},
            )
        except CircuitOpenError as e:
            raise GeneratorError(str(e), details={'retry_after': e.retry_after})
        except Exception as e:
            logger.error("OpenAI %s call failed: %s", task, e)
            raise GeneratorError(f"Failed to {task.replace('_', ' ')}", details={'original_error': str(e)})

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GeneratorError('Empty response from OpenAI')
        try:
            parsed = json.loads(content)
        except ValueError:
            raise GeneratorError('OpenAI returned a non-JSON response')
        if not isinstance(parsed, dict):
            raise GeneratorError('OpenAI returned an unexpected JSON shape')
        return parsed

    def analyze_patterns(self, winners):
        parsed = self._complete('analyze_patterns', build_pattern_prompt(winners))
        return PatternAnalysis(
            patterns=_string_list(parsed.get('patterns', []), 'patterns'),
            recommendations=_string_list(parsed.get('recommendations', []), 'recommendations'),
        )

    def generate_variants(self, seed_winners, patterns, product_context, count):
        prompt = build_iteration_prompt(seed_winners, patterns, product_context, count)
        parsed = self._complete('generate_variants', prompt)
        raw = parsed.get('variants', parsed.get('angles'))
        if not isinstance(raw, list):
            raise GeneratorError("Generator response is missing a 'variants' list")

        drafts = []
        for item in raw:
            draft = VariantDraft.from_dict(item)
            if draft is None:
                logger.warning("Dropping incomplete draft from OpenAI: %s", str(item)[:200])
                continue
            drafts.append(draft)
        return drafts


# ── Mock implementation ──────────────────────────────────────────────────────

MOCK_PATTERNS = [
    'Strong emotional hooks perform 40% better',
    'Questions in hooks increase CTR by 25%',
    'Shorter problem statements (< 50 words) convert better',
    'Clear, single CTAs outperform multiple CTAs',
]

MOCK_RECOMMENDATIONS = [
    'Focus on curiosity-gap hooks',
    'Keep problem agitation concise but impactful',
    'Use social proof in solution sections',
    'Test urgency-based CTAs',
]


class MockContentGenerator(ContentGenerator):
    """Canned, deterministic output. Never used in production."""
    name = 'mock'

    def analyze_patterns(self, winners):
        return PatternAnalysis(patterns=list(MOCK_PATTERNS), recommendations=list(MOCK_RECOMMENDATIONS))

    def generate_variants(self, seed_winners, patterns, product_context, count):
        if not seed_winners:
            return []
        applied = ', '.join(patterns[:2])
        drafts = []
        for i in range(count):
            seed = seed_winners[i % len(seed_winners)]
            drafts.append(VariantDraft(
                hook=f"[ITERATION] {seed.get('hook', '')}",
                problem_agitation=seed.get('problem_agitation', ''),
                solution=seed.get('solution', ''),
                cta=seed.get('cta', ''),
                visual_direction=seed.get('visual_direction'),
                audio_notes=seed.get('audio_notes'),
                estimated_duration=seed.get('estimated_duration'),
                generation_notes=f"Mock iteration #{i + 1} for {product_context.product_name}. "
                                 f"Applied patterns: {applied}",
            ))
        return drafts


# ── Factory ──────────────────────────────────────────────────────────────────

def get_content_generator() -> ContentGenerator:
    """
    Pick the generator for this environment.

    Mock mode (AI_MOCK_MODE or no OpenAI client) is refused in production.
    """
    from adloop import config
    from adloop.extensions import openai_client

    if config.IS_PRODUCTION:
        if config.AI_MOCK_MODE:
            logger.warning("AI_MOCK_MODE ignored in production")
        if openai_client is None:
            raise GeneratorError('OPENAI_API_KEY is required in production')
        return OpenAIContentGenerator(client=openai_client)

    if config.AI_MOCK_MODE or openai_client is None:
        return MockContentGenerator()
    return OpenAIContentGenerator(client=openai_client)

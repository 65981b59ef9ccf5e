# services/response_parser.py
"""
Turns the vision model's reply into a ParsedAnalysis.

Three tiers, tried in order, all producing the same schema:
  1. structured - the JSON object the prompt asks for, validated with pydantic
  2. sections   - regex extraction of the emoji-headed report sections
  3. fallback   - rating (if any) plus the first 500 characters of prose

parse_analysis never raises; bad model output only lowers `confidence`.
"""
import hashlib
import logging
import random
import re
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from schemas import (
    CATEGORIES,
    AnalysisText,
    ParsedAnalysis,
    Rating,
    StructuredReport,
    Suggestions,
)
from services.utils import strict_json_loads

logger = logging.getLogger(__name__)

DEFAULT_RATING = 6.0
MAX_FEATURES = 5
MAX_STYLE = 5
MAX_ACTIONS = 8
FALLBACK_TEXT_CHARS = 500

STRUCTURED_CONFIDENCE = 0.95
SECTIONS_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.6

RATING_PATTERNS = [
    re.compile(r"(?:overall|attractiveness|score|rating|assessment).*?(\d+(?:\.\d+)?)\s*(?:/|out of)\s*10", re.I),
    re.compile(r"(\d+(?:\.\d+)?)\s*(?:/|out of)\s*10", re.I),
    re.compile(r"rate.*?(\d+(?:\.\d+)?)", re.I),
]
FALLBACK_RATING_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:/\s*10|out of 10)", re.I)

# jitter spread used when a category score has to be synthesized
CATEGORY_SPREAD: Dict[str, float] = {
    "facialSymmetry": 2.0,
    "skinClarity": 2.0,
    "grooming": 1.5,
    "expression": 1.5,
    "eyeAppeal": 2.0,
    "facialStructure": 1.5,
    "hairStyle": 2.0,
    "skinTone": 1.5,
}

# ordered most specific first
CATEGORY_ALIASES: Dict[str, List[str]] = {
    "facialSymmetry": ["facial symmetry", "symmetry"],
    "skinClarity": ["skin clarity", "skin quality"],
    "grooming": ["grooming"],
    "expression": ["expression"],
    "eyeAppeal": ["eye appeal", "eyes"],
    "facialStructure": ["facial structure", "bone structure"],
    "hairStyle": ["hair style", "hairstyle", "hair"],
    "skinTone": ["skin tone"],
}

SECTION_HEADERS: Dict[str, List[str]] = {
    "bestFeatures": [r"TOP.*?BEST FEATURES", r"BEST FEATURES", r"STRONGEST FEATURES", r"ATTRACTIVENESS STRENGTHS"],
    "style": [r"STYLE.*?RECOMMENDATIONS", r"STYLE\s*(?:&|AND)\s*FASHION"],
    "actionPlan": [r"ACTION PLAN", r"IMPROVEMENT PLAN", r"IMPROVEMENT SUGGESTIONS"],
    "detailed": [r"DETAILED ANALYSIS", r"COMPREHENSIVE.*?ANALYSIS", r"OVERALL ASSESSMENT"],
}

HEADER_EMOJI = "🎯💫🌟📊📈💎👔📋🔥⭐"

DEFAULT_FEATURES = ["Attractive natural features", "Good bone structure", "Appealing expression"]
DEFAULT_STYLE = ["Classic styling works well", "Consider modern accessories", "Focus on fit and quality"]
DEFAULT_ACTIONS = [
    "Maintain good skincare",
    "Style hair regularly",
    "Choose flattering colors",
    "Focus on fitness",
    "Develop confidence",
]
DEFAULT_IMMEDIATE = ["Follow skincare routine", "Maintain good grooming", "Focus on posture"]
DEFAULT_LONG_TERM = ["Consider professional styling", "Develop personal style", "Build confidence"]


def clamp_score(value: float) -> float:
    return max(1.0, min(10.0, float(value)))


# --- rating ----------------------------------------------------------------
def extract_rating(text: str) -> Optional[float]:
    """First match of the rating patterns, clamped to [1, 10]; None if nothing matched."""
    for pattern in RATING_PATTERNS:
        m = pattern.search(text)
        if m:
            return clamp_score(m.group(1))
    return None


def extract_category_scores(text: str) -> Dict[str, float]:
    scores = {}
    for category, aliases in CATEGORY_ALIASES.items():
        for alias in aliases:
            m = re.search(
                rf"^[\s•*\-]*{re.escape(alias)}\s*:\s*(\d+(?:\.\d+)?)\s*/\s*10", text, re.I | re.M)
            if m:
                scores[category] = clamp_score(m.group(1))
                break
    return scores


def build_rating(text: str, overall: float, known: Dict[str, float]) -> Tuple[Rating, List[str]]:
    """
    Fill in the eight categories. Scores the model did not give are synthesized
    around the overall score with a jitter seeded from the reply text, so the
    same reply always yields the same numbers.
    """
    seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:16], 16)
    rng = random.Random(seed)
    values = {"overall": overall}
    synthesized = []
    for category in CATEGORIES:
        if category in known:
            values[category] = known[category]
            continue
        jitter = (rng.random() - 0.5) * CATEGORY_SPREAD[category]
        values[category] = round(clamp_score(overall + jitter), 1)
        synthesized.append(category)
    return Rating(**values), synthesized


# --- sections --------------------------------------------------------------
def extract_section(text: str, header: str) -> str:
    """
    Body of the section whose header matches `header`, up to the next
    emoji/caps header. Two variants: blank-line separated headers first, then
    any emoji-led line or end of text.
    """
    variants = [
        rf"{header}[^\n]*\n([\s\S]*?)(?=\n\s*\n\s*(?:[{HEADER_EMOJI}]|(?-i:[A-Z]{{2}})))",
        rf"{header}[^\n]*\n?([\s\S]*?)(?=\n\s*[{HEADER_EMOJI}]|\Z)",
    ]
    for variant in variants:
        m = re.search(variant, text, re.I)
        if m:
            return m.group(1).strip()
    return ""


def find_section(text: str, name: str) -> str:
    for header in SECTION_HEADERS[name]:
        body = extract_section(text, header)
        if body:
            return body
    return ""


def parse_list_items(text: str, max_items: int = MAX_ACTIONS) -> List[str]:
    """Numbered items if there are any, else bullet/line fragments of 10+ chars."""
    if not text:
        return []
    numbered = [i.strip() for i in re.findall(r"^\s*\d+[.)]\s*(.+)$", text, re.M)]
    numbered = [i for i in numbered if i]
    if numbered:
        return numbered[:max_items]

    items = []
    for part in re.split(r"[\n•]+", text):
        part = part.strip().lstrip("-*· ").strip()
        if len(part) >= 10:
            items.append(part)
    return items[:max_items]


def _strip_json(text: str) -> str:
    idx = text.find("{")
    return text[:idx].strip() if idx > 0 else text.strip()


def _assemble(
    text: str,
    overall: float,
    known_scores: Dict[str, float],
    features: List[str],
    style: List[str],
    actions: List[str],
    narrative: str,
    confidence: float,
) -> ParsedAnalysis:
    rating, synthesized = build_rating(text, overall, known_scores)
    features = features[:MAX_FEATURES]
    style = style[:MAX_STYLE]
    actions = actions[:MAX_ACTIONS]
    return ParsedAnalysis(
        rating=rating,
        analysis=AnalysisText(
            strengths=features or ["Natural appeal and attractive features"],
            improvements=actions or ["Focus on enhancing your strongest features"],
            overall=narrative,
        ),
        suggestions=Suggestions(
            immediate=actions[:3] or list(DEFAULT_IMMEDIATE),
            longTerm=actions[3:6] or list(DEFAULT_LONG_TERM),
            styling=style or ["Experiment with different looks", "Find styles that suit you"],
        ),
        bestFeatures=features or list(DEFAULT_FEATURES),
        styleAndFashion=style or list(DEFAULT_STYLE),
        actionPlan=actions or list(DEFAULT_ACTIONS),
        confidence=confidence,
        synthesizedCategories=synthesized,
        rawResponse=text,
    )


def parse_structured(text: str) -> Optional[ParsedAnalysis]:
    """First tier: the JSON object requested by the prompt. None if absent or invalid."""
    try:
        report = StructuredReport.model_validate(strict_json_loads(text))
    except (ValueError, ValidationError) as e:
        logger.debug("no structured report in reply: %s", e)
        return None

    scores = report.scores.model_dump(exclude_none=True)
    overall = clamp_score(scores.pop("overall"))
    known = {k: clamp_score(v) for k, v in scores.items()}
    narrative = report.summary.strip() or find_section(text, "detailed") or _strip_json(text)
    return _assemble(
        text, overall, known,
        [f.strip() for f in report.bestFeatures if f.strip()],
        [s.strip() for s in report.styleRecommendations if s.strip()],
        [a.strip() for a in report.actionPlan if a.strip()],
        narrative,
        STRUCTURED_CONFIDENCE,
    )


def parse_sections(text: str) -> Optional[ParsedAnalysis]:
    """Second tier: regex over the prose report. None if rating or every section is missing."""
    overall = extract_rating(text)
    sections = {name: find_section(text, name) for name in SECTION_HEADERS}
    if overall is None or not any(sections.values()):
        return None

    return _assemble(
        text, overall, extract_category_scores(text),
        parse_list_items(sections["bestFeatures"], MAX_FEATURES),
        parse_list_items(sections["style"], MAX_STYLE),
        parse_list_items(sections["actionPlan"], MAX_ACTIONS),
        sections["detailed"] or _strip_json(text),
        SECTIONS_CONFIDENCE,
    )


def create_fallback_response(text: str) -> ParsedAnalysis:
    m = FALLBACK_RATING_PATTERN.search(text)
    overall = clamp_score(m.group(1)) if m else DEFAULT_RATING
    rating = Rating(overall=overall, **{c: overall for c in CATEGORIES})
    immediate = ["Continue with good grooming habits"]
    long_term = ["Maintain a healthy lifestyle"]
    styling = ["Experiment with different styles"]
    return ParsedAnalysis(
        rating=rating,
        analysis=AnalysisText(
            strengths=["Analysis completed"],
            improvements=["Detailed analysis available in text"],
            overall=text[:FALLBACK_TEXT_CHARS] + ("..." if len(text) > FALLBACK_TEXT_CHARS else ""),
        ),
        suggestions=Suggestions(immediate=immediate, longTerm=long_term, styling=styling),
        bestFeatures=["Analysis completed"],
        styleAndFashion=styling,
        actionPlan=immediate + long_term,
        confidence=FALLBACK_CONFIDENCE,
        synthesizedCategories=list(CATEGORIES),
        rawResponse=text,
    )


def parse_analysis(text: Optional[str]) -> ParsedAnalysis:
    text = text or ""
    for tier in (parse_structured, parse_sections):
        try:
            parsed = tier(text)
        except Exception:
            logger.exception("%s failed on model reply", tier.__name__)
            continue
        if parsed is not None:
            logger.info("model reply parsed by %s (confidence %.2f)", tier.__name__, parsed.confidence)
            return parsed

    logger.warning("model reply could not be parsed, using fallback structure")
    return create_fallback_response(text)

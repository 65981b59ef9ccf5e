# services/rating.py
import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from errors import InvalidAnalysisError
from schemas import (
    CATEGORIES,
    CategoryDetail,
    EnhancedInsights,
    EnrichedAnalysis,
    ImprovementPlan,
    ParsedAnalysis,
    PlanStage,
)

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "facialSymmetry": 0.25,
    "skinClarity": 0.20,
    "grooming": 0.20,
    "expression": 0.15,
    "eyeAppeal": 0.10,
    "facialStructure": 0.10,
}

TIMEFRAMES = {
    "immediate": "1-7 days",
    "shortTerm": "1-4 weeks",
    "longTerm": "1-6 months",
}

DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "overall": {
        "high": "Strong overall attractiveness with well-balanced features",
        "medium": "Good overall appearance with room for enhancement",
        "low": "Several areas could benefit from attention and improvement",
    },
    "facialSymmetry": {
        "high": "Well-balanced facial proportions and symmetry",
        "medium": "Generally balanced features with minor asymmetries",
        "low": "Some facial asymmetry that could be addressed through styling",
    },
    "skinClarity": {
        "high": "Clear, healthy-looking skin with good complexion",
        "medium": "Generally good skin with minor blemishes or concerns",
        "low": "Skin could benefit from improved skincare routine",
    },
    "grooming": {
        "high": "Excellent grooming and personal care habits evident",
        "medium": "Well-groomed with some areas for refinement",
        "low": "Basic grooming improvements would make a significant difference",
    },
    "expression": {
        "high": "Engaging, positive expression that enhances attractiveness",
        "medium": "Pleasant expression with natural appeal",
        "low": "Expression could be more engaging or confident",
    },
    "eyeAppeal": {
        "high": "Attractive, expressive eyes that draw positive attention",
        "medium": "Nice eyes that could be enhanced with better grooming",
        "low": "Eye area could benefit from targeted improvements",
    },
    "facialStructure": {
        "high": "Strong, well-defined facial structure",
        "medium": "Good bone structure with attractive features",
        "low": "Facial structure could be enhanced through styling techniques",
    },
    "hairStyle": {
        "high": "Hairstyle suits the face shape and frames the features well",
        "medium": "Decent hairstyle that could be tailored more to the face shape",
        "low": "A different cut or styling would noticeably lift the overall look",
    },
    "skinTone": {
        "high": "Even, healthy skin tone",
        "medium": "Mostly even tone with minor variation",
        "low": "Skin tone looks uneven; hydration and sun care would help",
    },
}


def calculate_rating(ratings: Mapping[str, float]) -> float:
    """
    Weighted composite of the weighted categories that are present.
    Missing categories drop out of both sums instead of counting as zero.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for category, weight in WEIGHTS.items():
        value = ratings.get(category)
        if isinstance(value, (int, float)):
            weighted_sum += value * weight
            total_weight += weight

    if total_weight == 0:
        return ratings.get("overall") or 5
    return round(weighted_sum / total_weight, 1)


def rating_level(score: float) -> str:
    if score >= 9:
        return "Excellent"
    if score >= 7:
        return "Good"
    if score >= 5:
        return "Average"
    if score >= 3:
        return "Below Average"
    return "Needs Improvement"


def priority_level(score: float) -> str:
    if score < 4:
        return "high"
    if score < 6:
        return "medium"
    return "low"


def category_description(category: str, score: float) -> str:
    band = "high" if score >= 7 else "medium" if score >= 5 else "low"
    return DESCRIPTIONS.get(category, {}).get(band, "No specific feedback available")


def format_category_name(category: str) -> str:
    if category == "overall":
        return "Overall"
    return CATEGORIES.get(category, category)


def calculate_confidence(base: Optional[float], ratings: Mapping[str, float]) -> float:
    confidence = base if base is not None else 0.8
    values = [v for v in ratings.values() if isinstance(v, (int, float))]
    if values:
        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        # inconsistent sub-scores lower trust in the whole reading
        if variance > 4:
            confidence *= 0.9
    return max(0.1, min(1.0, confidence))


def category_breakdown(ratings: Mapping[str, float]) -> Dict[str, CategoryDetail]:
    return {
        category: CategoryDetail(
            score=score,
            level=rating_level(score),
            description=category_description(category, score),
            priority=priority_level(score),
        )
        for category, score in ratings.items()
    }


def improvement_plan(parsed: ParsedAnalysis) -> ImprovementPlan:
    actions = parsed.actionPlan
    immediate = parsed.suggestions.immediate or actions[:3]
    return ImprovementPlan(
        immediate=PlanStage(actions=list(immediate), timeframe=TIMEFRAMES["immediate"]),
        shortTerm=PlanStage(actions=list(parsed.suggestions.styling), timeframe=TIMEFRAMES["shortTerm"]),
        longTerm=PlanStage(actions=list(actions[3:]), timeframe=TIMEFRAMES["longTerm"]),
    )


def enhanced_insights(ratings: Mapping[str, float], composite: float) -> EnhancedInsights:
    strengths, focus = [], []
    for category, score in ratings.items():
        if score >= 7:
            strengths.append(format_category_name(category))
        elif score < 6:
            focus.append(format_category_name(category))

    indicators = []
    if ratings.get("expression", 0) >= 7:
        indicators.append("Appears confident and approachable")
    if ratings.get("grooming", 0) >= 8:
        indicators.append("Shows attention to detail and self-care")

    if composite >= 8:
        recommendation = "You have strong natural features - focus on maintaining your current routine"
    elif composite >= 6:
        recommendation = "You have good potential - small improvements can make a big difference"
    else:
        recommendation = "Focus on basic grooming and styling fundamentals first"

    return EnhancedInsights(
        strengths=strengths,
        focusAreas=focus,
        personalityIndicators=indicators,
        recommendations=[recommendation],
    )


def enrich(parsed: Optional[ParsedAnalysis]) -> EnrichedAnalysis:
    if parsed is None or getattr(parsed, "rating", None) is None:
        raise InvalidAnalysisError("Invalid analysis data")

    ratings = parsed.rating.model_dump()
    composite = calculate_rating(ratings)
    logger.debug("composite score %.1f (overall %.1f)", composite, ratings["overall"])

    return EnrichedAnalysis(
        **parsed.model_dump(exclude={"confidence"}),
        confidence=calculate_confidence(parsed.confidence, ratings),
        compositeScore=composite,
        categoryBreakdown=category_breakdown(ratings),
        improvementPlan=improvement_plan(parsed),
        enhancedInsights=enhanced_insights(ratings, composite),
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )

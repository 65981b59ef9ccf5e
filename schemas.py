from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

# category name -> display name
CATEGORIES: Dict[str, str] = {
    "facialSymmetry": "Facial Symmetry",
    "skinClarity": "Skin Clarity",
    "grooming": "Grooming",
    "expression": "Expression",
    "eyeAppeal": "Eye Appeal",
    "facialStructure": "Facial Structure",
    "hairStyle": "Hair Style",
    "skinTone": "Skin Tone",
}


# --- Upload / validation ---------------------------------------------------
@dataclass
class UploadedImage:
    data: bytes
    size_bytes: int
    mime_type: str
    filename: str
    format: Optional[str] = None  # set once the bytes have been decoded


@dataclass
class ValidationIssue:
    code: str
    message: str


@dataclass
class ValidationResult:
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    format: Optional[str] = None
    size: int = 0
    mime_type: Optional[str] = None


@dataclass
class VisionReply:
    """Raw model output plus usage, as returned by the vision client."""
    text: str
    tokens_used: int
    model: str
    attempt: int


# --- Request side ----------------------------------------------------------
class AnalysisOptions(BaseModel):
    focusAreas: Optional[List[str]] = None
    analysisType: str = "comprehensive"
    includeAdvice: bool = True

    @field_validator("focusAreas", mode="before")
    @classmethod
    def _split_focus_areas(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        areas = [str(a).strip() for a in v if str(a).strip()]
        return areas or None


class Base64AnalyzeRequest(BaseModel):
    imageData: Optional[str] = None
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)


# --- Structured model output (first parser tier) ---------------------------
class StructuredScores(BaseModel):
    overall: float = Field(ge=0, le=10)
    facialSymmetry: Optional[float] = Field(default=None, ge=0, le=10)
    skinClarity: Optional[float] = Field(default=None, ge=0, le=10)
    grooming: Optional[float] = Field(default=None, ge=0, le=10)
    expression: Optional[float] = Field(default=None, ge=0, le=10)
    eyeAppeal: Optional[float] = Field(default=None, ge=0, le=10)
    facialStructure: Optional[float] = Field(default=None, ge=0, le=10)
    hairStyle: Optional[float] = Field(default=None, ge=0, le=10)
    skinTone: Optional[float] = Field(default=None, ge=0, le=10)


class StructuredReport(BaseModel):
    scores: StructuredScores
    bestFeatures: List[str] = Field(min_length=1)
    styleRecommendations: List[str] = Field(default_factory=list)
    actionPlan: List[str] = Field(default_factory=list)
    summary: str = ""


# --- Parsed / enriched analysis --------------------------------------------
class Rating(BaseModel):
    overall: float = Field(ge=1, le=10)
    facialSymmetry: float = Field(ge=1, le=10)
    skinClarity: float = Field(ge=1, le=10)
    grooming: float = Field(ge=1, le=10)
    expression: float = Field(ge=1, le=10)
    eyeAppeal: float = Field(ge=1, le=10)
    facialStructure: float = Field(ge=1, le=10)
    hairStyle: float = Field(ge=1, le=10)
    skinTone: float = Field(ge=1, le=10)


class AnalysisText(BaseModel):
    strengths: List[str] = Field(max_length=5)
    improvements: List[str] = Field(max_length=8)
    overall: str


class Suggestions(BaseModel):
    immediate: List[str]
    longTerm: List[str]
    styling: List[str]


class ParsedAnalysis(BaseModel):
    rating: Rating
    analysis: AnalysisText
    suggestions: Suggestions
    bestFeatures: List[str] = Field(max_length=5)
    styleAndFashion: List[str] = Field(max_length=5)
    actionPlan: List[str] = Field(max_length=8)
    confidence: float = Field(ge=0.1, le=1.0)
    synthesizedCategories: List[str] = Field(default_factory=list)
    rawResponse: str = ""


class CategoryDetail(BaseModel):
    score: float
    level: str
    description: str
    priority: str


class PlanStage(BaseModel):
    actions: List[str]
    timeframe: str


class ImprovementPlan(BaseModel):
    immediate: PlanStage
    shortTerm: PlanStage
    longTerm: PlanStage


class EnhancedInsights(BaseModel):
    strengths: List[str]
    focusAreas: List[str]
    personalityIndicators: List[str]
    recommendations: List[str]


class EnrichedAnalysis(ParsedAnalysis):
    compositeScore: float
    categoryBreakdown: Dict[str, CategoryDetail]
    improvementPlan: ImprovementPlan
    enhancedInsights: EnhancedInsights
    timestamp: str


# --- Wire payloads ---------------------------------------------------------
class AnalysisMetadata(BaseModel):
    model: str
    tokensUsed: int
    attempt: int
    processingTimeMs: int
    imageFormat: Optional[str] = None
    imageSize: Optional[int] = None
    inputType: str = "multipart"
    timestamp: str


class AnalysisData(EnrichedAnalysis):
    metadata: AnalysisMetadata


class AnalysisResult(BaseModel):
    success: bool = True
    analysisId: str
    data: AnalysisData


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    timestamp: str
    analysisId: Optional[str] = None
    processingTime: Optional[int] = None
    details: Optional[List[str]] = None

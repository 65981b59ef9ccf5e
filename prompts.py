from typing import Optional

from schemas import AnalysisOptions

SYSTEM_PROMPT = """
You are an expert attractiveness and style analyst. You review a single photo of a person
and give an honest, encouraging, specific assessment. Follow the requested output format exactly.
"""

ANALYSIS_PROMPT = """
Analyze the person in this photo and produce an attractiveness rating with styling and improvement advice.

REQUIRED OUTPUT FORMAT - follow this structure exactly:

📊 OVERALL ATTRACTIVENESS SCORE: [1-10]/10
[One sentence explaining the score]

🎯 CATEGORY SCORES:
• Facial Symmetry: [score]/10
• Skin Clarity: [score]/10
• Grooming: [score]/10
• Expression: [score]/10
• Eye Appeal: [score]/10
• Facial Structure: [score]/10
• Hair Style: [score]/10
• Skin Tone: [score]/10

🌟 TOP 5 BEST FEATURES:
1. [Feature] - [Why it works]
2. [Feature] - [Why it works]
3. [Feature] - [Why it works]
4. [Feature] - [Why it works]
5. [Feature] - [Why it works]

💎 DETAILED ANALYSIS:
[Two short paragraphs on facial harmony, individual features, skin, hair and presentation]

👔 STYLE RECOMMENDATIONS (3-5 suggestions):
1. [Hairstyle suggestion]
2. [Clothing or color suggestion]
3. [Grooming suggestion]

📋 ACTION PLAN (prioritized):
1. IMMEDIATE (this week): [Quick win]
2. IMMEDIATE (this week): [Quick win]
3. IMMEDIATE (this week): [Quick win]
4. SHORT-TERM (1-3 months): [Habit or routine]
5. SHORT-TERM (1-3 months): [Habit or routine]
6. LONG-TERM (3+ months): [Lifestyle change]
7. LONG-TERM (3+ months): [Lifestyle change]
8. LONG-TERM (3+ months): [Optional professional consultation]

After the report, output ONE JSON object on its own, with this schema:
{
  "scores": {"overall": float, "facialSymmetry": float, "skinClarity": float, "grooming": float,
             "expression": float, "eyeAppeal": float, "facialStructure": float, "hairStyle": float,
             "skinTone": float},
  "bestFeatures": ["string", ...],
  "styleRecommendations": ["string", ...],
  "actionPlan": ["string", ...],
  "summary": "string"
}
Rules:
- Scores 1-10 with one decimal
- The JSON must repeat the scores and lists from the report
"""

FOCUS_TEMPLATE = "Pay special attention to: {areas} and provide extra detail in these areas."

CONNECTION_TEST_SYSTEM = "You are a test assistant."
CONNECTION_TEST_PROMPT = "Testing. Just say hi and hello world and nothing else."


def build_prompt(options: Optional[AnalysisOptions] = None) -> str:
    prompt = ANALYSIS_PROMPT.strip()
    if options is not None and options.focusAreas:
        prompt += "\n\n" + FOCUS_TEMPLATE.format(areas=", ".join(options.focusAreas))
    return prompt

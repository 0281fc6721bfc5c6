"""Examiner definitions and prompt builders.

Prompt templates are formatted with ``max_score`` (the marks available for the
dimension on the current question type), so literal JSON braces are doubled.
"""

from typing import Dict, List

from .models import Dimension, GradingRequest, QuestionTypeConfig, RubricDimension

_RESPONSE_HEADER = "You MUST respond with a single JSON object in exactly this format:"

KNOWLEDGE_PROMPT = """You are an expert examiner assessing AO1: Knowledge and Understanding.

Your task is to evaluate the student's demonstration of subject knowledge.

EVALUATION GUIDANCE:
1. Check accuracy of all key term definitions
2. Assess breadth of knowledge demonstrated
3. Evaluate precision of terminology
4. Consider relevance of knowledge to the question

""" + _RESPONSE_HEADER + """
{{
  "score": <number 0-{max_score}>,
  "band": "<L1|L2|L3>",
  "feedback": "<2-3 sentences explaining the score>",
  "strengths": ["<specific strength>", "..."],
  "improvements": ["<specific improvement>", "..."],
  "keyTermsUsed": ["<accurate term>", "..."],
  "keyTermsMissing": ["<missing term>", "..."]
}}"""

APPLICATION_PROMPT = """You are an expert examiner assessing AO2: Application.

Your task is to evaluate how well the student applies knowledge to the given context.

EVALUATION GUIDANCE:
1. Assess how well the response addresses the specific question context
2. Evaluate relevance and specificity of examples used
3. Check for reference to any provided data or extracts
4. Consider appropriateness of case studies

""" + _RESPONSE_HEADER + """
{{
  "score": <number 0-{max_score}>,
  "band": "<L1|L2|L3>",
  "feedback": "<2-3 sentences explaining the score>",
  "strengths": ["<specific strength>", "..."],
  "improvements": ["<specific improvement>", "..."],
  "examplesUsed": ["<example>", "..."],
  "contextualReferences": ["<context reference>", "..."]
}}"""

ANALYSIS_PROMPT = """You are an expert examiner assessing AO3: Analysis.

Your task is to evaluate the student's analytical skills and chains of reasoning.

EVALUATION GUIDANCE:
1. Identify and count clear chains of reasoning (minimum 2 steps)
2. Assess quality of cause-and-effect explanations
3. Evaluate diagram accuracy where a diagram is provided: axes, curves and
   shifts, equilibrium points, annotations
4. Check logical flow of arguments

""" + _RESPONSE_HEADER + """
{{
  "score": <number 0-{max_score}>,
  "band": "<L1|L2|L3>",
  "feedback": "<2-3 sentences explaining the score>",
  "strengths": ["<specific strength>", "..."],
  "improvements": ["<specific improvement>", "..."],
  "chainsOfReasoning": <number>,
  "diagramQuality": "<excellent|good|adequate|poor|missing>",
  "diagramFeedback": "<specific diagram feedback if applicable>"
}}"""

EVALUATION_PROMPT = """You are an expert examiner assessing AO4: Evaluation.

Your task is to evaluate the student's critical evaluation and judgment skills.

EVALUATION GUIDANCE:
1. Count evaluative comments (however, although, on the other hand, ...)
2. Assess balance of arguments
3. Evaluate quality of critical assessment and prioritization of factors
4. Assess whether the final judgment is supported by the preceding analysis

""" + _RESPONSE_HEADER + """
{{
  "score": <number 0-{max_score}>,
  "band": "<L1|L2|L3>",
  "feedback": "<2-3 sentences explaining the score>",
  "strengths": ["<specific strength>", "..."],
  "improvements": ["<specific improvement>", "..."],
  "evaluativeComments": <number>,
  "balanceScore": "<excellent|good|adequate|poor>",
  "judgmentQuality": "<well-supported|partially-supported|unsupported|missing>"
}}"""

CONSENSUS_SYSTEM_PROMPT = (
    "You are a senior chief examiner providing a final consensus assessment. "
    "Synthesize the individual examiner results into one coherent judgment and "
    "respond with a single JSON object only."
)


def _economics_examiners() -> List[RubricDimension]:
    return [
        RubricDimension(
            id="knowledge",
            name="Knowledge Examiner",
            description="Assesses accurate definitions, concepts, and theoretical understanding",
            dimension=Dimension.AO1,
            criteria=[
                "Accurate definitions of key terms",
                "Correct use of economic concepts",
                "Appropriate theoretical frameworks",
                "Relevant knowledge selection",
            ],
            prompt_template=KNOWLEDGE_PROMPT,
        ),
        RubricDimension(
            id="application",
            name="Application Examiner",
            description="Evaluates how well knowledge is applied to the specific context",
            dimension=Dimension.AO2,
            criteria=[
                "Contextual application of knowledge",
                "Use of relevant examples",
                "Reference to specific scenarios and data",
                "Appropriate case study selection",
            ],
            prompt_template=APPLICATION_PROMPT,
        ),
        RubricDimension(
            id="analysis",
            name="Analysis Examiner",
            description="Assesses chains of reasoning, cause and effect, and use of diagrams",
            dimension=Dimension.AO3,
            criteria=[
                "Clear chains of reasoning",
                "Cause and effect relationships",
                "Appropriate use of diagrams",
                "Logical development of arguments",
            ],
            prompt_template=ANALYSIS_PROMPT,
        ),
        RubricDimension(
            id="evaluation",
            name="Evaluation Examiner",
            description="Assesses critical evaluation, balanced arguments, and supported judgments",
            dimension=Dimension.AO4,
            criteria=[
                "Balanced arguments presented",
                "Critical assessment of points",
                "Prioritization of factors",
                "Supported judgments and conclusions",
            ],
            prompt_template=EVALUATION_PROMPT,
        ),
    ]


_GEOGRAPHY_CRITERIA: Dict[Dimension, List[str]] = {
    Dimension.AO1: [
        "Accurate geographical knowledge",
        "Correct use of geographical terminology",
        "Appropriate case studies and examples",
        "Relevant place-specific knowledge",
    ],
    Dimension.AO2: [
        "Application to specific places and contexts",
        "Use of relevant case studies",
        "Consideration of scale (local to global)",
        "Appropriate geographical examples",
    ],
    Dimension.AO3: [
        "Clear explanation of processes",
        "Understanding of interconnections",
        "Effective use of geographical evidence",
        "Logical development of geographical arguments",
    ],
    Dimension.AO4: [
        "Balanced geographical perspectives",
        "Critical assessment of viewpoints",
        "Consideration of different scales",
        "Supported geographical conclusions",
    ],
}


def _geography_examiners() -> List[RubricDimension]:
    return [
        examiner.model_copy(update={"criteria": _GEOGRAPHY_CRITERIA[examiner.dimension]})
        for examiner in _economics_examiners()
    ]


def default_examiners() -> Dict[str, List[RubricDimension]]:
    """Examiners per subject (rubric variant)."""
    return {
        "economics": _economics_examiners(),
        "geography": _geography_examiners(),
    }


def build_examiner_prompt(examiner: RubricDimension, request: GradingRequest,
                          question_config: QuestionTypeConfig, max_score: int) -> str:
    """Build the system prompt for one examiner."""
    criteria_text = "\n".join(f"- {c}" for c in examiner.criteria)
    return f"""{examiner.prompt_template.format(max_score=max_score)}

ASSESSMENT CRITERIA ({examiner.dimension.value}):
{criteria_text}

QUESTION CONTEXT:
- Unit: {request.unit}
- Question Type: {question_config.type} ({question_config.total_marks} marks total)
- Your AO Focus: {examiner.dimension.value} (Maximum {max_score} marks for this question type)
- Diagram Required: {"Yes" if question_config.requires_diagram else "No"}
- Diagram Provided: {"Yes" if request.has_diagram else "No"}

Remember to be strict but fair in your assessment. Apply the mark scheme precisely."""


def build_user_content(request: GradingRequest) -> str:
    """Build the user message shared by all examiners."""
    content = f"QUESTION: {request.question}\n\n"

    if request.context_data:
        content += f"CONTEXT/DATA PROVIDED:\n{request.context_data}\n\n"

    if request.extract_info:
        content += f"EXTRACT INFORMATION:\n{request.extract_info}\n\n"

    content += f"STUDENT RESPONSE:\n{request.essay}\n\n"
    content += f"DIAGRAM: {'Student has provided a diagram' if request.has_diagram else 'No diagram provided'}\n\n"
    content += "Please provide your assessment in the required JSON format."
    return content


def build_consensus_prompt(score_lines: List[str], strengths: List[str],
                           improvements: List[str], question: str,
                           question_limit: int = 200) -> str:
    """Build the user message for the consensus examiner."""
    strengths_text = "\n".join(f"{i}. {s}" for i, s in enumerate(strengths, start=1)) or "None recorded"
    improvements_text = "\n".join(f"{i}. {s}" for i, s in enumerate(improvements, start=1)) or "None recorded"
    question_excerpt = question[:question_limit]
    if len(question) > question_limit:
        question_excerpt += "..."

    return f"""SCORES SUMMARY:
{chr(10).join(score_lines)}

STUDENT STRENGTHS IDENTIFIED:
{strengths_text}

AREAS FOR IMPROVEMENT:
{improvements_text}

QUESTION: {question_excerpt}

Provide a consensus assessment in this JSON format:
{{
  "summary": "<3-4 sentence overall assessment highlighting key performance>",
  "keyStrengths": ["<top 3 strengths>"],
  "priorityImprovements": ["<top 3 priority improvements>"]
}}"""

"""Pattern-based annotations over the essay text.

Pure and synchronous; independent of the examiner calls.
"""

import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple

from .models import Annotation, AnnotationCategory

DEFAULT_ANNOTATION_LIMIT = 8

_TERMINAL = re.compile(r'[.!?]+')
# Dots that do not end a sentence: "e.g.", "i.e." and decimals like 2.5
_NON_TERMINAL_DOTS = re.compile(r'\b(?:e\.g|i\.e)\.|(?<=\d)\.(?=\d)', re.IGNORECASE)


@dataclass(frozen=True)
class MarkerRule:
    category: AnnotationCategory
    pattern: Pattern
    message: str
    suggestion: str


MARKER_RULES: Tuple[MarkerRule, ...] = (
    MarkerRule(
        AnnotationCategory.EVALUATION,
        re.compile(r'\b(?:however|although|on the other hand|conversely|nevertheless|'
                   r'it depends|in contrast)\b', re.IGNORECASE),
        "Good evaluative language",
        "Ensure this evaluation is developed with specific reasoning",
    ),
    MarkerRule(
        AnnotationCategory.ANALYSIS,
        re.compile(r'\b(?:because|therefore|as a result|this leads to|consequently|thus)\b',
                   re.IGNORECASE),
        "Clear analytical connection",
        "Consider extending this chain of reasoning further",
    ),
    MarkerRule(
        AnnotationCategory.CONCLUSION,
        re.compile(r'\b(?:in conclusion|overall|to conclude|in summary)\b', re.IGNORECASE),
        "Concluding statement",
        "Ensure your conclusion is supported by preceding analysis",
    ),
    MarkerRule(
        AnnotationCategory.EXAMPLE,
        re.compile(r'\b(?:for example|for instance|such as)\b|\be\.g\.', re.IGNORECASE),
        "Example provided",
        "Make sure this example is specific and relevant to the context",
    ),
)


def split_sentences(text: str) -> List[Tuple[int, int]]:
    """
    Split text into sentence spans.

    A sentence is a maximal run ending at terminal punctuation (or end of
    text). Leading whitespace is excluded from each span, as is trailing
    whitespace of an unterminated final sentence.

    Returns:
        (start, end) offsets such that text[start:end] is the sentence
    """
    masked = _NON_TERMINAL_DOTS.sub(lambda m: "_" * len(m.group()), text)

    spans = []
    start = 0
    for match in _TERMINAL.finditer(masked):
        spans.append((start, match.end()))
        start = match.end()
    if start < len(text):
        spans.append((start, len(text.rstrip())))

    sentences = []
    for s, e in spans:
        while s < e and text[s].isspace():
            s += 1
        if s < e:
            sentences.append((s, e))
    return sentences


def scan_annotations(text: str, limit: int = DEFAULT_ANNOTATION_LIMIT) -> List[Annotation]:
    """
    Annotate sentences that contain evaluative, causal, concluding or example markers.

    Each sentence gets at most one annotation per category, spanning the whole
    sentence. Annotations from different categories may cover the same span.
    Output is in scan order and cut at ``limit``.

    Args:
        text: Essay text
        limit: Maximum number of annotations

    Returns:
        List of Annotations
    """
    annotations: List[Annotation] = []
    if limit <= 0:
        return annotations

    for start, end in split_sentences(text):
        sentence = text[start:end]
        for rule in MARKER_RULES:
            if not rule.pattern.search(sentence):
                continue
            annotations.append(Annotation(
                id=f"{rule.category.value}-{start}",
                category=rule.category,
                start=start,
                end=end,
                message=rule.message,
                suggestion=rule.suggestion,
            ))
            if len(annotations) >= limit:
                return annotations
    return annotations

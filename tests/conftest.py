"""Shared fixtures: a scriptable fake generative backend and sample analysis data."""
import json
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from vidnotes.core.exceptions import BackendProviderError
from vidnotes.models.analysis import EnhancedVideoAnalysis, KeyTimestamp, TemplateOutput, VerbosityLevels
from vidnotes.models.concepts import (
    Concept, ConceptDifficulty, ConceptImportance, ConceptMap, ConceptRelationship, RelationshipType
)
from vidnotes.models.structure import ContentChapter, ContentStructure
from vidnotes.models.transcript import FullTranscript, TranscriptSegment

Script = Union[str, Exception, Callable[[str], str]]


class FakeBackend:
    """
    Stand-in for GenerativeClient.

    Responses are scripted per operation; a key ending in ``*`` matches any
    operation with that prefix. Unscripted operations fail with a provider error.
    """

    def __init__(self, responses: Optional[Dict[str, Script]] = None):
        self.responses: Dict[str, Script] = dict(responses or {})
        self.call_count = 0
        self.calls: List[Tuple[str, str, str]] = []

    def _lookup(self, operation: str) -> Optional[Script]:
        if operation in self.responses:
            return self.responses[operation]
        for key, value in self.responses.items():
            if key.endswith("*") and operation.startswith(key[:-1]):
                return value
        return None

    async def generate(self, prompt, mode="text", reference=None, operation="generate"):
        self.call_count += 1
        self.calls.append((operation, mode, prompt))
        script = self._lookup(operation)
        if script is None:
            raise BackendProviderError(operation, "no scripted response")
        if isinstance(script, Exception):
            raise script
        if callable(script):
            return script(prompt)
        return script

    def operations(self) -> List[str]:
        return [operation for operation, _mode, _prompt in self.calls]


@pytest.fixture
def fake_backend_factory():
    return FakeBackend


@pytest.fixture
def lecture_transcript():
    """Four-and-a-half minute transcript about gradient descent."""
    lines = [
        (0, 10, "Welcome to this introduction to gradient descent."),
        (10, 25, "A loss function measures how wrong the model is."),
        (25, 45, "Gradient descent follows the gradient of the loss function downhill."),
        (45, 90, "The learning rate controls the step size of gradient descent."),
        (95, 140, "Moving on, stochastic gradient descent samples a mini batch at each step."),
        (140, 200, "A smaller learning rate is slower but more stable."),
        (205, 250, "In conclusion, gradient descent minimizes the loss function step by step."),
        (250, 270, "Thanks for watching."),
    ]
    segments = [
        TranscriptSegment(start_time=start, end_time=end, text=text, confidence=0.9)
        for start, end, text in lines
    ]
    return FullTranscript(
        segments=segments,
        total_duration=270.0,
        language="en",
        average_confidence=0.9,
        word_count=sum(len(text.split()) for _, _, text in lines)
    )


@pytest.fixture
def lecture_concept_map():
    concepts = [
        Concept(
            name="Gradient Descent",
            definition="An iterative method that minimizes a function by following its gradient.",
            timestamps=[0, 25, 45, 95, 205],
            importance=ConceptImportance.CORE,
            difficulty=ConceptDifficulty.INTERMEDIATE,
            related_concepts=["Loss Function", "Learning Rate"]
        ),
        Concept(
            name="Loss Function",
            definition="A measure of how wrong a model's predictions are.",
            timestamps=[10, 25, 205],
            importance=ConceptImportance.SUPPORTING,
            difficulty=ConceptDifficulty.BASIC,
            related_concepts=["Gradient Descent"]
        ),
        Concept(
            name="Learning Rate",
            definition="The step size used by gradient descent.",
            aliases=["step size"],
            timestamps=[45, 140],
            importance=ConceptImportance.SUPPORTING,
            related_concepts=["Gradient Descent"]
        ),
    ]
    return ConceptMap(
        concepts=concepts,
        relationships=[
            ConceptRelationship(source="Loss Function", target="Gradient Descent",
                                type=RelationshipType.PREREQUISITE, strength=0.8),
            ConceptRelationship(source="Gradient Descent", target="Learning Rate",
                                type=RelationshipType.RELATED, strength=0.6),
        ],
        hierarchy_levels=[["Loss Function", "Learning Rate"], ["Gradient Descent"]]
    )


@pytest.fixture
def lecture_analysis(lecture_transcript, lecture_concept_map):
    """A finished artifact with one rendered format."""
    standard = (
        "**Video Summary**\n"
        "## Overview\n"
        "Gradient descent minimizes a loss function. It repeats small steps downhill.\n"
        "## Learning Rate\n"
        "The learning rate sets the step size. Smaller rates are slower but more stable."
    )
    return EnhancedVideoAnalysis(
        video_id="abc123def45",
        video_url="https://www.youtube.com/watch?v=abc123def45",
        title="Gradient Descent Explained",
        full_transcript=lecture_transcript,
        content_structure=ContentStructure(
            chapters=[
                ContentChapter(title="Introduction", start_time=0, end_time=95,
                               summary="Loss functions and gradient descent."),
                ContentChapter(title="Stochastic Variants", start_time=95, end_time=205,
                               summary="Mini batches and learning rates."),
                ContentChapter(title="Conclusion", start_time=205, end_time=270,
                               summary="Recap of the method."),
            ],
            main_topics=["Gradient Descent"],
            has_introduction=True,
            has_conclusion=True,
            transition_points=[95, 205]
        ),
        concept_map=lecture_concept_map,
        primary_subject="Gradient Descent",
        key_timestamps=[
            KeyTimestamp(time=95, title="Stochastic Variants", related_concepts=["Gradient Descent"])
        ],
        all_template_outputs={
            "basic-summary": TemplateOutput(
                content=standard,
                verbosity_levels=VerbosityLevels(
                    brief="**Video Summary**\nGradient descent minimizes a loss function.",
                    standard=standard,
                    comprehensive=standard + "\n\n## Concept Deep Dive\n### Gradient Descent"
                )
            )
        }
    )


def chapter_outline_json(count: int) -> str:
    return json.dumps({
        "chapters": [
            {"title": f"Chapter {index}", "summary": f"Summary {index}", "key_points": [f"Point {index}"],
             "importance": "medium"}
            for index in range(1, count + 1)
        ],
        "main_topics": ["Gradient Descent"],
        "flow_type": "linear",
    })


@pytest.fixture
def chapter_outline():
    return chapter_outline_json

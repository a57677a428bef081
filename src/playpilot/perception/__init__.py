"""
Perception module - screenshot, OCR, element classification, template matching, and pipeline.
"""

from playpilot.perception.models import (
    PixelBuffer,
    TextSpan,
    ElementType,
    Shape,
    UITemplateDescriptor,
    UI_TEMPLATES,
    DetectedElement,
    DetectionResult,
)
from playpilot.perception.screenshot import ScreenCapture
from playpilot.perception.preprocessing import ImagePreprocessor, PreparedImage
from playpilot.perception.ocr import TextRecognizer, EngineHandle
from playpilot.perception.classifier import ElementClassifier
from playpilot.perception.template import TemplateMatcher, MatchResult
from playpilot.perception.merge import merge_overlapping
from playpilot.perception.pipeline import (
    DetectionPipeline,
    DetectionOptions,
    CustomElement,
)

__all__ = [
    # Models
    "PixelBuffer",
    "TextSpan",
    "ElementType",
    "Shape",
    "UITemplateDescriptor",
    "UI_TEMPLATES",
    "DetectedElement",
    "DetectionResult",
    # Screenshot
    "ScreenCapture",
    # OCR
    "ImagePreprocessor",
    "PreparedImage",
    "TextRecognizer",
    "EngineHandle",
    # Classification
    "ElementClassifier",
    "merge_overlapping",
    # Template Matching
    "TemplateMatcher",
    "MatchResult",
    # Pipeline
    "DetectionPipeline",
    "DetectionOptions",
    "CustomElement",
]

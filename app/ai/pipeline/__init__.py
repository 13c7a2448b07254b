"""Pipeline contracts, stage descriptors and assembly helpers."""

from app.ai.pipeline.assembly import CONTENT_PLACEHOLDER, assemble_artifact, extract_lesson_metadata, strip_code_fences
from app.ai.pipeline.contracts import ContentPart, GenerationRequest, LessonMetadata, StageUsage
from app.ai.pipeline.stages import LESSON_STAGES, StageContext, StageDefinition

__all__ = ["CONTENT_PLACEHOLDER", "ContentPart", "GenerationRequest", "LESSON_STAGES", "LessonMetadata", "StageContext", "StageDefinition", "StageUsage", "assemble_artifact", "extract_lesson_metadata", "strip_code_fences"]

"""
Template resolution, parsing, compilation and caching.
"""
from .cache import CompiledArtifact, TemplateCache
from .compilers import (
    CommentCompiler,
    ConditionalCompiler,
    DirectiveCompiler,
    EchoCompiler,
    IncludeCompiler,
    LiteralAtCompiler,
    LoopCompiler,
    PartialCompiler,
    RawEchoCompiler,
    ScopeCompiler,
    ValidationCompiler,
    YieldCompiler,
)
from .parsing import LayoutParser, MergedTemplate, SectionMap, SectionParser, TemplateSource
from .paths import TemplatePathResolver, validate_template_name
from .pipeline import DirectivePipeline
from .processing import TemplateParsingService

__all__ = [
    "CommentCompiler",
    "CompiledArtifact",
    "ConditionalCompiler",
    "DirectiveCompiler",
    "DirectivePipeline",
    "EchoCompiler",
    "IncludeCompiler",
    "LayoutParser",
    "LiteralAtCompiler",
    "LoopCompiler",
    "MergedTemplate",
    "PartialCompiler",
    "RawEchoCompiler",
    "ScopeCompiler",
    "SectionMap",
    "SectionParser",
    "TemplateCache",
    "TemplateParsingService",
    "TemplatePathResolver",
    "TemplateSource",
    "ValidationCompiler",
    "YieldCompiler",
    "validate_template_name",
]

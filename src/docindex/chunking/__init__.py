"""Chunking strategies, the hybrid selector and post-processing passes."""

from .context_aware import ContextAwareStrategy
from .enhancer import ChunkEnhancer, EnhancementOptions
from .hierarchical import HierarchicalStrategy
from .hybrid import ContentAnalysis, HybridStrategy, analyze_content, select_strategy
from .manager import ChunkingManager
from .method_level import MethodLevelStrategy
from .optimizer import ChunkOptimizer

__all__ = [
    "ChunkEnhancer",
    "ChunkOptimizer",
    "ChunkingManager",
    "ContentAnalysis",
    "ContextAwareStrategy",
    "EnhancementOptions",
    "HierarchicalStrategy",
    "HybridStrategy",
    "MethodLevelStrategy",
    "analyze_content",
    "select_strategy",
]

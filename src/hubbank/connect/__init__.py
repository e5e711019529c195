"""Connection matching, synergy rollups and strategic commentary."""

from .commentary import (
    CommentaryGenerator,
    OpenAICommentaryGenerator,
    build_commentary_prompt,
    build_comparison_payload,
    generate_commentary,
)
from .matcher import ConnectionDetails, ConnectionMatcher
from .synergy import (
    Summary,
    SynergyAggregator,
    TwoWayConnection,
    filter_by_market,
    synergy_score,
    two_way_dataframe,
)

__all__ = [
    "CommentaryGenerator",
    "ConnectionDetails",
    "ConnectionMatcher",
    "OpenAICommentaryGenerator",
    "Summary",
    "SynergyAggregator",
    "TwoWayConnection",
    "build_commentary_prompt",
    "build_comparison_payload",
    "filter_by_market",
    "generate_commentary",
    "synergy_score",
    "two_way_dataframe",
]

"""CRD-to-CRD relationship contract and CRD dependency analysis.

Exposes:
    CRDRelationshipOptions   -- validated request options.
    CRDRelationshipsResponse -- validated collaborator answer.
    CRDRelationshipService   -- request with fallback and placeholders.
    CRDAnalysisOptions       -- validated enhanced analysis request.
    CRDAnalysisResult        -- validated CRD dependency analysis.
    CRDExportOptions         -- what the collaborator should export.
"""

from kubegraph.crd.analysis import (
    AnalysisDepth,
    CRDAnalysisEdge,
    CRDAnalysisExport,
    CRDAnalysisMetadata,
    CRDAnalysisNode,
    CRDAnalysisOptions,
    CRDAnalysisResult,
    CRDApiGroup,
    CRDApiGroupMember,
    CRDExportFormat,
    CRDExportOptions,
    parse_api_groups,
)
from kubegraph.crd.models import (
    CRDInfo,
    CRDRelationship,
    CRDRelationshipMetadata,
    CRDRelationshipOptions,
    CRDRelationshipsResponse,
    CRDResponseMetadata,
    CRDScope,
)
from kubegraph.crd.service import CRDRelationshipService

__all__ = [
    "AnalysisDepth",
    "CRDAnalysisEdge",
    "CRDAnalysisExport",
    "CRDAnalysisMetadata",
    "CRDAnalysisNode",
    "CRDAnalysisOptions",
    "CRDAnalysisResult",
    "CRDApiGroup",
    "CRDApiGroupMember",
    "CRDExportFormat",
    "CRDExportOptions",
    "CRDInfo",
    "CRDRelationship",
    "CRDRelationshipMetadata",
    "CRDRelationshipOptions",
    "CRDRelationshipService",
    "CRDRelationshipsResponse",
    "CRDResponseMetadata",
    "CRDScope",
    "parse_api_groups",
]

"""Graph export: structured (lossless), tabular and report formats."""

from kubegraph.export.serializer import ExportFormat, ExportOptions, ExportPayload, export_graph, import_structured

__all__ = ["ExportFormat", "ExportOptions", "ExportPayload", "export_graph", "import_structured"]

"""CSV import and export nodes."""

import csv
import io
from typing import Any, Dict, Iterable, List

from taktak.executor.context import ExecutionContext
from taktak.executor.errors import DataValidationError
from taktak.nodes.base import NodeCategory, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from taktak.nodes.operators import to_text
from taktak.nodes.schemas import CSVExportConfig, CSVImportConfig
from taktak.workflows.models import NodeType, WorkflowNode


def read_records(text: str, delimiter: str = ",") -> List[List[str]]:
    """Parse CSV text into records, dropping blank lines.

    Quoted cells may contain the delimiter, doubled quotes and line breaks.
    Cells are returned verbatim.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    try:
        return [
            record for record in reader
            if record and not (len(record) == 1 and not record[0].strip())
        ]
    except csv.Error as e:
        raise DataValidationError(
            f"Invalid CSV data at line {reader.line_num}: {e}",
            field="csvData",
        ) from e


def write_records(records: Iterable[List[str]], delimiter: str = ",") -> str:
    """Render records as CSV text without a trailing line break."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerows(records)
    text = buffer.getvalue()
    return text[:-1] if text.endswith("\n") else text


class CSVImportHandler(NodeHandler[CSVImportConfig]):
    """Parse CSV text into a list of row objects."""

    node_type = NodeType.CSV_IMPORT
    config_model = CSVImportConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute CSV import."""
        config = self.parse_config(node)
        data = self.resolve(config.csv_data, context)
        if not isinstance(data, str):
            raise DataValidationError("CSV data must be a string", field="csvData", actual_value=data)

        records = read_records(data, config.delimiter)
        if not records:
            return {"rows": [], "count": 0, "headers": []}

        first = records[0]
        if config.has_header:
            headers = first
            records = records[1:]
        else:
            headers = [f"column_{i}" for i in range(len(first))]

        rows = []
        for values in records:
            rows.append({
                header: values[i] if i < len(values) else ""
                for i, header in enumerate(headers)
            })

        self.logger.debug("CSV imported", node_id=node.id, rows=len(rows), columns=len(headers))
        return {"rows": rows, "count": len(rows), "headers": headers}

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="CSV Import",
            type=NodeType.CSV_IMPORT,
            category=NodeCategory.TRANSFORM,
            description="Parse CSV data into rows",
            parameters=[
                NodeParameter(name="csvData", type=ParameterType.EXPRESSION, required=True),
                NodeParameter(name="delimiter", type=ParameterType.STRING, default=","),
                NodeParameter(name="hasHeader", type=ParameterType.BOOLEAN, default=True),
            ],
        )


class CSVExportHandler(NodeHandler[CSVExportConfig]):
    """Render a list of objects as CSV text."""

    node_type = NodeType.CSV_EXPORT
    config_model = CSVExportConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute CSV export."""
        config = self.parse_config(node)
        data = self.resolve(config.data, context)

        if not isinstance(data, list):
            raise DataValidationError("Data must be an array for CSV export", field="data", actual_value=data)

        if not data:
            return {"csv": "", "rowCount": 0}

        objects = [item for item in data if isinstance(item, dict)]

        headers: List[str] = []
        for item in objects:
            for key in item:
                if key not in headers:
                    headers.append(key)

        records = [[to_text(item.get(header)) for header in headers] for item in objects]
        if config.include_header:
            records.insert(0, [str(header) for header in headers])

        self.logger.debug("CSV exported", node_id=node.id, rows=len(objects), columns=len(headers))
        return {"csv": write_records(records, config.delimiter), "rowCount": len(objects), "headers": headers}

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="CSV Export",
            type=NodeType.CSV_EXPORT,
            category=NodeCategory.TRANSFORM,
            description="Convert a list of objects to CSV",
            parameters=[
                NodeParameter(name="data", type=ParameterType.EXPRESSION, required=True),
                NodeParameter(name="delimiter", type=ParameterType.STRING, default=","),
                NodeParameter(name="includeHeader", type=ParameterType.BOOLEAN, default=True),
            ],
        )

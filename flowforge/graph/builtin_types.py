"""Built-in node definitions shipped with every registry."""

from flowforge.schemas.node_definition import (
    FieldOption,
    FieldValidation,
    NodeDefinition,
    NodeFieldConfig,
)


def _options(*pairs: tuple[str, str]) -> list[FieldOption]:
    return [FieldOption(value=value, label=label) for value, label in pairs]


START_DEFINITION = NodeDefinition(
    id="start",
    type="start",
    label="Start",
    description="Workflow start point",
    icon="Play",
    category="control",
)

END_DEFINITION = NodeDefinition(
    id="end",
    type="end",
    label="End",
    description="Workflow end point",
    icon="Square",
    category="control",
)

BUILTIN_DEFINITIONS: list[NodeDefinition] = [
    START_DEFINITION,
    END_DEFINITION,
    NodeDefinition(
        id="dataSource",
        type="dataSource",
        label="Data Source",
        description="Connect to ERP, Shopify, CSV, or other data sources",
        icon="Database",
        color="workflow-erp",
        category="source",
        config_fields=[
            NodeFieldConfig(
                name="sourceType",
                type="select",
                label="Data Source Type",
                required=True,
                options=_options(
                    ("netsuite", "NetSuite ERP"),
                    ("shopify", "Shopify"),
                    ("csv", "CSV File"),
                    ("api", "REST API"),
                    ("database", "Database"),
                ),
            ),
            NodeFieldConfig(
                name="connectionString",
                type="text",
                label="Connection String",
                placeholder="Enter connection details",
            ),
            NodeFieldConfig(
                name="syncFrequency",
                type="number",
                label="Sync Frequency (minutes)",
                placeholder="30",
                validation=FieldValidation(min=1, max=1440),
            ),
            NodeFieldConfig(name="autoSync", type="switch", label="Enable Auto Sync"),
        ],
    ),
    NodeDefinition(
        id="process",
        type="process",
        label="Process",
        description="Transform, combine, and manipulate data",
        icon="Zap",
        color="workflow-process",
        category="transform",
        config_fields=[
            NodeFieldConfig(
                name="transformationType",
                type="select",
                label="Transformation Type",
                required=True,
                options=_options(
                    ("merge", "Merge Data"),
                    ("transform", "Transform Fields"),
                    ("aggregate", "Aggregate Data"),
                    ("normalize", "Normalize Data"),
                ),
            ),
            NodeFieldConfig(
                name="transformationRules",
                type="textarea",
                label="Transformation Rules",
            ),
        ],
    ),
    NodeDefinition(
        id="ai",
        type="ai",
        label="AI/ML",
        description="Apply AI algorithms and smart categorization",
        icon="Brain",
        color="workflow-ai",
        category="ai",
        config_fields=[
            NodeFieldConfig(
                name="aiModel",
                type="select",
                label="AI Model",
                required=True,
                options=_options(
                    ("categorization", "Smart Categorization"),
                    ("anomaly", "Anomaly Detection"),
                    ("prediction", "Demand Prediction"),
                    ("optimization", "Inventory Optimization"),
                ),
            ),
            NodeFieldConfig(
                name="confidenceThreshold",
                type="number",
                label="Confidence Threshold (%)",
                placeholder="85",
                validation=FieldValidation(min=0, max=100),
            ),
            NodeFieldConfig(name="autoLearning", type="switch", label="Enable Auto Learning"),
        ],
    ),
    NodeDefinition(
        id="filter",
        type="filter",
        label="Filter",
        description="Filter, sort, and refine data sets",
        icon="Filter",
        color="workflow-filter",
        category="filter",
        config_fields=[
            NodeFieldConfig(
                name="filterConditions",
                type="json",
                label="Filter Conditions (JSON)",
                placeholder='{"status": {"not": "retired"}}',
                required=True,
            ),
            NodeFieldConfig(
                name="discrepancyThreshold",
                type="number",
                label="Discrepancy Threshold",
                validation=FieldValidation(min=0),
            ),
        ],
    ),
    NodeDefinition(
        id="visualization",
        type="visualization",
        label="Visualize",
        description="Create charts, dashboards, and analytics",
        icon="BarChart3",
        color="workflow-analyze",
        category="output",
        config_fields=[
            NodeFieldConfig(
                name="chartType",
                type="select",
                label="Chart Type",
                required=True,
                options=_options(
                    ("bar", "Bar Chart"),
                    ("line", "Line Chart"),
                    ("pie", "Pie Chart"),
                    ("scatter", "Scatter Plot"),
                    ("dashboard", "Dashboard"),
                ),
            ),
            NodeFieldConfig(name="metrics", type="textarea", label="Metrics to Display"),
            NodeFieldConfig(name="realTime", type="switch", label="Real-time Updates"),
        ],
    ),
    NodeDefinition(
        id="conditional",
        type="conditional",
        label="Conditional",
        description="Branch the workflow on a true/false condition",
        icon="GitBranch",
        color="workflow-control",
        category="control",
        outputs=["true", "false"],
        config_fields=[
            NodeFieldConfig(name="variable", type="text", label="Variable", required=True),
            NodeFieldConfig(
                name="operator",
                type="select",
                label="Operator",
                options=_options(
                    ("equals", "Equals"),
                    ("not_equals", "Not Equals"),
                    ("greater_than", "Greater Than"),
                    ("less_than", "Less Than"),
                    ("contains", "Contains"),
                ),
            ),
            NodeFieldConfig(name="value", type="text", label="Value"),
        ],
    ),
    NodeDefinition(
        id="switch",
        type="switch",
        label="Switch",
        description="Route data to one of several cases",
        icon="Split",
        color="workflow-control",
        category="control",
        multiple_outputs=True,
        config_fields=[
            NodeFieldConfig(name="variable", type="text", label="Variable", required=True),
            NodeFieldConfig(name="cases", type="json", label="Cases (JSON)"),
        ],
    ),
]

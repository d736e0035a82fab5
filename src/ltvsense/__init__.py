__version__ = "0.1.0"

# Package metadata
__description__ = "AI-powered customer lifetime value analysis for customer record files"

# Public API
from .models import (
    Customer,
    CustomerSegment,
    Purchase,
    Prediction,
    Progress,
    BucketRange,
    ValueBucket,
    ValueSummary
)
from .record_parser import RecordParser, REQUIRED_HEADERS
from .entity_builder import build_customer, build_customers
from .importer import import_customers
from .store import CustomerStore
from .orchestrator import EnrichmentOrchestrator
from .bucketizer import bucketize, summarize, DEFAULT_BUCKETS
from .exporter import export_customers, write_export, escape_field, HeaderPolicy, EXPORT_COLUMNS
from .exceptions import (
    LTVSenseError,
    SchemaError,
    RowShapeError,
    FieldValidationError,
    EnrichmentError,
    EnrichmentNotConfigured
)

__all__ = [
    # Version
    "__version__",

    # Pipeline
    "RecordParser",
    "REQUIRED_HEADERS",
    "build_customer",
    "build_customers",
    "import_customers",
    "CustomerStore",
    "EnrichmentOrchestrator",
    "bucketize",
    "summarize",
    "DEFAULT_BUCKETS",
    "export_customers",
    "write_export",
    "escape_field",
    "HeaderPolicy",
    "EXPORT_COLUMNS",

    # Data classes
    "Customer",
    "CustomerSegment",
    "Purchase",
    "Prediction",
    "Progress",
    "BucketRange",
    "ValueBucket",
    "ValueSummary",

    # Exceptions
    "LTVSenseError",
    "SchemaError",
    "RowShapeError",
    "FieldValidationError",
    "EnrichmentError",
    "EnrichmentNotConfigured"
]

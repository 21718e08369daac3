"""Public interface for the ``statement_signals`` package.

Reconciles a small-business applicant's extracted bank statements into
per-account ledgers and derives underwriting signals from them. This module
only re-exports the stable import surface; there is no runtime logic here.
"""

from .errors import (
    DataQualityIssue,
    MalformedTransactionError,
    StatementSignalsError,
    UnreconciledAccount,
)
from .extraction import ExtractionResult, statement_from_extraction
from .logging_setup import configure_logging, get_logger
from .merge import MergeResult, merge, merge_account
from .metrics import compute as compute_metrics
from .models import (
    Account,
    DateRange,
    Frequency,
    Metrics,
    MultiplePull,
    Position,
    RawTransaction,
    Statement,
    Transaction,
    TransactionKind,
    Transfer,
    to_record,
)
from .normalize import normalize, normalize_counterparty
from .pipeline import ApplicantReport, reconcile_applicant, reconcile_applicants
from .positions import (
    additive_confidence,
    detect_multiple_pulls_per_day,
    detect_positions,
    find_near_duplicate_groups,
)
from .settings import DEFAULT_SETTINGS, EngineSettings
from .summary import ApplicantSummary, StackingAnalysis, risk_level, stacking_analysis
from .transfers import attach_transfers, detect_transfers

__all__ = [
    # Pipeline
    "reconcile_applicant",
    "reconcile_applicants",
    "ApplicantReport",
    # Stages
    "statement_from_extraction",
    "normalize",
    "normalize_counterparty",
    "merge",
    "merge_account",
    "compute_metrics",
    "detect_transfers",
    "attach_transfers",
    "detect_positions",
    "detect_multiple_pulls_per_day",
    "find_near_duplicate_groups",
    "additive_confidence",
    "risk_level",
    "stacking_analysis",
    "to_record",
    # Models / types
    "RawTransaction",
    "Transaction",
    "TransactionKind",
    "Statement",
    "DateRange",
    "Metrics",
    "Account",
    "Transfer",
    "Position",
    "Frequency",
    "MultiplePull",
    "MergeResult",
    "ExtractionResult",
    "ApplicantSummary",
    "StackingAnalysis",
    # Configuration / errors
    "EngineSettings",
    "DEFAULT_SETTINGS",
    "configure_logging",
    "get_logger",
    "StatementSignalsError",
    "MalformedTransactionError",
    "DataQualityIssue",
    "UnreconciledAccount",
]

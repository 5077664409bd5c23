"""
Quality checks for a parsed upload.

A DataValidator holds an ordered list of rules. Each rule looks at the
polars frame built from the parsed sheet and yields a ValidationCheck.
Rules with ERROR severity fail the batch; WARNING rules are reported
only, since the problems they find (duplicate ids, blank codes, dates in
the future) are handled further down the pipeline.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"  # warnings only


@dataclass
class ValidationCheck:
    """Outcome of one rule"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Outcome of a full validator run"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        return 100.0 if not self.total_checks else 100.0 * self.passed_checks / self.total_checks

    @property
    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


Rule = Callable[[pl.DataFrame], ValidationCheck]


def _row_check(
    name: str,
    column: str,
    severity: ValidationSeverity,
    bad_rows: Callable[[pl.DataFrame], int],
    problem: str,
    total: Optional[Callable[[pl.DataFrame], int]] = None,
) -> Rule:
    """Rule that counts offending rows in one column; zero means pass."""
    def rule(df: pl.DataFrame) -> ValidationCheck:
        if column not in df.columns:
            return ValidationCheck(name, False, severity, f"Column '{column}' not found")

        bad = bad_rows(df)
        rows = total(df) if total else df.height
        return ValidationCheck(
            name=name,
            passed=bad == 0,
            severity=severity,
            message=f"{column}: {bad} {problem}" if bad else f"{column}: ok",
            details={"failed_rows": bad, "failed_percentage": round(100.0 * bad / rows, 2) if rows else 0.0},
            failed_rows=bad,
            total_rows=rows,
        )

    return rule


class DataValidator:
    """
    Chainable rule set.

        result = (
            DataValidator()
            .add_not_null_check("agent_code")
            .add_unique_check("order_id")
            .validate(frame)
        )
    """

    def __init__(self, strict_mode: bool = False):
        # Warnings fail the batch too
        self.strict_mode = strict_mode
        self._rules: List[Rule] = []

    def add_required_columns_check(
        self,
        columns: List[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        def rule(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            return ValidationCheck(
                name="required_columns",
                passed=not missing,
                severity=severity,
                message=f"Missing columns: {', '.join(missing)}" if missing else "All required columns present",
                details={"missing": missing},
                failed_rows=df.height if missing else 0,
                total_rows=df.height,
            )

        self._rules.append(rule)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        allow_blank: bool = True,
    ) -> "DataValidator":
        """Null values fail; with allow_blank=False whitespace-only strings fail as well."""
        def empty_rows(df: pl.DataFrame) -> int:
            empty = pl.col(column).is_null()
            if not allow_blank and df.schema[column] == pl.Utf8:
                empty = empty | (pl.col(column).str.strip_chars().str.len_chars() == 0)
            return df.filter(empty).height

        self._rules.append(_row_check(f"not_null_{column}", column, severity, empty_rows, "empty values"))
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Repeated values fail; nulls and blank strings are left to the not-null rule."""
        def present(df: pl.DataFrame) -> pl.Series:
            values = df.get_column(column).drop_nulls()
            if values.dtype == pl.Utf8:
                values = values.filter(values.str.strip_chars().str.len_chars() > 0)
            return values

        def repeats(df: pl.DataFrame) -> int:
            values = present(df)
            return values.len() - values.n_unique()

        def present_rows(df: pl.DataFrame) -> int:
            return present(df).len()

        self._rules.append(
            _row_check(f"unique_{column}", column, severity, repeats, "repeated values", total=present_rows)
        )
        return self

    def add_custom_check(
        self,
        name: str,
        predicate: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Whole-frame rule; predicate returns True when the frame is acceptable."""
        def rule(df: pl.DataFrame) -> ValidationCheck:
            passed = bool(predicate(df))
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="ok" if passed else message_on_fail,
                failed_rows=0 if passed else df.height,
                total_rows=df.height,
            )

        self._rules.append(rule)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[Any] = None,
        max_value: Optional[Any] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Values below min_value or above max_value fail; either bound may be omitted."""
        def outside(df: pl.DataFrame) -> int:
            bounds = []
            if min_value is not None:
                bounds.append(pl.col(column) < min_value)
            if max_value is not None:
                bounds.append(pl.col(column) > max_value)
            if not bounds:
                return 0
            return df.filter(pl.any_horizontal(bounds)).height

        problem = f"values outside [{min_value}, {max_value}]"
        self._rules.append(_row_check(f"range_{column}", column, severity, outside, problem))
        return self

    def _status(self, errors: int, warnings: int) -> ValidationStatus:
        if errors or (warnings and self.strict_mode):
            return ValidationStatus.FAILED
        return ValidationStatus.PARTIAL if warnings else ValidationStatus.PASSED

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        started_at = datetime.now(timezone.utc)
        checks = [rule(df) for rule in self._rules]

        for check in checks:
            if not check.passed:
                logger.warning(
                    "Quality check flagged rows",
                    check=check.name,
                    severity=check.severity.value,
                    detail=check.message,
                )

        errors = sum(1 for c in checks if not c.passed and c.severity == ValidationSeverity.ERROR)
        warnings = sum(1 for c in checks if not c.passed and c.severity == ValidationSeverity.WARNING)
        status = self._status(errors, warnings)

        logger.info("Quality checks finished", status=status.value, rows=df.height, checks=len(checks),
                    errors=errors, warnings=warnings)

        return ValidationResult(
            status=status,
            total_checks=len(checks),
            passed_checks=sum(1 for c in checks if c.passed),
            failed_checks=errors,
            warning_count=warnings,
            checks=checks,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def _has_dated_row(df: pl.DataFrame) -> bool:
    return df.height == 0 or df.get_column("order_date").is_not_null().any()


def create_sales_orders_validator(today: Optional[date] = None) -> DataValidator:
    """
    Rules applied to every upload.

    The frame holds one row per data row of the sheet, with a null
    order_date where the parser rejected the row. A sheet whose rows all
    lack a usable date stops the upload; every other rule describes rows
    the parser, the dedup filter or the metrics windows leave out.
    """
    return (
        DataValidator()
        .add_custom_check(
            "dated_rows",
            _has_dated_row,
            "No data row has a valid order date",
        )
        .add_not_null_check("order_date", severity=ValidationSeverity.WARNING)
        .add_not_null_check("order_id", severity=ValidationSeverity.WARNING, allow_blank=False)
        .add_not_null_check("agent_code", severity=ValidationSeverity.WARNING)
        .add_unique_check("order_id", severity=ValidationSeverity.WARNING)
        .add_range_check("order_date", max_value=today or date.today(), severity=ValidationSeverity.WARNING)
    )

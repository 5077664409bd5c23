"""
Unit Tests - Performance Aggregator
"""
from datetime import date, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from sf_performance.analytics.aggregator import (
    AccessScope,
    PerformanceFilters,
    Role,
    compute_agent_metrics,
    dashboard_stats,
    filter_options,
    monthly_performance,
    monthly_totals,
    productivity_distribution,
    records_to_frame,
    summarize_agents,
    tier_distribution,
)
from sf_performance.domain import ProductivityLevel, Tier


@pytest.fixture
def records(make_record):
    """Three agents under two leaders in two regions, March 2024"""
    rows = []
    for i in range(12):
        rows.append(make_record(f"A-{i}", "A01", date(2024, 3, 1) + timedelta(days=i)))
    for i in range(3):
        rows.append(make_record(f"B-{i}", "B02", date(2024, 3, 10 + i), regional="Jatim", branch="Surabaya"))
    rows.append(make_record("C-0", "C03", date(2024, 2, 20), team_leader_code="TL02"))
    return rows


class TestSummarizeAgents:
    """Tests for summarize_agents"""

    def test_groups_by_agent(self, records):
        """Test one summary per agent with totals and classification"""
        summaries = summarize_agents(records, active_ceiling=12)

        assert [s.agent_code for s in summaries] == ["A01", "B02", "C03"]
        assert [s.total_order_count for s in summaries] == [12, 3, 1]
        assert summaries[0].tier == Tier.GOLD
        assert summaries[0].productivity_level == ProductivityLevel.ACTIVE
        assert summaries[1].tier == Tier.BRONZE
        assert summaries[2].tier == Tier.BLACK

    def test_attributes_from_earliest_order(self, make_record):
        """Test descriptive fields come from the agent's first order"""
        records = [
            make_record("O-2", "A01", date(2024, 3, 5), agent_name="Renamed"),
            make_record("O-1", "A01", date(2024, 3, 1), agent_name="Original"),
        ]

        summary = summarize_agents(records)[0]

        assert summary.agent_name == "Original"

    def test_ties_ordered_by_code(self, make_record):
        """Test equal totals are ordered by agent code"""
        records = [
            make_record("O-1", "Z9", date(2024, 3, 1)),
            make_record("O-2", "M5", date(2024, 3, 1)),
        ]

        assert [s.agent_code for s in summarize_agents(records)] == ["M5", "Z9"]

    def test_records_without_agent_ignored(self, make_record):
        """Test orders with no agent code are not counted"""
        records = [
            make_record("O-1", "A01", date(2024, 3, 1)),
            make_record("O-2", None, date(2024, 3, 1)),
        ]

        summaries = summarize_agents(records)

        assert len(summaries) == 1
        assert summaries[0].total_order_count == 1

    def test_regional_filter(self, records):
        """Test equality filters on organisation fields"""
        summaries = summarize_agents(records, PerformanceFilters(regional="Jatim"))

        assert [s.agent_code for s in summaries] == ["B02"]

    def test_filters_are_conjunctive(self, records):
        """Test all filters must match"""
        filters = PerformanceFilters(regional="Jatim", branch="Bandung")

        assert summarize_agents(records, filters) == []

    def test_tier_and_productivity_filters(self, records):
        """Test filters on derived classification"""
        gold = summarize_agents(records, PerformanceFilters(tier=Tier.GOLD))
        active = summarize_agents(records, PerformanceFilters(productivity=ProductivityLevel.ACTIVE))

        assert [s.agent_code for s in gold] == ["A01"]
        assert len(active) == 3

    def test_month_filter(self, records):
        """Test month and year restrict the counted orders"""
        summaries = summarize_agents(records, PerformanceFilters(month=2, year=2024))

        assert [s.agent_code for s in summaries] == ["C03"]

    def test_leader_scope(self, records):
        """Test leaders only see their team"""
        scope = AccessScope(role=Role.LEADER, code="TL02")

        assert [s.agent_code for s in summarize_agents(records, scope=scope)] == ["C03"]

    def test_sales_scope(self, records):
        """Test sales agents only see themselves"""
        scope = AccessScope(role=Role.SALES, code="B02")

        assert [s.agent_code for s in summarize_agents(records, scope=scope)] == ["B02"]

    def test_scope_requires_code(self):
        """Test non-admin roles need a code"""
        with pytest.raises(PydanticValidationError):
            AccessScope(role=Role.LEADER)

    def test_empty_records(self):
        """Test no records gives no summaries"""
        assert summarize_agents([]) == []

    def test_idempotent(self, records):
        """Test repeated runs over the same records agree"""
        as_of = date(2024, 3, 20)

        assert summarize_agents(records) == summarize_agents(records)
        assert compute_agent_metrics(records, as_of) == compute_agent_metrics(records, as_of)


class TestComputeAgentMetrics:
    """Tests for compute_agent_metrics"""

    def test_metrics_joined_by_agent(self, records):
        """Test each summary carries its own metrics"""
        performance = compute_agent_metrics(records, as_of=date(2024, 3, 31))

        by_code = {p.agent_code: p for p in performance}
        assert by_code["A01"].metrics.agent_code == "A01"
        assert by_code["A01"].metrics.month_over_month == "N/A"
        # 0 orders in March, 1 in February
        assert by_code["C03"].metrics.month_over_month == "-100.00"

    def test_orders_after_as_of_excluded(self, records):
        """Test totals ignore orders dated after the reference date"""
        performance = compute_agent_metrics(records, as_of=date(2024, 3, 5))

        by_code = {p.agent_code: p for p in performance}
        assert by_code["A01"].total_order_count == 5
        assert "B02" not in by_code

    def test_period_filter_ignored(self, records):
        """Test month/year do not narrow the metric windows"""
        filters = PerformanceFilters(month=2, year=2024)

        performance = compute_agent_metrics(records, as_of=date(2024, 3, 31), filters=filters)

        assert len(performance) == 3


class TestRollups:
    """Tests for monthly tables, distributions and statistics"""

    def test_monthly_performance(self, records):
        """Test a single month's summaries"""
        report = monthly_performance(records, month=3, year=2024)

        assert report.month == 3
        assert report.year == 2024
        assert report.total_orders == 15
        assert [a.agent_code for a in report.agents] == ["A01", "B02"]

    def test_monthly_totals(self, records):
        """Test all twelve months are reported"""
        totals = monthly_totals(records, year=2024)

        assert [t.month for t in totals] == list(range(1, 13))
        assert totals[1].total_orders == 1
        assert totals[2].total_orders == 15
        assert sum(t.total_orders for t in totals) == 16

    def test_monthly_totals_other_year(self, records):
        """Test a year without orders is all zeros"""
        assert all(t.total_orders == 0 for t in monthly_totals(records, year=2023))

    def test_tier_distribution(self, records):
        """Test every tier is listed with a share of agents"""
        shares = tier_distribution(summarize_agents(records))

        assert [s.category for s in shares] == ["Black", "Bronze", "Silver", "Gold", "Platinum", "Diamond"]
        by_tier = {s.category: s for s in shares}
        assert by_tier["Gold"].count == 1
        assert by_tier["Gold"].percentage == "33.3"
        assert by_tier["Diamond"].percentage == "0.0"

    def test_productivity_distribution(self, records):
        """Test shares per productivity level"""
        shares = productivity_distribution(summarize_agents(records))

        by_level = {s.category: s for s in shares}
        assert by_level["Active"].count == 3
        assert by_level["Active"].percentage == "100.0"
        assert by_level["Productive"].count == 0

    def test_distribution_of_nothing(self):
        """Test empty input gives zero shares"""
        assert all(s.percentage == "0.0" for s in tier_distribution([]))

    def test_dashboard_stats(self, records):
        """Test headline numbers"""
        stats = dashboard_stats(summarize_agents(records))

        assert stats.total_agents == 3
        assert stats.total_orders == 16
        assert stats.average_orders == "5.33"
        assert stats.top_performer.agent_code == "A01"

    def test_dashboard_stats_empty(self):
        """Test statistics with no agents"""
        stats = dashboard_stats([])

        assert stats.total_agents == 0
        assert stats.average_orders == "0.00"
        assert stats.top_performer is None

    def test_filter_options(self, records):
        """Test distinct sorted values for the filter controls"""
        options = filter_options(records)

        assert options.regional == ["Jabar", "Jatim"]
        assert options.branch == ["Bandung", "Surabaya"]
        assert options.tier[0] == "Black"

    def test_filter_options_scoped(self, records):
        """Test options only reflect what the viewer can see"""
        options = filter_options(records, AccessScope(role=Role.SALES, code="B02"))

        assert options.regional == ["Jatim"]


class TestFrames:
    """Tests for records_to_frame"""

    def test_empty_frame_has_schema(self):
        """Test an empty record list keeps every column"""
        frame = records_to_frame([])

        assert frame.height == 0
        assert "order_date" in frame.columns
        assert "work_area" in frame.columns

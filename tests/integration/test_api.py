"""
Integration Tests - Dashboard API
"""
from datetime import date, timedelta

import pytest

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def sales_workbook(build_xlsx, sheet_row):
    """Two agents under two leaders, dated relative to today"""
    today = date.today()
    rows = [sheet_row("A01", f"A-{i}", today - timedelta(days=i % 3)) for i in range(13)]
    rows += [
        sheet_row("B02", f"B-{i}", today - timedelta(days=i), regional="Jatim", team_leader_code="TL02")
        for i in range(2)
    ]
    return build_xlsx(rows)


async def _upload(client, content, filename="sales.xlsx", **params):
    return await client.post(
        "/api/v1/dashboard/upload",
        files={"sales_data": (filename, content, XLSX_MIME)},
        params=params,
    )


class TestHealth:
    """Tests for health endpoints"""

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Test database check is reported"""
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_liveness_and_readiness(self, client):
        """Test liveness and readiness endpoints"""
        assert (await client.get("/api/v1/health/live")).json() == {"status": "alive"}
        assert (await client.get("/api/v1/health/ready")).json() == {"status": "ready"}

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        """Test middleware decorates responses"""
        response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "req-1"})

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Request-ID"] == "req-1"


class TestUpload:
    """Tests for POST /dashboard/upload"""

    @pytest.mark.asyncio
    async def test_upload(self, client, sales_workbook):
        """Test a spreadsheet upload is stored"""
        response = await _upload(client, sales_workbook)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["new_records"] == 15
        assert body["data"]["mode"] == "replace"
        assert body["timestamp"].endswith(("Z", "+00:00"))

    @pytest.mark.asyncio
    async def test_upload_without_file(self, client):
        """Test a request with no file is a 400"""
        response = await client.post("/api/v1/dashboard/upload")

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_upload_missing_column(self, client, build_xlsx):
        """Test a sheet without Tanggal PS is a 400 naming the column"""
        content = build_xlsx([["A01", "O-1"]], headers=["Kode SF", "New Order ID"])

        response = await _upload(client, content)

        assert response.status_code == 400
        assert response.json()["missing_columns"] == ["Tanggal PS"]

    @pytest.mark.asyncio
    async def test_upload_without_dated_rows(self, client, build_xlsx, sheet_row):
        """Test a sheet with no usable order date is a 400"""
        content = build_xlsx([sheet_row("A01", "O-1", "now"), sheet_row("A02", "O-2", "later")])

        response = await _upload(client, content)

        assert response.status_code == 400
        assert "valid order date" in response.json()["msg"]

    @pytest.mark.asyncio
    async def test_upload_merge(self, client, sales_workbook, build_xlsx, sheet_row):
        """Test merge mode over a previous upload"""
        await _upload(client, sales_workbook)
        extra = build_xlsx([sheet_row("C03", "C-1", date.today()), sheet_row("A01", "A-0", date.today())])

        response = await _upload(client, extra, mode="merge")

        assert response.json()["data"]["new_records"] == 1
        assert response.json()["data"]["skipped_records"] == 1


class TestPerformance:
    """Tests for the dashboard read endpoints"""

    @pytest.mark.asyncio
    async def test_overall(self, client, sales_workbook):
        """Test per-agent totals and classification"""
        await _upload(client, sales_workbook)

        data = (await client.get("/api/v1/dashboard/overall")).json()["data"]

        assert [row["agent_code"] for row in data] == ["A01", "B02"]
        assert data[0]["total_order_count"] == 13
        assert data[0]["tier"] == "Gold"
        assert data[0]["productivity_level"] == "Productive"
        assert data[1]["tier"] == "Bronze"

    @pytest.mark.asyncio
    async def test_overall_filters(self, client, sales_workbook):
        """Test query filters narrow the agents"""
        await _upload(client, sales_workbook)

        data = (await client.get("/api/v1/dashboard/overall", params={"regional": "Jatim"})).json()["data"]
        gold = (await client.get("/api/v1/dashboard/overall", params={"category": "Gold"})).json()["data"]

        assert [row["agent_code"] for row in data] == ["B02"]
        assert [row["agent_code"] for row in gold] == ["A01"]

    @pytest.mark.asyncio
    async def test_scope_headers(self, client, sales_workbook):
        """Test leader and sales viewers only see their agents"""
        await _upload(client, sales_workbook)

        leader = await client.get(
            "/api/v1/dashboard/overall",
            headers={"X-User-Role": "leader", "X-User-Code": "TL02"},
        )
        sales = await client.get(
            "/api/v1/dashboard/overall",
            headers={"X-User-Role": "sales", "X-User-Code": "A01"},
        )

        assert [row["agent_code"] for row in leader.json()["data"]] == ["B02"]
        assert [row["agent_code"] for row in sales.json()["data"]] == ["A01"]

    @pytest.mark.asyncio
    async def test_invalid_scope(self, client):
        """Test a non-admin role without a code is refused"""
        response = await client.get("/api/v1/dashboard/overall", headers={"X-User-Role": "leader"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_metrics(self, client, sales_workbook):
        """Test metrics are joined onto each agent"""
        await _upload(client, sales_workbook)

        data = (await client.get("/api/v1/dashboard/metrics")).json()["data"]

        a01 = next(row for row in data if row["agent_code"] == "A01")
        assert a01["metrics"]["week_over_week"] == "N/A"
        assert set(a01["metrics"]) >= {"month_over_month", "quarter_over_quarter", "year_over_year"}

    @pytest.mark.asyncio
    async def test_metrics_end_date(self, client, sales_workbook):
        """Test endDate anchors the windows and drops later orders"""
        await _upload(client, sales_workbook)
        before = (date.today() - timedelta(days=30)).isoformat()

        data = (await client.get("/api/v1/dashboard/metrics", params={"endDate": before})).json()["data"]

        assert data == []

    @pytest.mark.asyncio
    async def test_monthly(self, client, sales_workbook):
        """Test the current month table and yearly totals"""
        await _upload(client, sales_workbook)
        today = date.today()

        monthly = (await client.get("/api/v1/dashboard/overall/monthly")).json()["data"]
        totals = (await client.get("/api/v1/dashboard/overall/monthly/total")).json()["data"]

        assert monthly["month"] == today.month
        assert len(totals) == 12
        assert sum(t["total_orders"] for t in totals) == sum(
            a["total_order_count"] for a in (await client.get(
                "/api/v1/dashboard/overall", params={"year": today.year}
            )).json()["data"]
        )

    @pytest.mark.asyncio
    async def test_distribution_and_stats(self, client, sales_workbook):
        """Test rollup endpoints"""
        await _upload(client, sales_workbook)

        distribution = (await client.get("/api/v1/dashboard/distribution")).json()["data"]
        stats = (await client.get("/api/v1/dashboard/stats")).json()["data"]

        assert len(distribution["tier"]) == 6
        assert {row["category"] for row in distribution["productivity"]} == {
            "Non-Productive", "Active", "Productive",
        }
        assert stats["total_agents"] == 2
        assert stats["total_orders"] == 15
        assert stats["average_orders"] == "7.50"
        assert stats["top_performer"]["agent_code"] == "A01"

    @pytest.mark.asyncio
    async def test_filters(self, client, sales_workbook):
        """Test available filter values"""
        await _upload(client, sales_workbook)

        data = (await client.get("/api/v1/dashboard/filters")).json()["data"]

        assert data["regional"] == ["Jabar", "Jatim"]

    @pytest.mark.asyncio
    async def test_empty_store(self, client):
        """Test reads before any upload"""
        response = await client.get("/api/v1/dashboard/overall")

        assert response.status_code == 200
        assert response.json()["data"] == []

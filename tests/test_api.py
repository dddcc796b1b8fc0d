"""Tests for the JSON API."""

from metaportal.core.admin import SETUP_FAILED_MESSAGE


def create_catalog(client):
    assert client.post("/api/schemas", json={"name": "HR_SCHEMA"}).status_code == 201
    assert client.post("/api/schemas", json={"name": "FINANCE_SCHEMA"}).status_code == 201
    table = client.post("/api/tables", json={"schema_name": "HR_SCHEMA", "name": "employees"}).json()
    client.post("/api/columns", json={
        "table_id": table["id"], "name": "employee_id", "data_type": "NUMBER",
        "precision": 10, "scale": 0, "primary_key": True,
    })
    client.post("/api/columns", json={
        "table_id": table["id"], "name": "first_name", "data_type": "VARCHAR2", "length": 50,
    })
    return table


def lineage_payload(column, **overrides):
    payload = {
        "target_schema": "FINANCE_SCHEMA",
        "target_table": "payroll_summary",
        "target_column": column,
        "mapping_type": "one-to-one",
        "sources": [{"schema_name": "HR_SCHEMA", "table_name": "employees", "column_name": "salary"}],
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_login_flow(client):
    assert client.get("/api/auth/status").json() == {"is_authenticated": False, "username": None}
    assert client.post("/api/auth/login", json={"username": "", "password": "x"}).status_code == 401

    response = client.post("/api/auth/login", json={"username": "jane.smith", "password": "secret"})
    assert response.status_code == 200
    assert response.json() == {"is_authenticated": True, "username": "jane.smith"}

    client.post("/api/auth/logout")
    assert client.get("/api/auth/status").json()["is_authenticated"] is False


def test_catalog_browsing(client):
    table = create_catalog(client)

    schemas = client.get("/api/schemas").json()
    assert [s["name"] for s in schemas] == ["FINANCE_SCHEMA", "HR_SCHEMA"]
    assert schemas[1]["table_count"] == 1

    tables = client.get("/api/tables", params={"schema": "HR_SCHEMA"}).json()
    assert [t["name"] for t in tables] == ["employees"]
    assert tables[0]["column_count"] == 2
    assert client.get("/api/tables", params={"schema": "FINANCE_SCHEMA"}).json() == []

    columns = client.get("/api/columns", params={"table_id": table["id"]}).json()
    by_name = {c["name"]: c for c in columns}
    assert by_name["employee_id"]["nullable"] is False
    assert by_name["employee_id"]["type_label"] == "NUMBER(10,0)"
    assert by_name["first_name"]["type_label"] == "VARCHAR2(50)"

    details = client.get(f"/api/tables/{table['id']}").json()
    assert details["full_name"] == "HR_SCHEMA.employees"


def test_catalog_errors(client):
    create_catalog(client)
    assert client.post("/api/schemas", json={"name": "HR_SCHEMA"}).status_code == 409
    assert client.post("/api/tables", json={"schema_name": "NOPE", "name": "t"}).status_code == 404
    assert client.get("/api/tables/999").status_code == 404
    assert client.delete("/api/columns/999").status_code == 404


def test_pull_schema_is_inert(client):
    response = client.post("/api/schemas/pull")
    assert response.status_code == 200
    assert response.json()["tables_added"] == 0


def test_lineage_create_and_filter(client):
    first = client.post("/api/lineage", json=lineage_payload("department_id"))
    second = client.post("/api/lineage", json=lineage_payload("total_salary"))
    assert first.status_code == 201
    assert first.json()["change_ref_number"] == "CHG-2024-001"
    assert second.json()["change_ref_number"] == "CHG-2024-002"
    assert first.json()["created_by"] == "user"

    listed = client.get("/api/lineage").json()
    assert [m["target_column"] for m in listed] == ["total_salary", "department_id"]

    filtered = client.get("/api/lineage", params={"change_ref": "002"}).json()
    assert [m["id"] for m in filtered] == [second.json()["id"]]

    lower = client.get("/api/lineage", params={"change_ref": "chg-2024-001"}).json()
    assert [m["change_ref_number"] for m in lower] == ["CHG-2024-001"]

    everything = client.get("/api/lineage", params={"schema": "all", "table": "", "column": ""}).json()
    assert len(everything) == 2


def test_lineage_uses_signed_in_user(client):
    client.post("/api/auth/login", json={"username": "jane.smith", "password": "secret"})
    mapping = client.post("/api/lineage", json=lineage_payload("total_salary")).json()
    assert mapping["created_by"] == "jane.smith"


def test_system_field_lineage_drops_sources(client):
    response = client.post("/api/lineage", json=lineage_payload("load_ts", mapping_type="system-field"))
    assert response.status_code == 201
    assert response.json()["sources"] == []


def test_one_to_one_keeps_single_source(client):
    payload = lineage_payload("total_salary")
    payload["sources"].append({"schema_name": "HR_SCHEMA", "table_name": "employees", "column_name": "bonus"})
    response = client.post("/api/lineage", json=payload)
    assert [s["column_name"] for s in response.json()["sources"]] == ["salary"]


def test_incomplete_lineage_is_rejected(client):
    response = client.post("/api/lineage", json=lineage_payload("", sources=[]))
    assert response.status_code == 400
    assert client.get("/api/lineage").json() == []


def test_delete_lineage(client):
    mapping = client.post("/api/lineage", json=lineage_payload("total_salary")).json()
    assert client.delete(f"/api/lineage/{mapping['id']}").status_code == 200
    assert client.get("/api/lineage").json() == []
    assert client.delete(f"/api/lineage/{mapping['id']}").status_code == 404


def test_project_stats_and_changes(client):
    create_catalog(client)
    project = client.post("/api/projects", json={"name": "HR", "schemas": ["HR_SCHEMA"]}).json()
    assert project["schemas"] == ["HR_SCHEMA"]

    client.post("/api/lineage", params={"project_id": project["id"]},
                json=lineage_payload("first_name", target_schema="HR_SCHEMA", target_table="employees"))
    client.post(f"/api/projects/{project['id']}/changes",
                json={"change_type": "ALTER", "table_name": "employees", "column_name": "first_name",
                      "description": "Widened first_name"})

    stats = client.get(f"/api/projects/{project['id']}/stats").json()
    assert stats == {
        "project_id": project["id"],
        "total_tables": 1,
        "total_columns": 2,
        "lineage_mappings": 1,
        "recent_changes": 2,
    }

    changes = client.get(f"/api/projects/{project['id']}/changes", params={"change_type": "alter"}).json()
    assert [c["description"] for c in changes] == ["Widened first_name"]

    by_ref = client.get(f"/api/projects/{project['id']}/changes", params={"change_ref": "chg-2024-001"}).json()
    assert [c["change_type"] for c in by_ref] == ["CREATE"]

    assert client.get(f"/api/projects/{project['id']}/changes",
                      params={"change_type": "RENAME"}).status_code == 400
    assert client.get("/api/projects/999/stats").status_code == 404


def test_reports(client):
    create_catalog(client)
    client.post("/api/lineage", json=lineage_payload(
        "first_name", target_schema="HR_SCHEMA", target_table="employees"))

    coverage = client.get("/api/reports/lineage-coverage").json()
    assert coverage == [{"schema_name": "HR_SCHEMA", "table": "employees",
                         "total_columns": 2, "mapped_columns": 1, "coverage": 50}]

    impact = client.get("/api/reports/impact-analysis").json()
    assert impact[0]["source_column"] == "salary"
    assert impact[0]["impacted_tables"] == ["HR_SCHEMA.employees"]
    assert impact[0]["risk_level"] == "low"


def test_admin_setup_flow(client, jobs):
    assert client.get("/api/admin/project").status_code == 404

    response = client.post("/api/admin/setup", json={
        "project_name": "payroll", "connection_string": "oracle://scott@db",
    })
    assert response.status_code == 202
    job_id = response.json()["job_id"]
    jobs.wait(job_id, timeout=5)

    status = client.get(f"/api/admin/jobs/{job_id}").json()
    assert status["status"] == "completed"
    assert len(status["result"]["tables"]) == 5

    project = client.get("/api/admin/project").json()
    assert project["project_name"] == "payroll"
    assert "connection_string" not in project

    again = client.post("/api/admin/setup", json={"project_name": "x", "connection_string": "y"})
    assert again.status_code == 400

    assert client.delete("/api/admin/project").json() == {"reset": True}
    assert client.get("/api/admin/project").status_code == 404


def test_admin_setup_failure(client, jobs, backend):
    backend.fail_with = ConnectionError("unreachable")
    job_id = client.post("/api/admin/setup", json={
        "project_name": "payroll", "connection_string": "oracle://bad",
    }).json()["job_id"]
    jobs.wait(job_id, timeout=5)

    status = client.get(f"/api/admin/jobs/{job_id}").json()
    assert status["status"] == "failed"
    assert status["error"] == SETUP_FAILED_MESSAGE
    assert client.get("/api/admin/jobs/unknown").status_code == 404


def test_display_settings(client):
    defaults = client.get("/api/settings/display").json()
    assert defaults["pageSize"] == 25
    assert defaults["dateFormat"] == "YYYY-MM-DD"

    saved = client.put("/api/settings/display", json={**defaults, "compactView": True, "pageSize": 50})
    assert saved.status_code == 200
    assert client.get("/api/settings/display").json()["compactView"] is True
    assert client.put("/api/settings/display", json={"pageSize": 0}).status_code == 422


def test_connections_and_users(client):
    response = client.post("/api/connections", json={"name": "warehouse", "database_type": "PostgreSQL",
                                                     "host": "db", "port": 5432})
    assert response.status_code == 201
    assert response.json()["status"] == "disconnected"
    assert [c["name"] for c in client.get("/api/connections").json()] == ["warehouse"]

    user = client.post("/api/users", json={"username": "jane.smith", "role": "Data Engineer"})
    assert user.json()["role"] == "Data Engineer"
    assert client.post("/api/users", json={"username": "jane.smith"}).status_code == 409


def test_full_catalog_reset(client):
    create_catalog(client)
    client.post("/api/lineage", json=lineage_payload("total_salary"))

    counts = client.delete("/api/admin/catalog").json()
    assert counts["schemas"] == 2
    assert counts["lineage_mappings"] == 1
    assert client.get("/api/schemas").json() == []


def test_patch_column_rejects_null_for_required_fields(client):
    table = create_catalog(client)
    column = client.get("/api/columns", params={"table_id": table["id"]}).json()[0]

    for field in ("data_type", "nullable", "primary_key", "partition_column", "name"):
        response = client.patch(f"/api/columns/{column['id']}", json={field: None})
        assert response.status_code == 400, field
        assert field in response.json()["detail"]

    unchanged = client.get("/api/columns", params={"table_id": table["id"]}).json()[0]
    assert unchanged == column


def test_patch_column_allows_null_size_fields(client):
    table = create_catalog(client)
    first_name = [c for c in client.get("/api/columns", params={"table_id": table["id"]}).json()
                  if c["name"] == "first_name"][0]

    response = client.patch(f"/api/columns/{first_name['id']}", json={"length": None, "definition": "Given name"})
    assert response.status_code == 200
    assert response.json()["type_label"] == "VARCHAR2"


def test_patch_schema_and_table_reject_null_names(client):
    table = create_catalog(client)
    schema_id = [s["id"] for s in client.get("/api/schemas").json() if s["name"] == "HR_SCHEMA"][0]

    assert client.patch(f"/api/schemas/{schema_id}", json={"name": None}).status_code == 400
    assert client.patch(f"/api/tables/{table['id']}", json={"name": None}).status_code == 400
    assert client.patch(f"/api/tables/{table['id']}", json={"schema_name": None}).status_code == 400
    assert [t["name"] for t in client.get("/api/tables", params={"schema": "HR_SCHEMA"}).json()] == ["employees"]


def test_setup_rejected_while_another_is_running(client, jobs, backend):
    backend.delay_seconds = 0.5
    first = client.post("/api/admin/setup", json={"project_name": "alpha", "connection_string": "oracle://a"})
    assert first.status_code == 202

    second = client.post("/api/admin/setup", json={"project_name": "beta", "connection_string": "oracle://b"})
    assert second.status_code == 400
    assert "in progress" in second.json()["detail"]

    jobs.wait(first.json()["job_id"], timeout=5)
    assert client.get("/api/admin/project").json()["project_name"] == "alpha"


def test_startup_seeds_demo_catalogue_when_enabled(monkeypatch):
    from fastapi.testclient import TestClient

    from metaportal.api.main import app
    from metaportal.core import CatalogManager
    from metaportal.models.base import SessionLocal

    monkeypatch.setenv("METAPORTAL_SEED_DEMO", "true")
    with TestClient(app):
        pass

    db = SessionLocal()
    try:
        assert CatalogManager(db).schemas.get_by_name("HR_SCHEMA").name == "HR_SCHEMA"
    finally:
        db.close()

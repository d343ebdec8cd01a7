from decimal import Decimal

import pytest
from sqlalchemy import text

from support import audit_rows, write, widgets


def _seed_history() -> None:
    write(widgets.insert().values(id=1, name="A"))
    write(widgets.update().where(widgets.c.id == 1).values(name="B"))
    write(widgets.insert().values(id=2, name="C"))


def test_list_logs_newest_first(client):
    _seed_history()

    response = client.get("/api/logs")
    assert response.status_code == 200
    logs = response.json()
    assert [log["operation"] for log in logs] == ["INSERT", "UPDATE", "INSERT"]
    assert [log["id"] for log in logs] == sorted((log["id"] for log in logs), reverse=True)
    timestamps = [log["timestamp"] for log in logs]
    assert timestamps == sorted(timestamps, reverse=True)


def test_log_wire_format(client):
    write(widgets.insert().values(id=1, name="A"))

    (log,) = client.get("/api/logs").json()
    assert set(log) == {
        "id",
        "targetTableId",
        "tableName",
        "targetEntityId",
        "username",
        "oldValue",
        "newValue",
        "operation",
        "timestamp",
    }
    assert log["tableName"] == "widgets"
    assert log["targetEntityId"] == "1"
    assert log["username"] == "tester"
    assert log["oldValue"] is None
    assert log["newValue"]["name"] == "A"


def test_list_logs_limit_and_offset(client):
    _seed_history()
    everything = client.get("/api/logs").json()

    first_page = client.get("/api/logs", params={"limit": 2})
    assert first_page.status_code == 200
    assert [log["id"] for log in first_page.json()] == [log["id"] for log in everything[:2]]

    second_page = client.get("/api/logs", params={"limit": 2, "offset": 2}).json()
    assert [log["id"] for log in second_page] == [log["id"] for log in everything[2:]]

    offset_only = client.get("/api/logs", params={"offset": 1}).json()
    assert len(offset_only) == 2


def test_empty_pagination_values_are_ignored(client):
    _seed_history()
    response = client.get("/api/logs?limit=&offset=")
    assert response.status_code == 200
    assert len(response.json()) == 3


@pytest.mark.parametrize(
    "params",
    [
        {"limit": "abc"},
        {"limit": "2; DROP TABLE audit_records"},
        {"limit": "0"},
        {"limit": "1.5"},
        {"offset": "-1"},
        {"offset": "x"},
        {"limit": "100000"},
    ],
)
def test_list_logs_rejects_bad_pagination(client, params):
    response = client.get("/api/logs", params=params)
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_list_logs_filters(client):
    _seed_history()

    updates = client.get("/api/logs", params={"operation": "update"}).json()
    assert [log["operation"] for log in updates] == ["UPDATE"]

    by_table = client.get("/api/logs", params={"table": "widgets"}).json()
    assert len(by_table) == 3
    assert client.get("/api/logs", params={"table": "nothing"}).json() == []

    bad = client.get("/api/logs", params={"operation": "TRUNCATE"})
    assert bad.status_code == 400


def test_get_log_by_id(client):
    _seed_history()
    newest = client.get("/api/logs", params={"limit": 1}).json()[0]

    response = client.get(f"/api/logs/{newest['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == newest["id"]
    assert response.json() == newest


def test_get_log_not_found(client):
    response = client.get("/api/logs/9999")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.parametrize("record_id", ["abc", "0", "-3", "1e3"])
def test_get_log_rejects_malformed_id(client, record_id):
    response = client.get(f"/api/logs/{record_id}")
    assert response.status_code == 400


def test_numeric_snapshot_values_keep_their_precision(client):
    table_id = client.get("/api/tables").json()[0]["id"]
    write(
        text(
            "INSERT INTO audit_records"
            " (target_table_id, target_entity_id, actor, old_value, operation)"
            " VALUES (:table_id, '1', 'tester', :old_value, 'DELETE')"
        ).bindparams(table_id=table_id, old_value='{"id": 1, "price": 12345678901234567.89}')
    )

    (record,) = audit_rows()
    assert record.old_value["price"] == Decimal("12345678901234567.89")

    served = client.get(f"/api/logs/{record.id}").json()["oldValue"]
    assert served == {"id": 1, "price": 12345678901234567.89}

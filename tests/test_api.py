"""Tests for the config API."""
import json
import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from typegen.api.deps import get_config_path, get_engine, get_workdir
from typegen.core.config import Settings
from typegen.core.engine import GenerationEngine
from typegen.main import app

FIXTURES = Path(__file__).parent / "fixtures"

ORDERS_FIELDS = [
    {"name": "OrderId", "type": "Edm.Int32", "nullable": False, "primaryKey": True},
    {"name": "CustomerName", "type": "Edm.String"},
    {"name": "Total", "type": "Edm.Decimal", "calculated": True},
    {"name": "InternalNotes", "type": "Edm.String"},
]


@pytest.fixture
def workdir(tmp_path):
    app.dependency_overrides[get_workdir] = lambda: tmp_path
    app.dependency_overrides[get_config_path] = lambda: tmp_path / "typegen.config.yaml"
    app.dependency_overrides[get_engine] = lambda: GenerationEngine(Settings(max_workers=1), environ={})
    yield tmp_path
    app.dependency_overrides.clear()


@pytest.fixture
def client(workdir):
    return TestClient(app)


def test_health(client):
    response = client.get("/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_get_config_when_missing(client, workdir):
    response = client.get("/v1/config")
    assert response.status_code == 200
    body = response.json()
    assert body["exists"] is False
    assert body["path"] == str(workdir / "typegen.config.yaml")
    assert body["config"] is None


def test_save_then_read_config(client, workdir):
    document = {
        "config": [{"type": "fmodata", "includeAllFieldsByDefault": False,
                    "tables": [{"tableName": "Orders", "fields": [{"fieldName": "OrderId"}]}]}]
    }
    response = client.put("/v1/config", json=document)
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert (workdir / "typegen.config.yaml").exists()

    body = client.get("/v1/config").json()
    assert body["exists"] is True
    block = body["config"]["config"][0]
    assert block["includeAllFieldsByDefault"] is False
    assert "alwaysOverrideFieldNames" not in block
    assert block["tables"][0]["fields"] == [{"fieldName": "OrderId"}]


def test_save_invalid_config(client, workdir):
    response = client.put("/v1/config", json={"config": [{"type": "fmodata", "tables": [{"fields": []}]}]})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["issues"]
    assert not (workdir / "typegen.config.yaml").exists()


def test_validate_config(client):
    ok = client.post("/v1/config/validate", json={"config": []}).json()
    assert ok["valid"] is True

    bad = client.post("/v1/config/validate", json={"config": [{"type": "nope"}]}).json()
    assert bad["valid"] is False
    assert bad["issues"]


def test_preview_excluded_field(client):
    response = client.post("/v1/config/preview", json={
        "block": {"includeAllFieldsByDefault": True, "tables": [
            {"tableName": "Orders", "fields": [{"fieldName": "InternalNotes", "exclude": True}]},
        ]},
        "tableName": "Orders",
        "fields": ORDERS_FIELDS,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["includedFields"] == ["OrderId", "CustomerName", "Total"]
    total = next(f for f in body["fields"] if f["fieldName"] == "Total")
    assert total["readOnly"] is True
    assert total["category"] == "number"


def test_preview_opt_in_mode(client):
    body = client.post("/v1/config/preview", json={
        "block": {"includeAllFieldsByDefault": False, "tables": [
            {"tableName": "Orders", "fields": [{"fieldName": "OrderId"}, {"fieldName": "Total"}]},
        ]},
        "tableName": "Orders",
        "fields": ORDERS_FIELDS,
    }).json()

    assert body["includedFields"] == ["OrderId", "Total"]
    assert body["includeAllFieldsByDefault"] is False


def test_preview_unknown_field(client):
    response = client.post("/v1/config/preview", json={
        "block": {"tables": [{"tableName": "Orders", "fields": [{"fieldName": "Ghost", "exclude": True}]}]},
        "tableName": "Orders",
        "fields": ORDERS_FIELDS,
    })

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "ConfigurationError"


def test_generate_without_config(client):
    assert client.post("/v1/generate").status_code == 404


def test_generate(client, workdir):
    shutil.copy(FIXTURES / "shop_metadata.xml", workdir / "metadata.xml")
    (workdir / "typegen.config.yaml").write_text(json.dumps({
        "config": [{"type": "fmodata", "path": "schema", "metadataPath": "metadata.xml",
                    "tables": [{"tableName": "Orders"}, {"tableName": "Refunds"}]}]
    }))

    response = client.post("/v1/generate")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["successCount"] == 1
    assert body["errorCount"] == 1
    assert body["results"][1]["errorKind"] == "ConfigurationError"
    assert (workdir / "schema" / "generated" / "Orders.ts").exists()

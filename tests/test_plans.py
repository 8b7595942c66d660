"""
Tests de los planes de servicio de una cuidadora
"""
from fastapi import status

from conftest import PROVIDER_ID, REQUESTER_ID

def test_create_and_list_own_plans(client, auth):
    r = client.post("/plans", headers=auth(PROVIDER_ID), json={
        "category": "weekly", "hourly_rate": 45.5, "minimum_hours": 3, "features": ["Cocina ligera"],
    })
    assert r.status_code == status.HTTP_201_CREATED
    plan = r.json()
    assert plan["provider_id"] == PROVIDER_ID
    assert plan["active"] is True
    assert plan["description"] == ""

    r = client.get("/plans", headers=auth(PROVIDER_ID))
    assert [p["id"] for p in r.json()] == [plan["id"]]

def test_others_only_see_active_plans(client, auth, store):
    active = store.add_plan(PROVIDER_ID, category="single_session")
    store.add_plan(PROVIDER_ID, category="monthly", active=False)

    r = client.get("/plans", params={"provider_id": PROVIDER_ID}, headers=auth(REQUESTER_ID))
    assert [p["id"] for p in r.json()] == [active]

    r = client.get("/plans", headers=auth(PROVIDER_ID))
    assert len(r.json()) == 2

def test_plan_validation(client, auth):
    r = client.post("/plans", headers=auth(PROVIDER_ID), json={
        "category": "yearly", "hourly_rate": 50,
    })
    assert r.status_code == 422
    r = client.post("/plans", headers=auth(PROVIDER_ID), json={
        "category": "weekly", "hourly_rate": -1,
    })
    assert r.status_code == 422

def test_patch_toggle_and_delete(client, auth, store):
    plan_id = store.add_plan(PROVIDER_ID)

    r = client.patch(f"/plans/{plan_id}", headers=auth(PROVIDER_ID), json={"hourly_rate": 60})
    assert r.status_code == 200 and r.json()["hourly_rate"] == 60

    r = client.post(f"/plans/{plan_id}/toggle", headers=auth(PROVIDER_ID), json={"active": False})
    assert r.status_code == 200 and r.json()["active"] is False

    r = client.delete(f"/plans/{plan_id}", headers=auth(PROVIDER_ID))
    assert r.status_code == status.HTTP_204_NO_CONTENT
    assert store.plans == {}

def test_only_owner_edits_plan(client, auth, store):
    plan_id = store.add_plan(PROVIDER_ID)
    r = client.patch(f"/plans/{plan_id}", headers=auth(REQUESTER_ID), json={"hourly_rate": 1})
    assert r.status_code == status.HTTP_403_FORBIDDEN
    r = client.delete(f"/plans/{plan_id}", headers=auth(REQUESTER_ID))
    assert r.status_code == status.HTTP_403_FORBIDDEN

def test_unknown_plan(client, auth):
    r = client.post("/plans/6500000000000000000000ff/toggle", headers=auth(PROVIDER_ID), json={"active": True})
    assert r.status_code == status.HTTP_404_NOT_FOUND

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

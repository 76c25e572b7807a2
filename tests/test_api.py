import pytest

from conftest import DEV, auth

FLOUR = {
    "name": "Flour",
    "quantity": 20,
    "purchase_quantity": 25,
    "cost_per_purchase_unit": 18.5,
    "unit": "kg",
    "notes": "bread flour",
}


async def create_item(client, **overrides):
    r = await client.post("/api/inventory", json={**FLOUR, **overrides}, headers=DEV)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_inventory_endpoints(client, baker):
    headers = auth(baker["id"])
    response = await client.post("/api/inventory", json={**FLOUR, "quantity": -1}, headers=headers)
    assert response.status_code == 422

    response = await client.post("/api/inventory", json=FLOUR, headers=headers)
    assert response.status_code == 201
    item = response.json()
    assert response.headers["location"] == f"/api/inventory/{item['id']}"
    assert item["name"] == "Flour"

    response = await client.post("/api/inventory", json=FLOUR, headers=headers)
    assert response.status_code == 400

    response = await client.get(f"/api/inventory/{item['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json() == item

    response = await client.get("/api/inventory", headers=headers)
    assert [i["id"] for i in response.json()] == [item["id"]]

    response = await client.delete(f"/api/inventory/{item['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Inventory item deleted"
    assert (await client.get(f"/api/inventory/{item['id']}", headers=headers)).status_code == 404
    assert (await client.delete(f"/api/inventory/{item['id']}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_inventory_in_use_cannot_be_deleted(client, recipe):
    rid = recipe["id"]
    item = await create_item(client)
    response = await client.post("/api/ingredients", json={
        "recipe_id": rid, "inventory_id": item["id"], "name": "Flour", "quantity": 1, "unit": "kg",
    }, headers=DEV)
    assert response.status_code == 201

    response = await client.delete(f"/api/inventory/{item['id']}", headers=DEV)
    assert response.status_code == 400
    assert response.json()["detail"] == "Inventory item is used by an ingredient"
    assert (await client.get(f"/api/inventory/{item['id']}", headers=DEV)).status_code == 200
    assert (await client.get(f"/api/ingredients/{rid}/1", headers=DEV)).status_code == 200

    assert (await client.delete(f"/api/ingredients/{rid}/1", headers=DEV)).status_code == 200
    assert (await client.delete(f"/api/inventory/{item['id']}", headers=DEV)).status_code == 200


@pytest.mark.asyncio
async def test_inventory_partial_update(client):
    item = await create_item(client)

    response = await client.put(f"/api/inventory/{item['id']}", json={"quantity": 7}, headers=DEV)
    assert response.status_code == 200
    assert response.json() == {**item, "quantity": 7}

    # explicit null leaves the field alone
    response = await client.put(f"/api/inventory/{item['id']}",
                                json={"quantity": None, "notes": "organic"}, headers=DEV)
    assert response.json() == {**item, "quantity": 7, "notes": "organic"}

    await create_item(client, name="Sugar")
    response = await client.put(f"/api/inventory/{item['id']}", json={"name": "Sugar"}, headers=DEV)
    assert response.status_code == 400
    response = await client.put("/api/inventory/missing", json={"quantity": 1}, headers=DEV)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_recipe_endpoints(client, recipe):
    rid = recipe["id"]
    assert recipe["name"] == "Sourdough"

    response = await client.put(f"/api/recipes/{rid}", json={"rating": 5}, headers=DEV)
    assert response.status_code == 200
    assert response.json() == {**recipe, "rating": 5.0}

    response = await client.get("/api/recipes", headers=DEV)
    assert [r["id"] for r in response.json()] == [rid]
    assert (await client.get("/api/recipes/missing", headers=DEV)).status_code == 404
    assert (await client.put("/api/recipes/missing", json={"rating": 1}, headers=DEV)).status_code == 404


@pytest.mark.asyncio
async def test_recipe_delete_cascades(client, recipe):
    rid = recipe["id"]
    item = await create_item(client)
    await client.post("/api/cooksteps", json={"recipe_id": rid, "description": "mix"}, headers=DEV)
    await client.post("/api/ingredients", json={
        "recipe_id": rid, "inventory_id": item["id"], "name": "Flour", "quantity": 1, "unit": "kg",
    }, headers=DEV)
    await client.post("/api/cookedgoods", json={"recipe_id": rid, "quantity": 3}, headers=DEV)

    response = await client.delete(f"/api/recipes/{rid}", headers=DEV)
    assert response.status_code == 200
    assert (await client.get(f"/api/recipes/{rid}", headers=DEV)).status_code == 404
    assert (await client.get(f"/api/cooksteps/{rid}/1", headers=DEV)).status_code == 404
    assert (await client.get(f"/api/ingredients/{rid}/1", headers=DEV)).status_code == 404
    assert (await client.get(f"/api/cookedgoods/{rid}", headers=DEV)).status_code == 404
    # inventory is not owned by the recipe
    assert (await client.get(f"/api/inventory/{item['id']}", headers=DEV)).status_code == 200
    assert (await client.delete(f"/api/recipes/{rid}", headers=DEV)).status_code == 404


@pytest.mark.asyncio
async def test_ingredient_endpoints(client, recipe):
    rid = recipe["id"]
    flour = await create_item(client)
    salt = await create_item(client, name="Salt", unit="g")
    body = {"recipe_id": rid, "inventory_id": flour["id"], "name": "Flour",
            "quantity": 1, "min_quantity": 1, "unit": "kg"}

    response = await client.post("/api/ingredients", json=body, headers=DEV)
    assert response.status_code == 201
    assert response.json()["id"] == 1
    assert response.headers["location"] == f"/api/ingredients/{rid}/1"

    response = await client.post("/api/ingredients", json=body, headers=DEV)
    assert response.status_code == 400
    assert "already linked" in response.json()["detail"]

    response = await client.post("/api/ingredients",
                                 json={**body, "inventory_id": salt["id"], "name": "Salt", "unit": "g"},
                                 headers=DEV)
    assert response.json()["id"] == 2

    missing_recipe = await client.post("/api/ingredients", json={**body, "recipe_id": "nope"}, headers=DEV)
    assert missing_recipe.status_code == 404
    missing_item = await client.post("/api/ingredients", json={**body, "inventory_id": "nope"}, headers=DEV)
    assert missing_item.status_code == 404

    response = await client.put(f"/api/ingredients/{rid}/2", json={"quantity": 20}, headers=DEV)
    assert response.status_code == 200
    assert response.json()["quantity"] == 20
    assert response.json()["name"] == "Salt"

    assert (await client.delete(f"/api/ingredients/{rid}/1", headers=DEV)).status_code == 200
    response = await client.get(f"/api/ingredients/{rid}", headers=DEV)
    assert [i["id"] for i in response.json()] == [2]
    # ids are not reused while a higher one exists
    response = await client.post("/api/ingredients", json=body, headers=DEV)
    assert response.json()["id"] == 3

    assert (await client.get(f"/api/ingredients/{rid}/1", headers=DEV)).status_code == 404
    assert (await client.get("/api/ingredients/nope", headers=DEV)).status_code == 404


@pytest.mark.asyncio
async def test_cooked_good_endpoints(client, recipe):
    rid = recipe["id"]
    response = await client.post("/api/cookedgoods", json={"recipe_id": rid, "quantity": 12}, headers=DEV)
    assert response.status_code == 201
    cooked = response.json()
    assert cooked["name"] == "Sourdough"
    assert cooked["quantity"] == 12

    response = await client.post("/api/cookedgoods", json={"recipe_id": rid}, headers=DEV)
    assert response.status_code == 400
    response = await client.post("/api/cookedgoods", json={"recipe_id": "nope"}, headers=DEV)
    assert response.status_code == 404

    response = await client.put(f"/api/cookedgoods/{rid}", json={"quantity": 4}, headers=DEV)
    assert response.json()["quantity"] == 4

    # name follows the recipe
    await client.put(f"/api/recipes/{rid}", json={"name": "Country Sourdough"}, headers=DEV)
    response = await client.get(f"/api/cookedgoods/{rid}", headers=DEV)
    assert response.json()["name"] == "Country Sourdough"

    response = await client.get("/api/cookedgoods", headers=DEV)
    assert len(response.json()) == 1

    assert (await client.delete(f"/api/cookedgoods/{rid}", headers=DEV)).status_code == 200
    assert (await client.get(f"/api/cookedgoods/{rid}", headers=DEV)).status_code == 404
    assert (await client.put(f"/api/cookedgoods/{rid}", json={"quantity": 1}, headers=DEV)).status_code == 404


@pytest.mark.asyncio
async def test_update_own_profile(client, baker, register):
    uid = baker["user_id"]
    headers = auth(baker["id"])
    response = await client.put(f"/api/users/{uid}", json={"first_name": "Sam"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["first_name"] == "Sam"
    assert response.json()["last_name"] == "Baker"

    await register("taken")
    response = await client.put(f"/api/users/{uid}", json={"username": "taken"}, headers=headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_password_change(client, register):
    session = await register("muffin", password="old-pass")
    response = await client.put(f"/api/users/{session['user_id']}", json={"password": "new-pass"},
                                headers=auth(session["id"]))
    assert response.status_code == 200

    old = await client.post("/api/login", json={"username": "muffin", "password": "old-pass"})
    assert old.status_code == 404
    new = await client.post("/api/login", json={"username": "muffin", "password": "new-pass"})
    assert new.status_code == 201


@pytest.mark.asyncio
async def test_emails(client, baker, admin):
    uid = baker["user_id"]
    headers = auth(baker["id"])
    response = await client.post(f"/api/users/{uid}/emails", json={"address": "pat@bakery.test"},
                                 headers=headers)
    assert response.status_code == 201
    email = response.json()
    assert email["verified"] is False

    response = await client.post(f"/api/users/{uid}/emails", json={"address": "not-an-email"},
                                 headers=headers)
    assert response.status_code == 422

    response = await client.get(f"/api/users/{uid}/emails", headers=headers)
    assert [e["address"] for e in response.json()] == ["pat@bakery.test"]
    response = await client.get(f"/api/users/{uid}/emails", headers=auth(admin["id"]))
    assert response.status_code == 403
    response = await client.get("/api/emails", headers=auth(admin["id"]))
    assert [e["id"] for e in response.json()] == [email["id"]]

    response = await client.delete(f"/api/users/{uid}/emails/{email['id']}", headers=headers)
    assert response.status_code == 200
    response = await client.delete(f"/api/users/{uid}/emails/{email['id']}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_phone(client, baker):
    uid = baker["user_id"]
    headers = auth(baker["id"])
    assert (await client.get(f"/api/users/{uid}/phone", headers=headers)).status_code == 404

    response = await client.put(f"/api/users/{uid}/phone", json={"number": "555-0100"}, headers=headers)
    assert response.status_code == 201
    phone_id = response.json()["id"]

    response = await client.put(f"/api/users/{uid}/phone", json={"number": "555-0199"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["id"] == phone_id
    assert response.json()["number"] == "555-0199"

    response = await client.get(f"/api/users/{uid}/phone", headers=headers)
    assert response.json()["number"] == "555-0199"
    assert (await client.put("/api/users/missing/phone", json={"number": "1"}, headers=DEV)).status_code == 404


@pytest.mark.asyncio
async def test_session_purge_task(client, baker, admin):
    assert (await client.post("/api/sessions/purge", headers=auth(baker["id"]))).status_code == 403

    response = await client.post("/api/sessions/purge", headers=auth(admin["id"]))
    assert response.status_code == 202
    assert response.json()["task_id"] == "task-123"

    response = await client.get("/api/tasks/task-123", headers=DEV)
    assert response.status_code == 200
    assert response.json() == {"status": "SUCCESS", "result": {"purged": 2}}

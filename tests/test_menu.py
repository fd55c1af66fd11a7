from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import Category, Dish


def _category(name="Mains", order_index=1):
    c = Category(name=name, order_index=order_index)
    db.session.add(c)
    db.session.commit()
    return c


def test_add_and_list_dishes(client, auth):
    mains = _category()
    res = client.post("/api/dishes", headers=auth(), json={
        "name": "  Jerk Chicken ", "price": "18.50", "category_id": mains.id, "short_desc": "Spicy",
    })
    assert res.status_code == 201
    dish = res.get_json()["dish"]
    assert dish["name"] == "Jerk Chicken"
    assert dish["price"] == 18.5
    assert dish["currency"] == "USD"
    assert dish["category"] == "Mains"

    client.post("/api/dishes", headers=auth(), json={"name": "Ackee", "price": 12, "available": False})
    names = [d["name"] for d in client.get("/api/dishes").get_json()["dishes"]]
    assert names == ["Ackee", "Jerk Chicken"]

    available = client.get("/api/dishes?available=true").get_json()["dishes"]
    assert [d["name"] for d in available] == ["Jerk Chicken"]
    by_category = client.get(f"/api/dishes?category_id={mains.id}").get_json()["dishes"]
    assert [d["name"] for d in by_category] == ["Jerk Chicken"]


def test_dish_validation(client, auth):
    assert client.post("/api/dishes", headers=auth(), json={"price": 5}).status_code == 400
    assert client.post("/api/dishes", headers=auth(), json={"name": "X", "price": -1}).status_code == 400
    assert client.post("/api/dishes", headers=auth(), json={"name": "X", "price": "abc"}).status_code == 400
    assert client.post("/api/dishes", headers=auth(), json={"name": "X", "category_id": 99}).status_code == 400
    assert client.post("/api/dishes", headers=auth(), json={"name": "X", "category_id": "1"}).status_code == 400
    assert client.post("/api/dishes", json={"name": "X"}).status_code == 401


def test_dish_validation_rejects_malformed_values(client, auth):
    for payload in ({"name": 123, "price": 5}, {"name": ["X"]}, {"name": "X", "price": "NaN"},
                    {"name": "X", "price": "Infinity"}, {"name": "X", "price": "-Infinity"}):
        res = client.post("/api/dishes", headers=auth(), json=payload)
        assert res.status_code == 400, payload
        assert "error" in res.get_json()
    assert client.post("/api/categories", headers=auth(), json={"name": 7}).status_code == 400
    assert Dish.query.count() == 0


def test_update_toggle_and_delete_dish(client, auth):
    dish = Dish(name="Festival", price=4)
    db.session.add(dish)
    db.session.commit()

    res = client.put(f"/api/dishes/{dish.id}", headers=auth(), json={"price": 5.25})
    assert res.get_json()["dish"]["price"] == 5.25
    assert res.get_json()["dish"]["name"] == "Festival"

    res = client.patch(f"/api/dishes/{dish.id}/availability", headers=auth())
    assert res.get_json()["dish"]["available"] is False

    assert client.delete(f"/api/dishes/{dish.id}", headers=auth()).status_code == 200
    assert client.delete(f"/api/dishes/{dish.id}", headers=auth()).status_code == 404


def test_toggle_availability_commit_failure(client, auth):
    dish = Dish(name="Festival", price=4)
    db.session.add(dish)
    db.session.commit()
    headers = auth()

    with mock.patch.object(db.session, "commit", side_effect=SQLAlchemyError("db down")):
        res = client.patch(f"/api/dishes/{dish.id}/availability", headers=headers)
    assert res.status_code == 500
    assert res.get_json() == {"error": "Failed to update dish availability"}
    assert db.session.get(Dish, dish.id).available is True


def test_categories(client, auth):
    _category("Desserts", 3)
    _category("Starters", 0)
    res = client.post("/api/categories", headers=auth(), json={"name": "Mains", "order_index": 1})
    assert res.status_code == 201
    names = [c["name"] for c in client.get("/api/categories").get_json()["categories"]]
    assert names == ["Starters", "Mains", "Desserts"]

    res = client.post("/api/categories", headers=auth(), json={"name": "Mains"})
    assert res.status_code == 409

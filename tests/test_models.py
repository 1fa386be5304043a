from datetime import date

import pytest

from barbaros.database.db_manager import DatabaseManager
from barbaros.database.models import (
    Admin, Client, Reward, Service, ServiceCategory, Visit, generate_client_id, is_object_id,
    new_object_id,
)


@pytest.fixture
def clients(db):
    return Client(db)


def make_client(clients, first="Jane", last="Doe", email="jane@example.com", **kwargs):
    return clients.create(first_name=first, last_name=last, email=email, phone_number="555-0100", **kwargs)


def test_ids_have_expected_shape():
    assert is_object_id(new_object_id())
    assert not is_object_id("C12345678")
    client_id = generate_client_id()
    assert len(client_id) == 9 and client_id.startswith("C") and client_id[1:].isalnum()


def test_database_is_initialized(db):
    assert db.is_initialized()
    assert db.table_exists("visits")
    assert not db.table_exists("appointments")


def test_nested_transaction_rolls_back_as_one(db, clients):
    with pytest.raises(RuntimeError):
        with db.get_connection():
            make_client(clients)
            raise RuntimeError("abort")

    assert clients.count() == 0


def test_closed_database_refuses_work(tmp_path):
    manager = DatabaseManager(tmp_path / "closed.db")
    with pytest.raises(RuntimeError):
        manager.execute_query("SELECT 1")


def test_create_and_get_client(clients):
    client = make_client(clients, email="  Jane@Example.com ", preferred_services=["Fade"])

    assert client["email"] == "jane@example.com"
    assert client["full_name"] == "Jane Doe"
    assert client["preferred_services"] == ["Fade"]
    assert client["account_active"] is True
    assert client["visit_count"] == 0
    assert clients.get_by_id(client["id"])["client_id"] == client["client_id"]
    assert clients.get_by_id(client["id"].upper())["id"] == client["id"]
    assert clients.get_by_client_id(client["client_id"])["id"] == client["id"]
    assert clients.get_by_email("JANE@example.com")["id"] == client["id"]


def test_get_by_id_ignores_non_object_ids(clients):
    make_client(clients)

    assert clients.get_by_id("C12345678") is None
    assert clients.get_by_id(None) is None


def test_duplicate_email_is_rejected(clients):
    make_client(clients)

    with pytest.raises(ValueError):
        make_client(clients, first="Other")


def test_update_client(clients):
    client = make_client(clients)

    updated = clients.update(client["id"], phone_number="555-0199", account_active=False)

    assert updated["phone_number"] == "555-0199"
    assert updated["account_active"] is False
    assert clients.update("0" * 24, phone_number="1") is None
    with pytest.raises(ValueError):
        clients.update(client["id"], client_id="C00000000")


def test_list_and_search_paginate(clients):
    for i in range(12):
        make_client(clients, first=f"Client{i:02d}", last="Smith", email=f"c{i}@example.com")
    make_client(clients, first="Ann", last="Zed_Underscore", email="ann@example.com")

    page = clients.list(page=2, limit=5)
    assert page["pagination"] == {"total": 13, "page": 2, "limit": 5, "pages": 3}
    assert len(page["items"]) == 5

    found = clients.search("client1")
    assert {c["first_name"] for c in found["items"]} == {"Client10", "Client11"}
    assert clients.search("_Under")["pagination"]["total"] == 1
    assert clients.search("%")["pagination"]["total"] == 0


def test_visit_count_earns_reward_every_tenth_visit(clients):
    client = make_client(clients)

    for _ in range(10):
        client = clients.update_visit_count(client["id"], 1)

    assert client["visit_count"] == 10
    assert client["rewards_earned"] == 1
    assert client["last_visit"] is not None


def test_visit_count_decrement_keeps_last_visit_and_floor(clients):
    client = make_client(clients)
    client = clients.update_visit_count(client["id"], 1)
    last_visit = client["last_visit"]

    client = clients.update_visit_count(client["id"], -5)

    assert client["visit_count"] == 0
    assert client["last_visit"] == last_visit


def test_visit_count_for_missing_client(clients):
    with pytest.raises(LookupError):
        clients.update_visit_count("0" * 24, 1)


def test_delete_client_cascades_visits(db, clients):
    client = make_client(clients)
    visits = Visit(db)
    visits.create(client["id"], [{"name": "Cut", "price": 20}], 20.0, "Sam", 1)

    assert clients.delete(client["id"])
    assert visits.count() == 0
    assert not clients.delete(client["id"])


def test_admin_roles_are_checked(db):
    admins = Admin(db)

    admin = admins.create("sam", "hash", "Sam", "barber", "Sam@Example.com")
    assert admin["email"] == "sam@example.com"
    assert admin["active"] is True
    with pytest.raises(ValueError):
        admins.create("bob", "hash", "Bob", "janitor", "bob@example.com")
    with pytest.raises(ValueError):
        admins.create("sam", "hash", "Sam", "owner", "other@example.com")


def test_rewards_crud(db):
    rewards = Reward(db)
    free_cut = rewards.create("Free cut", "One free haircut", 10)
    rewards.create("Beard trim", "Free beard trim", 5)

    assert [r["name"] for r in rewards.get_active()] == ["Beard trim", "Free cut"]
    rewards.update(free_cut["id"], is_active=False)
    assert [r["name"] for r in rewards.get_active()] == ["Beard trim"]
    assert len(rewards.get_all()) == 2
    with pytest.raises(ValueError):
        rewards.create("Nothing", "", 0)
    assert rewards.delete(free_cut["id"])


def test_visits_by_client_and_date_range(db, clients):
    client = make_client(clients)
    visits = Visit(db)
    visits.create(client["id"], [], 15.0, "Sam", 1, visit_date=date(2024, 1, 5))
    visits.create(client["id"], [], 25.0, "Sam", 2, visit_date=date(2024, 2, 5))

    history = visits.get_by_client(client["id"])
    assert [v["visit_number"] for v in history["items"]] == [2, 1]

    january = visits.get_by_date_range(date(2024, 1, 1), date(2024, 1, 31))
    assert january["pagination"]["total"] == 1
    assert january["items"][0]["total_price"] == 15.0

    same_day = visits.get_by_date_range(date(2024, 2, 5), date(2024, 2, 5))
    assert same_day["pagination"]["total"] == 1


def test_service_categories_crud(db):
    categories = ServiceCategory(db)
    beard = categories.create("Beard", "Trims and shaves", display_order=2)
    hair = categories.create("Hair", "Cuts and styling", display_order=1)

    assert [c["name"] for c in categories.get_all()] == ["Hair", "Beard"]
    categories.update(beard["id"], is_active=False)
    assert [c["name"] for c in categories.get_active()] == ["Hair"]
    with pytest.raises(ValueError):
        categories.create("Hair", "Duplicate")
    with pytest.raises(ValueError):
        categories.update(hair["id"], colour="red")
    assert categories.delete(beard["id"])
    assert categories.get_by_id(beard["id"]) is None


def test_category_with_services_cannot_be_deleted(db):
    hair = ServiceCategory(db).create("Hair", "Cuts")
    Service(db).create("Haircut", "Classic cut", 25.0, 30, hair["id"])

    with pytest.raises(ValueError):
        ServiceCategory(db).delete(hair["id"])


def test_services_crud_and_validation(db):
    hair = ServiceCategory(db).create("Hair", "Cuts")
    services = Service(db)

    cut = services.create("Haircut", "Classic cut", 25.0, 30, hair["id"])
    assert cut["popularity_score"] == 0
    assert cut["is_active"] is True
    assert services.update(cut["id"], price=27.5)["price"] == 27.5
    assert services.update("0" * 24, price=1.0) is None
    with pytest.raises(ValueError):
        services.create("Free", "Negative", -1.0, 30, hair["id"])
    with pytest.raises(ValueError):
        services.create("Blink", "Too short", 5.0, 0, hair["id"])
    with pytest.raises(ValueError):
        services.create("Orphan", "No category", 5.0, 10, "0" * 24)
    with pytest.raises(ValueError):
        services.update(cut["id"], popularity_score=99)
    assert services.delete(cut["id"])
    assert services.get_by_id(cut["id"]) is None


def test_services_sorted_by_popularity(db):
    hair = ServiceCategory(db).create("Hair", "Cuts")
    beard = ServiceCategory(db).create("Beard", "Shaves")
    services = Service(db)
    cut = services.create("Haircut", "Classic cut", 25.0, 30, hair["id"])
    fade = services.create("Fade", "Skin fade", 30.0, 45, hair["id"])
    services.create("Shave", "Hot towel shave", 20.0, 20, beard["id"])
    services.create("Perm", "Retired", 60.0, 90, hair["id"], is_active=False)

    services.increment_popularity(cut["id"])
    services.increment_popularity(cut["id"], 2)
    services.increment_popularity(fade["id"])

    assert services.get_by_id(cut["id"])["popularity_score"] == 3
    assert [s["name"] for s in services.get_by_category(hair["id"])] == ["Haircut", "Fade"]
    assert len(services.get_by_category(hair["id"], active_only=False)) == 3
    page = services.list(limit=2)
    assert [s["name"] for s in page["items"]] == ["Haircut", "Fade"]
    assert page["pagination"] == {"total": 4, "page": 1, "limit": 2, "pages": 2}
    assert services.list(category_id=beard["id"])["pagination"]["total"] == 1
    assert services.list(active_only=True)["pagination"]["total"] == 3
    with pytest.raises(LookupError):
        services.increment_popularity("0" * 24)


def test_visit_update_recomputes_total(db, clients):
    client = make_client(clients)
    visits = Visit(db)
    visit = visits.create(client["id"], [{"name": "Cut", "price": 20}], 20.0, "Sam", 1)

    updated = visits.update(visit["id"], services=[{"name": "Cut", "price": 20}, {"name": "Beard", "price": 12.5}])
    assert updated["total_price"] == 32.5
    assert len(updated["services"]) == 2

    updated = visits.update(visit["id"], services=[{"name": "Cut", "price": 20}], total_price=15.0)
    assert updated["total_price"] == 15.0

    updated = visits.update(visit["id"], notes="Regular", visit_date=date(2024, 3, 1))
    assert updated["notes"] == "Regular"
    assert updated["visit_date"] == "2024-03-01 00:00:00"
    assert updated["total_price"] == 15.0

    assert visits.update("0" * 24, notes="x") is None
    with pytest.raises(ValueError):
        visits.update(visit["id"], visit_number=9)


def test_visit_list_paginates_newest_first(db, clients):
    client = make_client(clients)
    visits = Visit(db)
    for day in range(1, 4):
        visits.create(client["id"], [], 10.0, "Sam", day, visit_date=date(2024, 1, day))

    page = visits.list(page=1, limit=2)

    assert [v["visit_number"] for v in page["items"]] == [3, 2]
    assert page["pagination"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}
    assert [v["visit_number"] for v in visits.list(page=2, limit=2)["items"]] == [1]

from datetime import date

import pytest

from barbaros.database.models import Client, Reward, Service, ServiceCategory
from barbaros.services.visit_service import VisitService

HAIRCUT = [{"name": "Haircut", "price": 25.0, "duration": 30}]


@pytest.fixture
def visits(db):
    return VisitService(db)


@pytest.fixture
def client(db):
    return Client(db).create("Jane", "Doe", "jane@example.com", "555-0100")


@pytest.fixture
def free_cut(db):
    return Reward(db).create("Free haircut", "One free haircut", 10)


def test_record_visit_updates_counters(visits, client):
    visit = visits.record_visit(client["id"], HAIRCUT, "Sam", notes="Short back and sides")

    stored = visits.client_model.get_by_id(client["id"])
    assert visit["visit_number"] == 1
    assert visit["total_price"] == 25.0
    assert visit["services"] == HAIRCUT
    assert visit["barber"] == "Sam"
    assert stored["visit_count"] == 1
    assert stored["last_visit"] is not None


def test_explicit_total_price_wins(visits, client):
    visit = visits.record_visit(client["id"], HAIRCUT, "Sam", total_price=20.0)

    assert visit["total_price"] == 20.0


def test_barber_is_required(visits, client):
    with pytest.raises(ValueError, match="Barber name is required"):
        visits.record_visit(client["id"], HAIRCUT, "  ")


def test_unknown_client(visits):
    with pytest.raises(LookupError):
        visits.record_visit("0" * 24, HAIRCUT, "Sam")


def test_tenth_visit_earns_reward(visits, client):
    for _ in range(10):
        visits.record_visit(client["id"], HAIRCUT, "Sam")

    loyalty = visits.loyalty_status(client["id"])
    status = loyalty["status"]
    assert status.visit_count == 10
    assert status.rewards_earned == 1
    assert status.reward_ready
    assert status.visits_toward_next == 10


def test_redeem_reward(visits, client, free_cut):
    for _ in range(10):
        visits.record_visit(client["id"], HAIRCUT, "Sam")

    visit = visits.record_visit(client["id"], HAIRCUT, "Sam", redeem_reward_id=free_cut["id"])

    status = visits.loyalty_status(client["id"])["status"]
    assert visit["reward_redeemed"] is True
    assert visit["redeemed_reward_id"] == free_cut["id"]
    assert visit["visit_number"] == 11
    assert status.rewards_redeemed == 1
    assert status.rewards_available == 0


def test_cannot_redeem_without_earned_reward(visits, client, free_cut):
    with pytest.raises(ValueError, match="No reward available to redeem"):
        visits.record_visit(client["id"], HAIRCUT, "Sam", redeem_reward_id=free_cut["id"])

    assert visits.client_model.get_by_id(client["id"])["visit_count"] == 0
    assert visits.client_history(client["id"])["pagination"]["total"] == 0


def test_unknown_reward(visits, client):
    with pytest.raises(LookupError):
        visits.record_visit(client["id"], HAIRCUT, "Sam", redeem_reward_id="missing")


def test_delete_visit_decrements_count(visits, client):
    first = visits.record_visit(client["id"], HAIRCUT, "Sam")
    visits.record_visit(client["id"], HAIRCUT, "Sam")

    assert visits.delete_visit(first["id"])
    assert visits.client_model.get_by_id(client["id"])["visit_count"] == 1
    with pytest.raises(LookupError):
        visits.delete_visit(first["id"])


def test_history_and_date_range(visits, client):
    visits.record_visit(client["id"], HAIRCUT, "Sam", visit_date=date(2024, 3, 1))
    visits.record_visit(client["id"], HAIRCUT, "Ali", visit_date=date(2024, 3, 20))

    history = visits.client_history(client["id"])
    march_first = visits.visits_between(date(2024, 3, 1), date(2024, 3, 1))

    assert [v["barber"] for v in history["items"]] == ["Ali", "Sam"]
    assert march_first["pagination"]["total"] == 1


def test_loyalty_ladder(db, visits, client):
    rewards = Reward(db)
    rewards.create("Free beard trim", "Beard trim on the house", 5)
    rewards.create("Free haircut", "One free haircut", 10)
    for _ in range(6):
        visits.record_visit(client["id"], HAIRCUT, "Sam")

    loyalty = visits.loyalty_status(client["id"])

    assert [r["name"] for r in loyalty["unlocked"]] == ["Free beard trim"]
    assert loyalty["next"]["name"] == "Free haircut"
    assert loyalty["status"].visits_remaining == 4


def test_custom_reward_cycle(db, client):
    visits = VisitService(db, visits_per_reward=3)
    for _ in range(3):
        visits.record_visit(client["id"], HAIRCUT, "Sam")

    assert visits.loyalty_status(client["id"])["status"].rewards_earned == 1


@pytest.fixture
def catalogue(db):
    hair = ServiceCategory(db).create("Hair", "Cuts and styling")
    services = Service(db)
    return {
        "cut": services.create("Haircut", "Classic cut", 25.0, 30, hair["id"]),
        "fade": services.create("Fade", "Skin fade", 30.0, 45, hair["id"]),
    }


def test_record_visit_bumps_catalogued_service_popularity(visits, client, catalogue):
    cut, fade = catalogue["cut"], catalogue["fade"]

    visits.record_visit(client["id"], [{"service_id": cut["id"]}, {"service_id": fade["id"]}], "Sam")
    visits.record_visit(client["id"], [{"service_id": cut["id"]}, {"name": "Walk-in extra", "price": 5.0}], "Sam")

    assert visits.service_model.get_by_id(cut["id"])["popularity_score"] == 2
    assert visits.service_model.get_by_id(fade["id"])["popularity_score"] == 1


def test_record_visit_prices_from_catalogue(visits, client, catalogue):
    visit = visits.record_visit(
        client["id"], [{"service_id": catalogue["cut"]["id"]}, {"name": "Wax", "price": 8.0}], "Sam"
    )

    assert visit["total_price"] == 33.0
    assert visit["services"][0]["name"] == "Haircut"
    assert visit["services"][0]["duration"] == 30


def test_failed_visit_leaves_popularity_alone(visits, catalogue):
    with pytest.raises(LookupError):
        visits.record_visit("0" * 24, [{"service_id": catalogue["cut"]["id"]}], "Sam")

    assert visits.service_model.get_by_id(catalogue["cut"]["id"])["popularity_score"] == 0


def test_update_visit_recomputes_total(visits, client, catalogue):
    visit = visits.record_visit(client["id"], HAIRCUT, "Sam")

    updated = visits.update_visit(
        visit["id"], services=[{"service_id": catalogue["fade"]["id"]}, {"name": "Beard", "price": 12.0}]
    )

    assert updated["total_price"] == 42.0
    assert [s["name"] for s in updated["services"]] == ["Fade", "Beard"]
    assert visits.update_visit(visit["id"], barber="Ali")["total_price"] == 42.0
    with pytest.raises(LookupError):
        visits.update_visit("0" * 24, barber="Ali")


def test_list_visits(visits, client):
    visits.record_visit(client["id"], HAIRCUT, "Sam", visit_date=date(2024, 3, 1))
    visits.record_visit(client["id"], HAIRCUT, "Ali", visit_date=date(2024, 3, 20))

    listed = visits.list_visits(limit=1)

    assert listed["pagination"]["total"] == 2
    assert [v["barber"] for v in listed["items"]] == ["Ali"]

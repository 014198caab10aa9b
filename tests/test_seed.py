import asyncio
import json

from patinfly.seed import BikeSeedSource, PricingPlanSeedSource, UserSeedSource


def test_bundled_bikes_load():
    source = BikeSeedSource()
    bikes = asyncio.run(source.get_all())

    assert len(bikes) == 3
    assert asyncio.run(source.get_by_key("6a1f3c2e-6b0e-4f43-9a67-3d1c0f1b2a02")).bike_type_name == "Urban"
    electric = asyncio.run(source.get_all_by_type("ELECTRIC"))
    assert {bike.name for bike in electric} == {"Patinfly E-01", "Patinfly E-12"}


def test_missing_file_is_empty(tmp_path):
    source = BikeSeedSource(tmp_path / "nope.json")
    assert asyncio.run(source.get_all()) == []
    assert asyncio.run(source.get_first()) is None


def test_malformed_file_is_empty(tmp_path):
    path = tmp_path / "bikes.json"
    path.write_text("{ not json", encoding="utf-8")
    assert asyncio.run(BikeSeedSource(path).get_all()) == []

    path.write_text(json.dumps({"bike": [{"uuid": "x"}]}), encoding="utf-8")
    assert asyncio.run(BikeSeedSource(path).get_all()) == []


def test_undecodable_file_is_empty_and_read_once(tmp_path):
    path = tmp_path / "bikes.json"
    path.write_bytes(b'{"bike": [\xff\xfe]}')
    source = BikeSeedSource(path)

    assert asyncio.run(source.get_all()) == []
    assert asyncio.run(source.get_by_key("x")) is None
    assert source.load_count == 1


def test_concurrent_first_access_parses_once():
    source = PricingPlanSeedSource()

    async def hammer():
        return await asyncio.gather(*(source.get_all() for _ in range(25)))

    results = asyncio.run(hammer())
    assert source.load_count == 1
    assert all(len(result) == 1 for result in results)


def test_insert_keeps_existing_key(bike_factory, tmp_path):
    source = BikeSeedSource(tmp_path / "empty.json")
    assert asyncio.run(source.insert(bike_factory(name="first"))) is True
    assert asyncio.run(source.insert(bike_factory(name="second"))) is False
    assert asyncio.run(source.get_by_key("bike-1")).name == "first"

    asyncio.run(source.insert_or_update(bike_factory(name="third")))
    assert asyncio.run(source.get_by_key("bike-1")).name == "third"


def test_update_and_delete_unknown_key(bike_factory, tmp_path):
    source = BikeSeedSource(tmp_path / "empty.json")
    assert asyncio.run(source.update(bike_factory())) is None
    assert asyncio.run(source.delete("bike-1")) is None


def test_mutations_never_touch_the_file(bike_factory):
    source = BikeSeedSource()
    asyncio.run(source.insert(bike_factory(uuid="in-memory-only")))

    assert asyncio.run(BikeSeedSource().get_by_key("in-memory-only")) is None


def test_user_seed_email_lookup():
    user = asyncio.run(UserSeedSource().get_by_email(" RIDER@patinfly.dev"))
    assert user is not None
    assert user.name == "Demo Rider"


def test_pricing_seed_plan_lookup():
    source = PricingPlanSeedSource()
    plan = asyncio.run(source.get_plan_by_id("distance"))

    assert plan.per_km_pricing[0].rate == 0.4
    assert plan.localized_name("ca") == "Distància"
    assert asyncio.run(source.get_plan_by_id("unknown")) is None


def test_concurrent_inserts_all_land(bike_factory, tmp_path):
    source = BikeSeedSource(tmp_path / "empty.json")

    async def insert_many():
        inserts = [source.insert(bike_factory(f"bike-{n}")) for n in range(20)]
        upserts = [source.insert_or_update(bike_factory(f"bike-{n}")) for n in range(20, 40)]
        return await asyncio.gather(*inserts, *upserts)

    assert all(asyncio.run(insert_many()))
    keys = {bike.uuid for bike in asyncio.run(source.get_all())}
    assert keys == {f"bike-{n}" for n in range(40)}

"""Services, add-ons and photographers."""


def test_active_services_only_by_default(catalog_repository, studio_catalog):
    names = [service.name for service in catalog_repository.list_services()]

    assert names == ["Prewedding Outdoor", "Wedding Package"]
    assert len(catalog_repository.list_services(active_only=False)) == 3


def test_discounted_price(studio_catalog):
    assert studio_catalog["wedding"].discounted_price == 900_000


def test_addons_filtered_by_category(catalog_repository, studio_catalog):
    wedding = {addon.name for addon in catalog_repository.list_addons(category="Wedding")}
    prewedding = {addon.name for addon in catalog_repository.list_addons(category="Prewedding")}

    assert wedding == {"Extra Hour", "Printed Album"}
    assert prewedding == {"Drone Shots", "Printed Album"}


def test_get_addons_by_ids_ignores_unknown_and_duplicate_ids(catalog_repository, studio_catalog):
    album = studio_catalog["album"]

    found = catalog_repository.get_addons_by_ids([album.id, "missing", album.id])

    assert [addon.id for addon in found] == [album.id]
    assert catalog_repository.get_addons_by_ids([]) == []


def test_photographers(catalog_repository, studio_catalog):
    catalog_repository.create_photographer(name="Arif", is_active=False)

    assert [p.name for p in catalog_repository.list_photographers()] == ["Dimas"]
    assert len(catalog_repository.list_photographers(active_only=False)) == 2

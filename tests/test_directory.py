import pytest

from conftest import GRAPH_APP_ID
from entra_console.directory import WELL_KNOWN_APIS, combined_listing, summarize


def test_load_inventory(console):
    apps, sps = console.directory.load_inventory()
    assert {a.display_name for a in apps} == {"Sales Dashboard", "HR Portal", "Orphan"}
    assert {sp.id for sp in sps} == {"sp-graph", "sp-client", "sp-hr"}
    assert all(a.is_enabled for a in apps)


def test_combined_listing_filters(console):
    apps, sps = console.directory.load_inventory()

    everything = combined_listing(apps, sps)
    assert len(everything) == 6

    only_sps = combined_listing(apps, sps, view="servicePrincipals")
    assert {e.kind for e in only_sps} == {"servicePrincipal"}
    assert all(e.sign_in_audience == "N/A" for e in only_sps)

    disabled = combined_listing(apps, sps, status="disabled")
    assert [(e.kind, e.id) for e in disabled] == [("servicePrincipal", "sp-hr")]

    by_name = combined_listing(apps, sps, view="applications", query="sales")
    assert [e.id for e in by_name] == ["app-client"]

    by_description = combined_listing(apps, sps, query="crm")
    assert [e.id for e in by_description] == ["app-client"]

    by_app_id = combined_listing(apps, sps, query=GRAPH_APP_ID.upper())
    assert [e.id for e in by_app_id] == ["sp-graph"]


def test_combined_listing_rejects_unknown_view(console):
    with pytest.raises(ValueError):
        combined_listing([], [], view="owners")


def test_summarize(console):
    apps, sps = console.directory.load_inventory()
    assert summarize(apps, sps) == {
        "applications": 3,
        "servicePrincipals": 3,
        "enabledServicePrincipals": 2,
        "disabledServicePrincipals": 1,
    }


def test_api_resources_only_lists_exposed_apis(console):
    resources = console.directory.api_resources()
    assert {r.id for r in resources} == {"sp-graph", "sp-hr"}


def test_api_resources_falls_back_to_well_known_apis(graph, console, monkeypatch):
    calls = []

    def failing_paged_get(path, params=None):
        calls.append(path)
        raise RuntimeError("listing unavailable")

    monkeypatch.setattr(graph, "paged_get", failing_paged_get)
    resources = console.directory.api_resources()

    assert calls == ["/servicePrincipals"]
    assert [r.app_id for r in resources] == [GRAPH_APP_ID]
    lookups = [c for c in graph.calls if c == ("GET", "/servicePrincipals")]
    assert len(lookups) == len(WELL_KNOWN_APIS)


def test_set_service_principal_enabled(graph, console):
    console.directory.set_service_principal_enabled("sp-hr", True)
    assert graph.service_principals["sp-hr"]["accountEnabled"] is True


def test_set_application_enabled_writes_nothing(graph, console):
    console.directory.set_application_enabled("app-hr", False)
    assert graph.writes() == []


def test_search_users_and_groups(console):
    assert [u.id for u in console.directory.search_users("ali")] == ["user-alice"]
    assert [u.id for u in console.directory.search_users("bob@")] == ["user-bob"]
    assert [g.id for g in console.directory.search_groups("fin")] == ["group-finance"]
    assert console.directory.search_users("o'brien") == []

"""Tests for contact stores and contact record parsing."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from src.grouping import InMemoryContactStore, JsonContactStore, load_contacts_file
from src.schemas import ClusterSource, ContactLocation


class TestContactRecords:

    def test_flat_record(self):
        contact = ContactLocation.from_dict(
            {"id": 7, "lat": "37.78", "lng": -122.4, "company": "Acme", "timestamp": "2024-01-09T10:00:00Z"}
        )
        assert contact.contact_id == "7"
        assert contact.lat == 37.78
        assert contact.organization == "Acme"
        assert contact.timestamp == datetime(2024, 1, 9, 10, 0, tzinfo=timezone.utc)

    def test_nested_location(self):
        contact = ContactLocation.from_dict(
            {"contact_id": "c1", "location": {"latitude": 37.78, "longitude": -122.4}}
        )
        assert (contact.lat, contact.lng) == (37.78, -122.4)
        assert contact.organization is None

    def test_missing_coordinates(self):
        with pytest.raises(ValueError):
            ContactLocation.from_dict({"id": "c1", "location": {"latitude": 37.78}})

    def test_to_dict(self):
        contact = ContactLocation("c1", 37.78, -122.4, organization="Acme")
        assert contact.to_dict()["organization"] == "Acme"
        assert contact.to_dict()["timestamp"] is None


class TestLoadContactsFile:

    def test_list_document(self, tmp_path):
        path = tmp_path / "contacts.json"
        path.write_text(json.dumps([
            {"id": "c1", "lat": 37.78, "lng": -122.4},
            {"id": "c2", "location": {"latitude": 37.79, "longitude": -122.41}},
        ]))
        assert [c.contact_id for c in load_contacts_file(path)] == ["c1", "c2"]

    def test_object_document_skips_bad_records(self, tmp_path):
        path = tmp_path / "contacts.json"
        path.write_text(json.dumps({"contacts": [
            {"id": "c1", "lat": 37.78, "lng": -122.4},
            {"id": "no-location"},
            {"lat": 37.78, "lng": -122.4},
        ]}))
        assert [c.contact_id for c in load_contacts_file(path)] == ["c1"]

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "contacts.json"
        path.write_text(json.dumps({"contacts": "none"}))
        with pytest.raises(ValueError):
            load_contacts_file(path)


class TestStores:

    def test_in_memory(self, downtown_contacts):
        store = InMemoryContactStore({"s1": downtown_contacts[:2]})
        store.add_contacts("s1", downtown_contacts[2:])
        assert len(store.load_contacts("s1")) == 3
        assert store.load_contacts("unknown") == []

    def test_json_store_missing_session(self, tmp_path):
        assert JsonContactStore(tmp_path).load_contacts("s1") == []

    @pytest.mark.parametrize("session_id", ["", "..", "a/b"])
    def test_json_store_rejects_bad_session_ids(self, tmp_path, session_id):
        with pytest.raises(ValueError):
            JsonContactStore(tmp_path).load_contacts(session_id)

    def test_run_session_round_trip(self, tmp_path, mock_places, make_orchestrator, downtown_contacts,
                                    moscone_payload):
        session_dir = tmp_path / "s1"
        session_dir.mkdir()
        (session_dir / "contacts.json").write_text(
            json.dumps({"contacts": [c.to_dict() for c in downtown_contacts]})
        )
        store = JsonContactStore(tmp_path)
        orchestrator = make_orchestrator(mock_places([{"places": [moscone_payload]}]))

        clusters, report = asyncio.run(orchestrator.run_session(store, "s1"))

        assert report.session_id == "s1"
        assert len(clusters) == 1
        saved = json.loads((session_dir / "clusters.json").read_text())
        assert saved["clusters"][0]["source"] == ClusterSource.VENUE.value
        assert sorted(saved["clusters"][0]["contact_ids"]) == ["c1", "c2", "c3"]
        assert saved["clusters"][0]["venue"]["name"] == "Moscone Center"

    def test_run_session_in_memory(self, mock_places, make_orchestrator, googleplex_contacts):
        store = InMemoryContactStore({"s2": googleplex_contacts})
        orchestrator = make_orchestrator(mock_places())

        asyncio.run(orchestrator.run_session(store, "s2"))

        assert [c.source for c in store.saved["s2"]] == [ClusterSource.ORGANIZATION_CAMPUS]

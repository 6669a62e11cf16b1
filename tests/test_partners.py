"""Tests for the partner catalog."""

import pytest
from bson.objectid import ObjectId

from errors import ValidationError
from partners import coerce_limit, sort_by_experience


class TestCreate:
    def test_create_defaults_counters(self, catalog, store):
        partner_id = catalog.create({"name": "Ada", "subject": "Math", "email": "ada@example.com"})

        doc = store.partners.find_one({"_id": ObjectId(partner_id)})
        assert doc["rating"] == 0
        assert doc["partnerCount"] == 0

    def test_create_coerces_numbers(self, catalog, store):
        partner_id = catalog.create({
            "name": "Ada", "subject": "Math", "email": "ada@example.com",
            "rating": "4.5", "partnerCount": None,
        })

        doc = store.partners.find_one({"_id": ObjectId(partner_id)})
        assert doc["rating"] == 4.5
        assert doc["partnerCount"] == 0

    def test_create_keeps_free_form_fields(self, catalog, store):
        partner_id = catalog.create({
            "name": "Ada", "subject": "Math", "email": "ada@example.com", "location": "Dhaka",
        })

        assert store.partners.find_one({"_id": ObjectId(partner_id)})["location"] == "Dhaka"

    def test_create_ignores_client_ids(self, catalog, store):
        partner_id = catalog.create({
            "_id": "chosen-by-client", "id": "also-ignored",
            "name": "Ada", "subject": "Math", "email": "ada@example.com",
        })

        doc = store.partners.find_one({"_id": ObjectId(partner_id)})
        assert "id" not in doc
        assert catalog.get_by_id(partner_id)["id"] == partner_id
        assert store.partners.count_documents({"_id": "chosen-by-client"}) == 0

    @pytest.mark.parametrize("missing", ["name", "subject", "email"])
    def test_create_requires_fields(self, catalog, store, missing):
        profile = {"name": "Ada", "subject": "Math", "email": "ada@example.com"}
        profile[missing] = ""

        with pytest.raises(ValidationError) as exc:
            catalog.create(profile)

        assert exc.value.code == "missing_fields"
        assert store.partners.count_documents({}) == 0


class TestSearch:
    def test_search_matches_subject_substring_case_insensitive(self, catalog, make_partner):
        make_partner(name="A", subject="Mathematics")
        make_partner(name="B", subject="MATH101")
        make_partner(name="C", subject="Physics")
        make_partner(name="D", subject="Applied math")

        names = [p["name"] for p in catalog.list(search="math")]

        assert names == ["A", "B", "D"]

    def test_empty_search_returns_everything(self, catalog, make_partner):
        make_partner(name="A", subject="Mathematics")
        make_partner(name="B", subject="Physics")

        assert len(catalog.list(search="")) == 2

    def test_search_is_literal(self, catalog, make_partner):
        make_partner(name="A", subject="C++")
        make_partner(name="B", subject="Chemistry")

        assert [p["name"] for p in catalog.list(search="c++")] == ["A"]

    def test_listing_exposes_string_ids(self, catalog, make_partner):
        partner_id = make_partner()

        (partner,) = catalog.list()

        assert partner["id"] == partner_id
        assert "_id" not in partner


class TestExperienceSort:
    @pytest.fixture
    def mixed(self, make_partner):
        make_partner(name="expert", experienceLevel="Expert")
        make_partner(name="beginner", experienceLevel="Beginner")
        make_partner(name="unknown", experienceLevel="Unknown")
        make_partner(name="intermediate", experienceLevel="Intermediate")

    def test_asc(self, catalog, mixed):
        names = [p["name"] for p in catalog.list(sort="asc")]
        assert names == ["beginner", "intermediate", "expert", "unknown"]

    def test_desc(self, catalog, mixed):
        names = [p["name"] for p in catalog.list(sort="desc")]
        assert names == ["unknown", "expert", "intermediate", "beginner"]

    def test_invalid_sort_keeps_fetch_order(self, catalog, mixed):
        names = [p["name"] for p in catalog.list(sort="sideways")]
        assert names == ["expert", "beginner", "unknown", "intermediate"]

    def test_ties_keep_relative_order(self):
        profiles = [
            {"name": "e1", "experienceLevel": "Expert"},
            {"name": "b1", "experienceLevel": "Beginner"},
            {"name": "e2", "experienceLevel": "Expert"},
            {"name": "x1"},
            {"name": "b2", "experienceLevel": "Beginner"},
            {"name": "x2", "experienceLevel": "Guru"},
        ]

        asc = [p["name"] for p in sort_by_experience(profiles, "asc")]
        desc = [p["name"] for p in sort_by_experience(profiles, "desc")]

        assert asc == ["b1", "b2", "e1", "e2", "x1", "x2"]
        assert desc == ["x1", "x2", "e1", "e2", "b1", "b2"]


class TestTopRated:
    def test_returns_highest_first(self, catalog, make_partner):
        make_partner(name="five", rating=5)
        make_partner(name="three", rating=3)
        make_partner(name="four", rating=4)

        names = [p["name"] for p in catalog.top_rated(2)]

        assert names == ["five", "four"]

    def test_default_limit_is_three(self, catalog, make_partner):
        for rating in range(5):
            make_partner(name=str(rating), rating=rating)

        assert [p["name"] for p in catalog.top_rated()] == ["4", "3", "2"]

    def test_zero_and_negative_limits_return_nothing(self, catalog, make_partner):
        make_partner(rating=5)

        assert catalog.top_rated(0) == []
        assert catalog.top_rated("-4") == []

    @pytest.mark.parametrize("value,expected", [
        (None, 3), ("", 3), ("abc", 3), ("2", 2), ("2.7", 2), (7, 7), (-1, 0), (10_000, 100), ("inf", 3),
    ])
    def test_coerce_limit(self, value, expected):
        assert coerce_limit(value, default=3, maximum=100) == expected


class TestLookupAndIncrement:
    def test_get_by_id_rejects_malformed_id(self, catalog):
        with pytest.raises(ValidationError) as exc:
            catalog.get_by_id("abc")
        assert exc.value.code == "invalid_partner_id"

    def test_get_by_id_missing_returns_none(self, catalog):
        assert catalog.get_by_id(str(ObjectId())) is None

    def test_increment(self, catalog, make_partner):
        partner_id = make_partner()

        assert catalog.increment_partner_count(partner_id) is True
        assert catalog.increment_partner_count(partner_id) is True

        assert catalog.get_by_id(partner_id)["partnerCount"] == 2

    def test_increment_missing_partner(self, catalog):
        assert catalog.increment_partner_count(str(ObjectId())) is False

    def test_increment_uses_atomic_update(self):
        from unittest.mock import MagicMock, patch

        from partners import PartnerCatalog

        partners = MagicMock()
        with patch("partners.collection", return_value=partners):
            PartnerCatalog().increment_partner_count("a" * 24)

        args, _ = partners.update_one.call_args
        assert args[1] == {"$inc": {"partnerCount": 1}}
        partners.find_one.assert_not_called()

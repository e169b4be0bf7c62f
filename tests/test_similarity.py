"""Tests for SimilarityIndex and ProfileDirectory label backfill."""

import pytest

from hotwills.sync import SimilarityIndex

from conftest import ALICE, BOB, CAROL


@pytest.fixture
def index(records, profiles):
    return SimilarityIndex(records, profiles, code_chunk_size=2)


@pytest.fixture
def k02_catalogs(fake_db):
    fake_db.add_entry(ALICE, "Beetle", "K02", f"{ALICE}/beetle.jpg", year="1967")
    fake_db.add_entry(BOB, "Beetle", "k02", f"{BOB}/beetle.jpg", year="1967")
    fake_db.add_entry(BOB, "Käfer", "K02", f"{BOB}/kafer.jpg", year="1968")
    fake_db.add_entry(CAROL, "VW 1200", "K02", f"{CAROL}/vw.jpg", year="1967", link="https://x")
    fake_db.add_profile(BOB, "bob@example.com")
    fake_db.add_profile(CAROL, "carol@example.com")


class TestFindSimilar:
    @pytest.mark.asyncio
    async def test_groups_by_owner_and_code(self, index, k02_catalogs):
        result = await index.find_similar(["K02"], exclude_owner_id=ALICE)

        assert list(result) == ["k02"]
        matches = result["k02"]
        assert [m.owner for m in matches] == [BOB, CAROL]
        bob = matches[0]
        assert bob.label == "bob@example.com"
        assert sorted(bob.name.split(" / ")) == ["Beetle", "Käfer"]
        assert sorted(bob.year.split(" / ")) == ["1967", "1968"]
        assert bob.image in (f"{BOB}/beetle.jpg", f"{BOB}/kafer.jpg")
        assert matches[1].link == "https://x"

    @pytest.mark.asyncio
    async def test_excluded_owner_never_listed(self, index, k02_catalogs):
        result = await index.find_similar(["k02"], exclude_owner_id=BOB)
        assert [m.owner for m in result["k02"]] == [ALICE, CAROL]

    @pytest.mark.asyncio
    async def test_input_codes_normalized(self, index, k02_catalogs):
        result = await index.find_similar(["  k02 ", "K02", "", None], exclude_owner_id=ALICE)
        assert list(result) == ["k02"]
        assert len(result["k02"]) == 2

    @pytest.mark.asyncio
    async def test_no_codes_no_queries(self, fake_db, index):
        assert await index.find_similar([], exclude_owner_id=ALICE) == {}
        assert await index.find_similar(["  "], exclude_owner_id=ALICE) == {}
        assert fake_db.calls == []

    @pytest.mark.asyncio
    async def test_codes_without_matches_absent(self, index, k02_catalogs):
        result = await index.find_similar(["K02", "Z99"], exclude_owner_id=ALICE)
        assert "z99" not in result

    @pytest.mark.asyncio
    async def test_unknown_owner_labelled_by_id(self, fake_db, index):
        fake_db.add_entry(BOB, "Mini", "M1", f"{BOB}/mini.jpg")
        result = await index.find_similar(["M1"], exclude_owner_id=ALICE)
        assert result["m1"][0].label == BOB

    @pytest.mark.asyncio
    async def test_ordering_by_label_then_name(self, fake_db, index):
        fake_db.add_entry(CAROL, "Zeta", "C1", f"{CAROL}/z.jpg")
        fake_db.add_entry(BOB, "Alpha", "C1", f"{BOB}/a.jpg")
        fake_db.add_profile(CAROL, "Aaron@example.com")
        fake_db.add_profile(BOB, "zed@example.com")

        result = await index.find_similar(["c1"], exclude_owner_id=ALICE)

        assert [m.label for m in result["c1"]] == ["Aaron@example.com", "zed@example.com"]

    @pytest.mark.asyncio
    async def test_many_codes_chunked(self, fake_db, index):
        for i in range(5):
            fake_db.add_entry(BOB, f"Car {i}", f"C{i}", f"{BOB}/{i}.jpg")

        result = await index.find_similar([f"C{i}" for i in range(5)], exclude_owner_id=ALICE)

        assert sorted(result) == [f"c{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_mixed_case_remote_code_matches(self, fake_db, index):
        fake_db.add_entry(BOB, "Beetle", "k02A", f"{BOB}/beetle.jpg")

        result = await index.find_similar(["K02a"], exclude_owner_id=ALICE)

        assert [m.owner for m in result["k02a"]] == [BOB]


class TestProfileLabels:
    @pytest.mark.asyncio
    async def test_labels_cached_after_first_fetch(self, fake_db, profiles):
        fake_db.add_profile(BOB, "bob@example.com")

        assert await profiles.labels_for([BOB]) == {BOB: "bob@example.com"}
        calls = len(fake_db.calls)
        assert await profiles.labels_for([BOB]) == {BOB: "bob@example.com"}
        assert len(fake_db.calls) == calls

    @pytest.mark.asyncio
    async def test_list_profiles_pages(self, fake_db, profiles):
        for owner in (ALICE, BOB, CAROL):
            fake_db.add_profile(owner, f"{owner[:4]}@example.com")

        owners = await profiles.list_profiles()

        assert [o.id for o in owners] == [ALICE, BOB, CAROL]
        assert profiles.cached_label(CAROL) == "3333@example.com"

"""Unit tests for standings records and the upsert engine."""

import pytest

from app.errors import StorageError, ValidationError
from app.services.standings import StandingRecord, StandingsUpserter, validate_batch


def _without_timestamps(rows):
    return [{k: v for k, v in r.items() if k != "last_updated"} for r in rows]


class TestStandingRecord:
    """Test payload normalization."""

    def test_from_camel_case_payload(self):
        record = StandingRecord.from_payload(
            {
                "team": "Boston Bruins",
                "gamesPlayed": 10,
                "wins": 6,
                "losses": 3,
                "otherLosses": 1,
                "points": 13,
            }
        )
        assert record == StandingRecord("Boston Bruins", 10, 6, 3, 1, 13)

    def test_from_short_aliases(self):
        record = StandingRecord.from_payload(
            {"team": "Boston Bruins", "gp": "10", "w": 6, "l": 3, "otl": 1.0, "pts": 13}
        )
        assert record.games_played == 10
        assert record.ot_losses == 1

    def test_optional_fields_default_to_zero(self):
        record = StandingRecord.from_payload(
            {"team": "Boston Bruins", "gamesPlayed": 0, "points": 0}
        )
        assert (record.wins, record.losses, record.ot_losses) == (0, 0, 0)

    def test_to_payload_round_trip(self):
        record = StandingRecord("Boston Bruins", 10, 6, 3, 1, 13)
        assert StandingRecord.from_payload(record.to_payload()) == record

    @pytest.mark.parametrize(
        "payload",
        [
            {"gamesPlayed": 1, "points": 2},
            {"team": "  ", "gamesPlayed": 1, "points": 2},
            {"team": "Boston Bruins", "points": 2},
            {"team": "Boston Bruins", "gamesPlayed": 1},
            {"team": "Boston Bruins", "gamesPlayed": "ten", "points": 2},
            {"team": "Boston Bruins", "gamesPlayed": -1, "points": 2},
            {"team": "Boston Bruins", "gamesPlayed": 1, "points": True},
            {"team": "Boston Bruins", "gamesPlayed": 1.5, "points": 2},
            "Boston Bruins",
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValidationError):
            StandingRecord.from_payload(payload)


class TestValidateBatch:
    """Test whole-batch validation."""

    def test_valid_batch(self, sample_payload):
        assert len(validate_batch(sample_payload)) == 8

    def test_empty_batch(self):
        with pytest.raises(ValidationError, match="No standings data"):
            validate_batch([])

    def test_not_a_list(self):
        with pytest.raises(ValidationError):
            validate_batch({"team": "Boston Bruins"})

    def test_duplicate_team(self, sample_payload):
        with pytest.raises(ValidationError, match="Duplicate"):
            validate_batch(sample_payload + [sample_payload[0]])


class TestStandingsUpserter:
    """Test applying batches to the standings table."""

    async def _rows(self, storage):
        return await storage.query_all(
            "SELECT team, games_played, wins, losses, ot_losses, points, last_updated "
            "FROM standings ORDER BY team"
        )

    async def test_inserts_into_empty_table(self, storage, sample_records):
        result = await StandingsUpserter(storage).apply_standings(sample_records)
        assert result.updated_count == 8
        assert result.inserted == 8
        assert result.replaced == 0
        assert len(await self._rows(storage)) == 8

    async def test_replaces_existing_rows(self, storage, sample_records):
        upserter = StandingsUpserter(storage)
        await upserter.apply_standings(sample_records)

        changed = [
            StandingRecord(r.team, r.games_played + 1, r.wins + 1, r.losses, r.ot_losses, r.points + 2)
            for r in sample_records
        ]
        result = await upserter.apply_standings(changed)

        assert result.replaced == 8
        rows = {r["team"]: r for r in await self._rows(storage)}
        assert len(rows) == 8
        assert rows["Florida Panthers"]["points"] == 32
        assert rows["Florida Panthers"]["games_played"] == 21

    async def test_idempotent(self, storage, sample_records):
        """Applying the same batch twice leaves the same stats and row count."""
        upserter = StandingsUpserter(storage)
        await upserter.apply_standings(sample_records)
        first = await self._rows(storage)
        await upserter.apply_standings(sample_records)
        second = await self._rows(storage)

        assert _without_timestamps(first) == _without_timestamps(second)
        assert len(second) == 8

    async def test_accepts_raw_payloads(self, storage, sample_payload):
        result = await StandingsUpserter(storage).apply_standings(sample_payload)
        assert result.updated_count == 8

    async def test_invalid_record_prevents_all_writes(self, storage, sample_payload):
        """Eight valid records plus one malformed one write nothing."""
        batch = sample_payload + [{"team": "Broken", "gamesPlayed": "n/a", "points": 1}]
        with pytest.raises(ValidationError):
            await StandingsUpserter(storage).apply_standings(batch)
        assert await self._rows(storage) == []

    async def test_stamps_last_updated(self, storage, sample_records):
        await StandingsUpserter(storage).apply_standings(sample_records[:1])
        rows = await self._rows(storage)
        assert rows[0]["last_updated"] is not None

    async def test_partial_failure_keeps_earlier_teams(self, storage, sample_records):
        """A storage failure midway leaves already-applied teams written."""

        class FailingStorage:
            def __init__(self, inner, fail_on_team):
                self.inner = inner
                self.fail_on_team = fail_on_team

            async def query_one(self, sql, params=None):
                return await self.inner.query_one(sql, params)

            async def execute(self, sql, params=None):
                if self.fail_on_team in (params or []):
                    raise StorageError("disk full")
                return await self.inner.execute(sql, params)

        failing = FailingStorage(storage, sample_records[2].team)
        with pytest.raises(StorageError):
            await StandingsUpserter(failing).apply_standings(sample_records)

        teams = {r["team"] for r in await self._rows(storage)}
        assert teams == {sample_records[0].team, sample_records[1].team}

"""Tests for MatrixService: setup flow, reports, findable toggles, end/ping/fam."""

import asyncio

import pytest

from domain.enums import MatchOutcome
from domain.errors import (
    DraftAlreadyInProgressError,
    InvalidShortnameError,
    MatrixNotFoundError,
    NoDraftError,
    NotAMemberError,
    SelfMatchError,
    SinkError,
    UnknownParticipantError,
)
from renderers.grid_view import NO_BELL
from renderers.messages import LEGEND, match_intro
from services.matrix_service import MatrixService, normalize_shortname
from tests.fakes import FakeResolver, FakeSink

GUILD = 500
CHANNEL = 77
THREAD = 78
NAMES = {1: "Ann", 2: "Bob", 3: "Cid", 4: "Dee"}


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def service(sink):
    return MatrixService(sink=sink, resolver=FakeResolver(dict(NAMES)))


async def _create(service, ids=(1, 2, 3), shortname="spring"):
    await service.begin(group_id=GUILD, title="Spring League", shortname=shortname)
    await service.add_participants(group_id=GUILD, user_ids=list(ids))
    return await service.create(group_id=GUILD, location_id=THREAD)


class TestShortname:
    @pytest.mark.parametrize("raw,expected", [("Spring", "spring"), ("rr-2024_a", "rr-2024_a"), ("टूर्नामेंट", "टूर्नामेंट")])
    def test_valid(self, raw, expected):
        assert normalize_shortname(raw) == expected

    @pytest.mark.parametrize("raw", ["", "two words", "x" * 33, "bad!"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidShortnameError):
            normalize_shortname(raw)


class TestSetupFlow:
    def test_begin_twice_rejected(self, service):
        async def scenario():
            await service.begin(group_id=GUILD, title="A", shortname="a")
            with pytest.raises(DraftAlreadyInProgressError):
                await service.begin(group_id=GUILD, title="B", shortname="b")
            # other guilds are independent
            await service.begin(group_id=GUILD + 1, title="B", shortname="b")

        run(scenario())

    def test_begin_invalid_shortname_leaves_no_draft(self, service):
        async def scenario():
            with pytest.raises(InvalidShortnameError):
                await service.begin(group_id=GUILD, title="A", shortname="has space")
            assert service.draft(GUILD) is None

        run(scenario())

    def test_add_is_idempotent_per_player(self, service):
        async def scenario():
            await service.begin(group_id=GUILD, title="A", shortname="a")
            first = await service.add_participants(group_id=GUILD, user_ids=[1, 2])
            second = await service.add_participants(group_id=GUILD, user_ids=[2, 3])
            return first, second

        first, second = run(scenario())
        assert [p.name for p in first.added] == ["Ann", "Bob"]
        assert [p.name for p in second.added] == ["Cid"]
        assert [p.name for p in second.already_present] == ["Bob"]
        assert [p.name for p in second.roster] == ["Ann", "Bob", "Cid"]
        assert "Bob already included." in second.describe()
        assert "Added 1 new players. Full list of 3" in second.describe()

    def test_add_without_draft(self, service):
        with pytest.raises(NoDraftError):
            run(service.add_participants(group_id=GUILD, user_ids=[1]))

    def test_add_non_member_changes_nothing(self, service):
        async def scenario():
            await service.begin(group_id=GUILD, title="A", shortname="a")
            with pytest.raises(NotAMemberError):
                await service.add_participants(group_id=GUILD, user_ids=[1, 99])
            return service.draft(GUILD)

        assert run(scenario()).participants == []

    def test_cancel(self, service):
        async def scenario():
            with pytest.raises(NoDraftError):
                await service.cancel(group_id=GUILD)
            await service.begin(group_id=GUILD, title="A", shortname="a")
            await service.cancel(group_id=GUILD)
            assert service.draft(GUILD) is None
            with pytest.raises(NoDraftError):
                await service.create(group_id=GUILD, location_id=THREAD)

        run(scenario())

    def test_create_posts_intro_grid_legend(self, service, sink):
        m = run(_create(service))
        texts = sink.texts(THREAD)
        assert len(texts) == 3

        intro = match_intro(texts[0])
        assert intro.user_ids == [1, 2, 3]
        assert intro.shortname == "spring"
        assert sink.transcript(THREAD)[0].silent
        assert sink.transcript(THREAD)[0].mention_ids == (1, 2, 3)

        assert texts[1].startswith("Spring League\n")
        assert texts[2] == LEGEND
        assert m.handles == [sink.transcript(THREAD)[1].handle]
        assert service.draft(GUILD) is None
        assert service.list_matrices(GUILD) == {"spring": "Spring League"}

    def test_create_splits_large_grids(self, service, sink):
        service._resolver.names.update({i: f"P{i}" for i in range(10, 22)})
        m = run(_create(service, ids=range(10, 22)))
        assert len(m.handles) == service.block_count(12) == 3
        assert len(sink.texts(THREAD)) == 1 + 3 + 1

    def test_create_is_all_or_nothing(self, sink):
        sink.fail_after_posts = 2   # intro + first block succeed, legend fails
        service = MatrixService(sink=sink, resolver=FakeResolver(dict(NAMES)))

        with pytest.raises(SinkError):
            run(_create(service))
        assert service.list_matrices(GUILD) == {}
        assert service.draft(GUILD) is not None

        sink.fail_after_posts = None

        async def retry():
            return await service.create(group_id=GUILD, location_id=THREAD)

        m = run(retry())
        assert service.get_matrix(GUILD, "spring") is m


class TestReport:
    def test_reporter_row_shows_their_score(self, service, sink):
        async def scenario():
            m = await _create(service)
            await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=2, score="2-1")
            return m

        m = run(scenario())
        assert m.outcome(1, 2) is MatchOutcome.WIN_2_1
        assert m.outcome(2, 1) is MatchOutcome.LOSS_1_2
        assert m.summary_for(1) == (1, 1)
        assert m.summary_for(2) == (0, 1)
        assert m.is_symmetric()

        grid = sink.text_of(m.handles[0])
        assert "1/1 Ann" in grid
        assert "0/1 Bob" in grid
        assert "<@1> reports Ann 2-1 Bob" in sink.texts(THREAD)

    def test_result_by_location_with_other_player(self, service):
        async def scenario():
            m = await _create(service)
            await service.report(
                group_id=GUILD, location_id=THREAD, reporter_id=4, player_id=3, opponent_id=1, score="0-2"
            )
            return m

        m = run(scenario())
        assert m.outcome(3, 1) is MatchOutcome.LOSS_0_2
        assert m.outcome(1, 3) is MatchOutcome.WIN_2_0

    def test_errors(self, service):
        async def scenario():
            m = await _create(service)
            before = dict(m.results)
            with pytest.raises(SelfMatchError):
                await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=1, score="2-0")
            with pytest.raises(UnknownParticipantError):
                await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=4, score="2-0")
            with pytest.raises(MatrixNotFoundError):
                await service.report(group_id=GUILD, shortname="nope", reporter_id=1, opponent_id=2, score="2-0")
            with pytest.raises(MatrixNotFoundError):
                await service.report(group_id=GUILD, location_id=CHANNEL, reporter_id=1, opponent_id=2, score="2-0")
            assert m.results == before

        run(scenario())

    def test_edit_failure_keeps_mutation(self, service, sink):
        async def scenario():
            m = await _create(service)
            sink.fail_edits = True
            with pytest.raises(SinkError):
                await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=2, score="2-0")
            return m

        m = run(scenario())
        assert m.outcome(1, 2) is MatchOutcome.WIN_2_0

    def test_concurrent_reports_stay_symmetric(self, service):
        async def scenario():
            m = await _create(service, ids=(1, 2, 3, 4))
            pairs = [(a, b) for a in (1, 2, 3, 4) for b in (1, 2, 3, 4) if a < b]
            await asyncio.gather(
                *[
                    service.report(group_id=GUILD, shortname="spring", reporter_id=a, opponent_id=b, score="2-1")
                    for a, b in pairs
                ]
            )
            return m

        m = run(scenario())
        assert m.is_symmetric()
        assert sum(m.summary_for(p.user_id)[1] for p in m.participants) == 12


class TestFindable:
    def test_toggle_rerenders_only_on_change(self, service, sink):
        async def scenario():
            m = await _create(service)
            edits_before = len(sink.edits)
            n1 = await service.set_findable(group_id=GUILD, user_id=2, enabled=False)
            n2 = await service.set_findable(group_id=GUILD, user_id=2, enabled=False)
            return m, edits_before, n1, n2

        m, edits_before, n1, n2 = run(scenario())
        assert (n1, n2) == (1, 0)
        assert len(sink.edits) == edits_before + 1
        assert "Bob" + NO_BELL in sink.text_of(m.handles[0])

    def test_all_tournaments(self, service):
        async def scenario():
            await _create(service, shortname="one")
            await service.begin(group_id=GUILD, title="Other", shortname="two")
            await service.add_participants(group_id=GUILD, user_ids=[2, 4])
            await service.create(group_id=GUILD, location_id=THREAD + 1)
            return await service.set_findable(group_id=GUILD, user_id=2, enabled=False)

        assert run(scenario()) == 2

    def test_unknown_tournament(self, service):
        async def scenario():
            await _create(service)
            with pytest.raises(MatrixNotFoundError):
                await service.set_findable(group_id=GUILD, user_id=2, enabled=False, shortname="nope")

        run(scenario())


class TestEndPingFam:
    def test_end_posts_snapshot_and_forgets(self, service, sink):
        async def scenario():
            await _create(service)
            await service.set_findable(group_id=GUILD, user_id=1, enabled=False)
            await service.end(group_id=GUILD, shortname="spring", location_id=CHANNEL)
            with pytest.raises(MatrixNotFoundError):
                await service.end(group_id=GUILD, shortname="spring", location_id=CHANNEL)

        run(scenario())
        (snapshot,) = sink.texts(CHANNEL)
        assert snapshot.startswith("Spring League\n")
        assert NO_BELL not in snapshot
        assert service.list_matrices(GUILD) == {}

    def test_ping(self, service, sink):
        async def scenario():
            await _create(service)
            await service.ping(group_id=GUILD, shortname="spring", location_id=CHANNEL)

        run(scenario())
        (msg,) = sink.transcript(CHANNEL)
        assert msg.text == "<@1> <@2> <@3> "
        assert msg.silent
        assert msg.mention_ids == (1, 2, 3)

    def test_find_a_match(self, service, sink):
        async def scenario():
            await _create(service)
            await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=2, score="2-0")
            await service.set_findable(group_id=GUILD, user_id=3, enabled=False)
            fam1 = await service.find_a_match(group_id=GUILD, user_id=1, location_id=CHANNEL)
            await service.report(group_id=GUILD, shortname="spring", reporter_id=1, opponent_id=3, score="0-2")
            fam2 = await service.find_a_match(group_id=GUILD, user_id=1, location_id=CHANNEL, shortname="spring")
            fam3 = await service.find_a_match(group_id=GUILD, user_id=2, location_id=CHANNEL)
            return fam1, fam2, fam3

        fam1, fam2, fam3 = run(scenario())
        assert fam1.text.endswith("\nspring: Cid ")
        assert fam1.mention_ids == set()
        assert fam2.text.endswith("\nspring: All matches complete!")
        assert fam3.text.endswith("\nspring: Cid ")
        assert fam3.text.startswith("<@2> is trying to find a match")

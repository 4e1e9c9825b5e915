"""Tests du résolveur de permissions (fonction pure)."""
from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from core.permissions import CHAT, CONNECT, MOVE_MEMBERS, OWNER_CAPABILITIES, SOUNDBOARD, VIEW_CHANNEL
from core.voice_rooms.models import (
    ChatRestriction,
    CommandAccess,
    LiveMember,
    OverwriteRule,
    OwnerPreference,
    RoomSnapshot,
    SoundboardRestriction,
    SubjectKind,
)
from core.voice_rooms.policy import OverwriteSet, may_use_room_commands, resolve

GUILD = 1000
OWNER = 1
ALICE = 2
BOB = 3
CAROL = 4
STAFF_ROLE = 500


def snapshot(limit=0, count=0):
    return RoomSnapshot(owner_id=OWNER, guild_id=GUILD, user_limit=limit, member_count=count)


def prefs(**kw):
    return OwnerPreference(owner_id=OWNER, guild_id=GUILD, **kw)


def live(*ids, roles=()):
    return [LiveMember(uid, frozenset(roles)) for uid in ids]


def test_defaults_open_chat_and_soundboard():
    result = resolve(snapshot(), None, set(), set(), set(), live(OWNER))
    everyone = result.get(GUILD)
    assert everyone.kind == SubjectKind.ROLE
    assert everyone.allow & CHAT == CHAT
    assert everyone.allow & SOUNDBOARD == SOUNDBOARD
    assert everyone.deny == 0
    owner = result.get(OWNER)
    assert owner.allow == OWNER_CAPABILITIES
    assert owner.deny == 0


def test_open_spots_full_room_mutes_outsiders_only():
    p = prefs(chat=ChatRestriction.OPEN_SPOTS)
    result = resolve(snapshot(limit=3, count=3), p, {BOB}, set(), set(), live(OWNER, ALICE, BOB))
    assert result.get(GUILD).deny & CHAT == CHAT
    # Un membre connecté garde le chat
    assert result.get(ALICE).allow & CHAT == CHAT
    assert result.get(BOB).allow == CHAT | MOVE_MEMBERS


def test_open_spots_with_free_spot_keeps_chat():
    p = prefs(chat=ChatRestriction.OPEN_SPOTS)
    result = resolve(snapshot(limit=3, count=2), p, set(), set(), set(), live(OWNER, ALICE))
    assert result.get(GUILD).allow & CHAT == CHAT
    assert ALICE not in result


def test_unlimited_room_is_never_full():
    p = prefs(chat=ChatRestriction.OPEN_SPOTS)
    result = resolve(snapshot(limit=0, count=50), p, set(), set(), set(), live(OWNER))
    assert result.get(GUILD).allow & CHAT == CHAT
    assert result.get(GUILD).deny & CHAT == 0


def test_always_mode_ignores_fullness():
    result = resolve(snapshot(limit=2, count=2), prefs(), set(), set(), set(), live(OWNER, ALICE))
    assert result.get(GUILD).allow & CHAT == CHAT


def test_owner_only_soundboard():
    p = prefs(soundboard=SoundboardRestriction.OWNER)
    result = resolve(snapshot(), p, set(), set(), set(), live(OWNER))
    assert result.get(GUILD).deny & SOUNDBOARD == SOUNDBOARD
    assert result.get(OWNER).allow == OWNER_CAPABILITIES | SOUNDBOARD


def test_blocked_absent_user_cannot_connect_or_chat():
    result = resolve(snapshot(), prefs(), set(), {CAROL}, set(), live(OWNER))
    rule = result.get(CAROL)
    assert rule.deny == CONNECT | CHAT
    assert rule.allow == 0


def test_blocked_connected_user_is_not_kicked():
    result = resolve(snapshot(), prefs(), set(), {ALICE}, set(), live(OWNER, ALICE))
    assert ALICE not in result


def test_blocked_staff_is_exempt():
    result = resolve(
        snapshot(), prefs(), set(), {CAROL}, {STAFF_ROLE}, live(OWNER), known_roles={CAROL: [STAFF_ROLE]}
    )
    assert CAROL not in result


def test_owner_rule_wins_over_own_lists_and_baseline():
    baseline = [OverwriteRule(OWNER, SubjectKind.MEMBER, allow=0, deny=CONNECT | VIEW_CHANNEL)]
    result = resolve(snapshot(), prefs(), {OWNER}, {OWNER}, set(), (), baseline)
    owner = result.get(OWNER)
    assert owner.allow == OWNER_CAPABILITIES
    assert owner.deny == 0


def test_category_baseline_is_kept_and_merged():
    baseline = [
        OverwriteRule(GUILD, SubjectKind.ROLE, deny=VIEW_CHANNEL),
        OverwriteRule(77, SubjectKind.ROLE, allow=VIEW_CHANNEL),
    ]
    result = resolve(snapshot(), prefs(), set(), set(), set(), live(OWNER), baseline)
    everyone = result.get(GUILD)
    assert everyone.deny & VIEW_CHANNEL == VIEW_CHANNEL
    assert everyone.allow & CHAT == CHAT
    assert result.get(77).allow == VIEW_CHANNEL


def test_overwrite_set_merges_per_bit():
    ows = OverwriteSet()
    ows.set(5, SubjectKind.MEMBER, allow=CHAT | CONNECT)
    ows.set(5, SubjectKind.MEMBER, deny=CONNECT)
    rule = ows.get(5)
    assert rule.allow == CHAT
    assert rule.deny == CONNECT
    ows.replace(5, SubjectKind.MEMBER, allow=MOVE_MEMBERS)
    assert ows.get(5) == OverwriteRule(5, SubjectKind.MEMBER, allow=MOVE_MEMBERS, deny=0)
    assert len(ows) == 1


user_ids = st.integers(min_value=2, max_value=40)
id_sets = st.sets(user_ids, max_size=8)


@settings(max_examples=150)
@given(
    trusted=id_sets,
    blocked=id_sets,
    connected=id_sets,
    limit=st.integers(min_value=0, max_value=10),
    chat=st.sampled_from(list(ChatRestriction)),
    soundboard=st.sampled_from(list(SoundboardRestriction)),
    owner_in_lists=st.booleans(),
)
def test_resolver_properties(trusted, blocked, connected, limit, chat, soundboard, owner_in_lists):
    if owner_in_lists:
        trusted = trusted | {OWNER}
        blocked = blocked | {OWNER}
    members = live(OWNER, *sorted(connected))
    room = snapshot(limit=limit, count=len(members))
    p = prefs(chat=chat, soundboard=soundboard)

    first = resolve(room, p, trusted, blocked, set(), members)
    second = resolve(room, p, trusted, blocked, set(), members)
    assert first == second

    owner = first.get(OWNER)
    expected = OWNER_CAPABILITIES | (SOUNDBOARD if soundboard == SoundboardRestriction.OWNER else 0)
    assert owner.allow == expected
    assert owner.deny == 0

    # Jamais d'expulsion : un membre connecté n'est pas privé de connexion
    for uid in connected:
        rule = first.get(uid)
        assert rule is None or rule.deny & CONNECT == 0

    for uid in blocked - connected - {OWNER}:
        assert first.get(uid).deny & CONNECT == CONNECT


def test_may_use_room_commands():
    assert may_use_room_commands(CommandAccess.OWNER, OWNER, OWNER, set(), {OWNER})
    assert may_use_room_commands(CommandAccess.ANYONE, ALICE, OWNER, set(), set())
    assert not may_use_room_commands(CommandAccess.ANYONE, ALICE, OWNER, set(), {ALICE})
    assert may_use_room_commands(CommandAccess.TRUSTED, ALICE, OWNER, {ALICE}, set())
    assert not may_use_room_commands(CommandAccess.TRUSTED, BOB, OWNER, {ALICE}, set())
    assert not may_use_room_commands(CommandAccess.OWNER, ALICE, OWNER, {ALICE}, set())

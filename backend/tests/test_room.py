import random

import pytest

from bingo.game.errors import RoomError
from bingo.game.models import Room, next_turn_index


def _room(**kwargs):
    kwargs.setdefault('first_turn_policy', 'first')
    return Room(code='ABCD', **kwargs)


def _started_room():
    room = _room()
    room.join('a', 'alice')
    room.join('b', 'bob')
    room.start('a')
    return room


def _snapshot(room):
    return (
        [(p.id, p.username, p.seat_number) for p in room.participants],
        room.started,
        room.turn_index,
        room.current_turn_holder,
        list(room.marked_numbers),
        room.winner_id,
        room.draw,
        room.pending_rematch,
    )


def test_next_turn_index_wraps_and_handles_empty():
    assert next_turn_index(2, 0) == 1
    assert next_turn_index(2, 1) == 0
    assert next_turn_index(3, 2) == 0
    assert next_turn_index(0, 0) is None


def test_join_assigns_seats_and_caps_capacity():
    room = _room()
    room.join('a', 'alice')
    room.join('b', 'bob')
    before = _snapshot(room)

    with pytest.raises(RoomError) as exc:
        room.join('c', 'carol')
    assert exc.value.code == 'room_full'
    assert _snapshot(room) == before
    assert [p.seat_number for p in room.participants] == [1, 2]


def test_join_twice_is_rejected():
    room = _room()
    room.join('a', 'alice')
    with pytest.raises(RoomError) as exc:
        room.join('a', 'alice')
    assert exc.value.code == 'already_in_room'


def test_capacity_generalizes():
    room = _room(capacity=3)
    for sid in 'abc':
        room.join(sid, sid)
    with pytest.raises(RoomError):
        room.join('d', 'd')
    assert len(room.participants) == 3


def test_start_requires_full_room():
    room = _room()
    room.join('a', 'alice')
    with pytest.raises(RoomError) as exc:
        room.start('a')
    assert exc.value.code == 'not_enough_players'
    assert room.phase == 'lobby'


def test_start_twice_is_rejected():
    room = _started_room()
    with pytest.raises(RoomError) as exc:
        room.start('b')
    assert exc.value.code == 'already_started'


def test_start_by_outsider_is_rejected():
    room = _room()
    room.join('a', 'alice')
    room.join('b', 'bob')
    with pytest.raises(RoomError) as exc:
        room.start('z')
    assert exc.value.code == 'not_in_room'


def test_random_first_turn_uses_room_rng():
    room = _room(first_turn_policy='random', rng=random.Random(7))
    room.join('a', 'alice')
    room.join('b', 'bob')
    first = room.start('a')
    assert room.current_turn_holder == first.id
    assert room.participants[room.turn_index].id == first.id


def test_join_rejected_once_started():
    room = _started_room()
    room.capacity = 3
    with pytest.raises(RoomError) as exc:
        room.join('c', 'carol')
    assert exc.value.code == 'already_started'


def test_turns_alternate_strictly():
    room = _started_room()
    holders = []
    for n in range(1, 9):
        holder = room.current_turn_holder
        holders.append(holder)
        room.mark_number(holder, n)
    assert holders == ['a', 'b'] * 4
    assert room.marked_numbers == list(range(1, 9))


def test_mark_out_of_turn_is_rejected():
    room = _started_room()
    before = _snapshot(room)
    with pytest.raises(RoomError) as exc:
        room.mark_number('b', 5)
    assert exc.value.code == 'not_your_turn'
    assert _snapshot(room) == before


def test_repeated_number_is_rejected_without_change():
    room = _started_room()
    room.mark_number('a', 7)
    before = _snapshot(room)
    with pytest.raises(RoomError) as exc:
        room.mark_number('b', 7)
    assert exc.value.code == 'already_called'
    assert _snapshot(room) == before
    assert len(set(room.marked_numbers)) == len(room.marked_numbers)


@pytest.mark.parametrize('bad', [0, 26, -1, '5', 5.0, True, None])
def test_invalid_numbers_are_rejected(bad):
    room = _started_room()
    with pytest.raises(RoomError) as exc:
        room.mark_number('a', bad)
    assert exc.value.code == 'invalid_number'
    assert room.marked_numbers == []
    assert room.current_turn_holder == 'a'


def test_mark_before_start_is_rejected():
    room = _room()
    room.join('a', 'alice')
    room.join('b', 'bob')
    with pytest.raises(RoomError) as exc:
        room.mark_number('a', 3)
    assert exc.value.code == 'not_active'


def test_first_claim_wins():
    room = _started_room()
    room.mark_number('a', 1)
    assert room.declare_win('b') == 'win'
    assert room.phase == 'concluded'
    assert room.winner_id == 'b'
    assert room.winner_username == 'bob'
    assert room.started is False
    assert room.current_turn_holder is None

    with pytest.raises(RoomError) as exc:
        room.mark_number('a', 2)
    assert exc.value.code == 'not_active'
    assert room.marked_numbers == [1]


def test_counter_claim_becomes_draw_and_keeps_winner():
    room = _started_room()
    room.mark_number('a', 4)
    room.mark_number('b', 9)
    assert room.declare_win('a') == 'win'
    assert room.declare_win('b') == 'draw'
    assert room.draw is True
    assert room.winner_id == 'a'
    assert room.last_marked_number == 9

    for sid in ('a', 'b'):
        with pytest.raises(RoomError) as exc:
            room.declare_win(sid)
        assert exc.value.code == 'cannot_declare'


def test_repeat_claim_by_winner_is_rejected():
    room = _started_room()
    room.declare_win('a')
    with pytest.raises(RoomError) as exc:
        room.declare_win('a')
    assert exc.value.code == 'cannot_declare'
    assert room.draw is False


def test_claim_in_lobby_is_rejected():
    room = _room()
    room.join('a', 'alice')
    with pytest.raises(RoomError) as exc:
        room.declare_win('a')
    assert exc.value.code == 'cannot_declare'
    assert room.winner_id is None


def test_rematch_request_accept_resets_round():
    room = _started_room()
    room.mark_number('a', 3)
    room.declare_win('a')

    req = room.request_rematch('a')
    assert req.requester_id == 'a'
    with pytest.raises(RoomError) as exc:
        room.request_rematch('b')
    assert exc.value.code == 'rematch_pending'
    with pytest.raises(RoomError) as exc:
        room.accept_rematch('a')
    assert exc.value.code == 'own_rematch_request'

    room.accept_rematch('b')
    assert room.phase == 'lobby'
    assert room.marked_numbers == []
    assert room.winner_id is None
    assert room.draw is False
    assert room.started is False
    assert room.pending_rematch is None
    assert [p.seat_number for p in room.participants] == [1, 2]

    room.start('b')
    assert room.phase == 'in_progress'


def test_rematch_decline_keeps_outcome():
    room = _started_room()
    room.declare_win('b')
    room.request_rematch('b')
    declined = room.decline_rematch('a')
    assert declined.requester_id == 'b'
    assert room.pending_rematch is None
    assert room.phase == 'concluded'
    assert room.winner_id == 'b'

    with pytest.raises(RoomError) as exc:
        room.decline_rematch('a')
    assert exc.value.code == 'no_rematch_request'


def test_rematch_needs_concluded_round():
    room = _started_room()
    with pytest.raises(RoomError) as exc:
        room.request_rematch('a')
    assert exc.value.code == 'round_not_over'


def test_start_in_concluded_room_needs_rematch():
    room = _started_room()
    room.declare_win('a')
    with pytest.raises(RoomError) as exc:
        room.start('a')
    assert exc.value.code == 'round_over'


def test_turn_holder_departure_forces_reset():
    room = _started_room()
    room.mark_number('a', 12)
    assert room.current_turn_holder == 'b'

    departed, was_reset = room.remove_participant('b')
    assert departed.username == 'bob'
    assert was_reset is True
    assert [p.id for p in room.participants] == ['a']
    assert room.phase == 'lobby'
    assert room.started is False
    assert room.marked_numbers == []
    assert room.current_turn_holder is None
    assert room.participants[0].seat_number == 1


def test_turn_passes_on_when_holder_leaves_three_player_round():
    room = _room(capacity=3)
    for sid in 'abc':
        room.join(sid, sid)
    room.start('a')
    room.mark_number('a', 1)
    assert room.current_turn_holder == 'b'

    _, was_reset = room.remove_participant('b')
    assert was_reset is False
    assert room.started is True
    assert room.current_turn_holder == 'c'
    assert room.participants[room.turn_index].id == 'c'


def test_turn_index_follows_holder_when_earlier_seat_leaves():
    room = _room(capacity=3)
    for sid in 'abc':
        room.join(sid, sid)
    room.start('a')
    room.mark_number('a', 1)
    room.mark_number('b', 2)
    assert room.current_turn_holder == 'c'

    room.remove_participant('a')
    assert room.current_turn_holder == 'c'
    assert room.participants[room.turn_index].id == 'c'
    room.mark_number('c', 3)
    assert room.current_turn_holder == 'b'


def test_departure_withdraws_pending_rematch_and_resets_concluded_room():
    room = _started_room()
    room.declare_win('a')
    room.request_rematch('a')
    _, was_reset = room.remove_participant('a')
    assert was_reset is True
    assert room.pending_rematch is None
    assert room.phase == 'lobby'
    assert room.winner_id is None


def test_lobby_departure_renumbers_seats():
    room = _room()
    room.join('a', 'alice')
    room.join('b', 'bob')
    room.remove_participant('a')
    room.join('c', 'carol')
    assert [(p.id, p.seat_number) for p in room.participants] == [('b', 1), ('c', 2)]


def test_last_departure_empties_room():
    room = _started_room()
    room.remove_participant('a')
    room.remove_participant('b')
    assert room.is_empty
    assert room.current_turn_holder is None
    assert room.remove_participant('b') == (None, False)


def test_chat_history_is_capped():
    room = _room(chat_history_limit=3)
    room.join('a', 'alice')
    for i in range(5):
        room.add_chat_message('a', f'm{i}')
    assert [m['text'] for m in room.chat_history] == ['m2', 'm3', 'm4']
    assert room.chat_history[0]['senderUsername'] == 'alice'

    with pytest.raises(RoomError):
        room.add_chat_message('zz', 'hi')

"""Tests for command builders and reply parsers."""

from __future__ import annotations

import pytest

from railroad_remote.models import Direction, Train, TrainFunction
from railroad_remote.protocol import (
    DEFAULT_PORT,
    decode_function_list,
    decode_train_roster,
    encode_get_functions,
    encode_list_trains,
    encode_set_direction,
    encode_set_function,
    encode_set_speed,
    encode_start_all,
    encode_stop_all,
    parse_event_lines,
)


class TestEncoders:
    """Tests for outbound command strings."""

    def test_default_port(self):
        """Test the controller's well-known port."""
        assert DEFAULT_PORT == 15471

    def test_fixed_commands(self):
        """Test commands without arguments."""
        assert encode_list_trains() == "queryObjects(10, name)\n"
        assert encode_stop_all() == "set(1, stop)\n"
        assert encode_start_all() == "set(1, go)\n"

    def test_get_functions(self):
        """Test the function query for one train."""
        assert encode_get_functions(1000) == "get(1000, func)\n"

    def test_set_function(self):
        """Test booleans are sent as 0/1."""
        assert encode_set_function(1000, 3, True) == "set(1000, func[3, 1])\n"
        assert encode_set_function(1000, 3, False) == "set(1000, func[3, 0])\n"

    def test_set_speed(self):
        """Test speed bounds are inclusive."""
        assert encode_set_speed(1000, 0) == "set(1000, speed[0])\n"
        assert encode_set_speed(1000, 100) == "set(1000, speed[100])\n"

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_set_speed_out_of_range(self, percent):
        """Test speeds outside 0-100 are rejected."""
        with pytest.raises(ValueError, match="0-100"):
            encode_set_speed(1000, percent)

    def test_set_direction(self):
        """Test forward is 0 and reverse is 1."""
        assert encode_set_direction(1000, Direction.FORWARD) == "set(1000, dir[0])\n"
        assert encode_set_direction(1000, Direction.REVERSE) == "set(1000, dir[1])\n"

    def test_bool_is_not_an_id(self):
        """Test bool ids are rejected even though bool is an int subclass."""
        with pytest.raises(ValueError, match="bool"):
            encode_get_functions(True)  # type: ignore[arg-type]

    def test_commands_are_single_ascii_lines(self):
        """Test every command is one ASCII line ending in a newline."""
        commands = [
            encode_list_trains(),
            encode_get_functions(7),
            encode_set_function(7, 12, True),
            encode_set_speed(7, 55),
            encode_set_direction(7, Direction.REVERSE),
            encode_stop_all(),
            encode_start_all(),
        ]
        for command in commands:
            assert command.isascii()
            assert command.endswith("\n")
            assert command.count("\n") == 1


class TestDecodeTrainRoster:
    """Tests for decode_train_roster()."""

    def test_quoted_names(self):
        """Test the documented roster example."""
        reply = '1 "Big Boy"\n2 "Flying Scotsman"\n<END\n'

        assert decode_train_roster(reply) == [
            Train(id=1, name="Big Boy"),
            Train(id=2, name="Flying Scotsman"),
        ]

    def test_controller_reply_format(self):
        """Test a full reply with header, attribute syntax and status line."""
        reply = (
            "<REPLY queryObjects(10, name)>\r\n"
            '1002 name["Class 66"]\r\n'
            '1000 name["Big Boy"]\r\n'
            "<END 0 (OK)>\r\n"
        )

        assert decode_train_roster(reply) == [
            Train(id=1002, name="Class 66"),
            Train(id=1000, name="Big Boy"),
        ]

    def test_unquoted_name_is_trimmed_rest(self):
        """Test names without quotes use the remaining text."""
        assert decode_train_roster("5   Shunter  No. 2  \n") == [
            Train(id=5, name="Shunter  No. 2")
        ]

    def test_name_spans_first_to_last_quote(self):
        """Test inner quotes stay part of the name."""
        reply = '7 name["The "Royal" Scot"]\n'
        assert decode_train_roster(reply) == [Train(id=7, name='The "Royal" Scot')]

    def test_single_quote_char_is_not_a_quoted_name(self):
        """Test one lone double quote leaves the raw text as name."""
        assert decode_train_roster('8 Big"Boy\n') == [Train(id=8, name='Big"Boy')]

    def test_malformed_lines_are_dropped(self):
        """Test bad lines are skipped and the rest is kept."""
        reply = 'abc notanid\n42\n3 "Mallard"\n\n   \n<REPLY x>\n<END 0 (OK)>\n'

        assert decode_train_roster(reply) == [Train(id=3, name="Mallard")]

    def test_only_malformed_lines_give_empty_roster(self):
        """Test the documented malformed example yields nothing."""
        assert decode_train_roster("abc notanid\n<END\n") == []

    def test_id_must_be_plain_decimal(self):
        """Test digit separators and non-ASCII digits do not count as ids."""
        reply = '1_0 "X"\n١٢ "Arabic"\n+7 "Signed"\n<END\n'

        assert decode_train_roster(reply) == [Train(id=7, name="Signed")]

    def test_carriage_returns_are_normalized(self):
        """Test lone CR separators split lines too."""
        assert decode_train_roster('1 "A"\r2 "B"\r') == [
            Train(id=1, name="A"),
            Train(id=2, name="B"),
        ]


class TestDecodeFunctionList:
    """Tests for decode_function_list()."""

    def test_sorted_by_id(self):
        """Test the documented function example comes back sorted."""
        reply = "func[3, 1]\nfunc[1, 0]\n<END\n"

        assert decode_function_list(reply) == [
            TrainFunction(id=1, value=False),
            TrainFunction(id=3, value=True),
        ]

    def test_prefix_before_bracket_is_ignored(self):
        """Test only the bracket content matters."""
        reply = "<REPLY get(1000, func)>\n1000 func[2, 1]\nanything[0,0]\n<END 0 (OK)>\n"

        assert decode_function_list(reply) == [
            TrainFunction(id=0, value=False),
            TrainFunction(id=2, value=True),
        ]

    def test_nonzero_value_is_true(self):
        """Test any non-zero integer means on."""
        assert decode_function_list("func[4, 2]\n") == [TrainFunction(id=4, value=True)]

    def test_malformed_lines_are_dropped(self):
        """Test lines without a valid integer pair are skipped."""
        reply = (
            "no brackets here\n"
            "func[1]\n"
            "func[a, 1]\n"
            "func[1, 2, 3]\n"
            "func]1, 1[\n"
            "func[5, 1]\n"
        )

        assert decode_function_list(reply) == [TrainFunction(id=5, value=True)]

    def test_values_must_be_plain_decimal(self):
        """Test underscores and non-ASCII digits make the line malformed."""
        reply = "func[+3, 1_0]\nfunc[٤, 1]\nfunc[-1, 0]\n"

        assert decode_function_list(reply) == [TrainFunction(id=-1, value=False)]

    def test_duplicate_ids_are_kept_in_order(self):
        """Test duplicates are not merged; reply order holds among equals."""
        reply = "func[2, 1]\nfunc[1, 0]\nfunc[2, 0]\n"

        assert decode_function_list(reply) == [
            TrainFunction(id=1, value=False),
            TrainFunction(id=2, value=True),
            TrainFunction(id=2, value=False),
        ]

    def test_set_function_state_reads_back(self):
        """Test a state written with set() parses back from a get() reply."""
        command = encode_set_function(1000, 6, True)
        assignment = command[command.index("func[") : command.rindex(")")]
        reply = f"<REPLY get(1000, func)>\n1000 {assignment}\n<END 0 (OK)>\n"

        assert decode_function_list(reply) == [TrainFunction(id=6, value=True)]


class TestParseEventLines:
    """Tests for parse_event_lines()."""

    def test_event_lines_are_unwrapped(self):
        """Test event lines lose their angle brackets and other lines are ignored."""
        chunk = "<EVENT 1000>\r\n1000 speed[50]\n<END 0 (OK)>\n<EVENT 1001>\n"

        assert parse_event_lines(chunk) == ["EVENT 1000", "EVENT 1001"]

    def test_no_events(self):
        """Test chunks without event lines give an empty list."""
        assert parse_event_lines("1 func[0, 1]\n") == []

import base64

from ledger_sync.schemas.domain_events import BondAddedEvent, UnknownEvent, VoteEvent
from ledger_sync.services import event_codec
from ledger_sync.services.event_codec import decode_event_payload, extract_events
from ledger_sync.services.program_schema import discriminator

from ledger_fixtures import OTHER_PROGRAM, PROGRAM, SCHEMA, bond_values, data_line, invoke, pk, vote_values


def test_decodes_event_with_snake_case_fields():
    events = extract_events(invoke(data_line("VoteEvent", vote_values())))

    assert len(events) == 1
    ev = events[0]
    assert isinstance(ev, VoteEvent)
    assert ev.ordinal == 0
    assert ev.subject_id == pk(1)
    assert ev.juror == pk(3)
    assert ev.round == 2
    assert ev.voting_power == 1_000
    assert ev.choice == {"forChallenger": {}}
    assert ev.rationale_cid == "bafyrationale"
    assert ev.raw["voting_power"] == 1_000


def test_ordinals_follow_output_order_not_line_numbers():
    logs = invoke(
        "Program log: Instruction: Vote",
        data_line("BondAddedEvent", bond_values()),
        "Program log: some text",
        data_line("VoteEvent", vote_values()),
    )
    events = extract_events(logs)
    assert [type(e) for e in events] == [BondAddedEvent, VoteEvent]
    assert [e.ordinal for e in events] == [0, 1]


def test_malformed_line_is_skipped_and_rest_still_decoded():
    short = "Program data: " + base64.b64encode(b"\x01\x02\x03").decode()
    unknown = "Program data: " + base64.b64encode(b"\xff" * 8 + b"\x00" * 4).decode()
    logs = invoke(
        "Program data: !!!not-base64!!!",
        short,
        unknown,
        data_line("VoteEvent", vote_values()),
    )
    events = extract_events(logs)
    assert len(events) == 1
    assert isinstance(events[0], VoteEvent)
    assert events[0].ordinal == 0


def test_truncated_body_is_skipped():
    payload = SCHEMA.encode_event("VoteEvent", vote_values())[:-4]
    logs = invoke("Program data: " + base64.b64encode(payload).decode(), data_line("BondAddedEvent", bond_values()))
    events = extract_events(logs)
    assert [type(e) for e in events] == [BondAddedEvent]


def test_lines_from_other_programs_are_ignored():
    foreign = [
        f"Program {OTHER_PROGRAM} invoke [2]",
        data_line("BondAddedEvent", bond_values()),
        f"Program {OTHER_PROGRAM} success",
    ]
    logs = [f"Program {PROGRAM} invoke [1]", *foreign, data_line("VoteEvent", vote_values()), f"Program {PROGRAM} success"]
    events = extract_events(logs)
    assert [type(e) for e in events] == [VoteEvent]


def test_top_level_other_program_is_ignored():
    logs = invoke(data_line("VoteEvent", vote_values()), program=OTHER_PROGRAM)
    assert extract_events(logs) == []


def test_legacy_program_log_payload_is_decoded_and_plain_text_ignored():
    payload = base64.b64encode(SCHEMA.encode_event("BondAddedEvent", bond_values())).decode()
    logs = invoke("Program log: Instruction: AddBond", "Program log: " + payload)
    events = extract_events(logs)
    assert len(events) == 1
    assert isinstance(events[0], BondAddedEvent)


def test_declared_event_without_mapping_becomes_unknown():
    logs = invoke(
        data_line("BondWithdrawnEvent", {"defender": pk(4), "amount": 7, "timestamp": 1_700_000_000})
    )
    events = extract_events(logs)
    assert len(events) == 1
    ev = events[0]
    assert isinstance(ev, UnknownEvent)
    assert ev.event_type == "BondWithdrawnEvent"
    assert ev.raw == {"defender": pk(4), "amount": 7, "timestamp": 1_700_000_000}


def test_extraction_is_deterministic():
    logs = invoke(data_line("VoteEvent", vote_values()), data_line("BondAddedEvent", bond_values()))
    assert extract_events(logs) == extract_events(logs)


def test_decode_event_payload_reports_name():
    data = SCHEMA.encode_event("VoteEvent", vote_values())
    assert data[:8] == discriminator("event", "VoteEvent")
    name, fields = decode_event_payload(data, SCHEMA)
    assert name == "VoteEvent"
    assert fields["subject_id"] == pk(1)


def test_plain_text_mentioning_failure_is_not_a_frame_exit():
    assert event_codec._EXIT_RE.match("Program log: failed to transfer lamports") is None
    assert event_codec._INVOKE_RE.match("Program log: invoke [1]") is None
    assert event_codec._EXIT_RE.match(f"Program {PROGRAM} failed: custom program error: 0x1")


def test_log_text_does_not_close_the_program_frame():
    logs = [
        f"Program {PROGRAM} invoke [1]",
        f"Program {OTHER_PROGRAM} invoke [2]",
        "Program log: failed to find optional account",
        data_line("BondAddedEvent", bond_values()),
        f"Program {OTHER_PROGRAM} success",
        data_line("VoteEvent", vote_values()),
        f"Program {PROGRAM} success",
    ]
    assert [type(e) for e in extract_events(logs)] == [VoteEvent]
